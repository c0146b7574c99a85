"""Scalar type aliases shared across slicium.

Extended Summary
----------------
Functions in slicium accept either plain Python numbers or zero-dimensional
JAX arrays for scalar arguments. These aliases keep the `jaxtyping`
annotations short and uniform.

Routine Listings
----------------
scalar_float : TypeAlias
    Python float or 0-d JAX float array
scalar_int : TypeAlias
    Python int or 0-d JAX integer array
scalar_num : TypeAlias
    Any real scalar (int, float, or 0-d JAX numeric array)
"""

from beartype.typing import TypeAlias, Union
from jaxtyping import Array, Float, Int, Num

scalar_float: TypeAlias = Union[float, Float[Array, " "]]
scalar_int: TypeAlias = Union[int, Int[Array, " "]]
scalar_num: TypeAlias = Union[int, float, Num[Array, " "]]

__all__ = [
    "scalar_float",
    "scalar_int",
    "scalar_num",
]
