"""Reciprocal-space grids derived from a `GridSpec`.

Routine Listings
----------------
frequency_grids : function
    Two-dimensional column and row spatial frequencies
k_squared : function
    Squared magnitude of the (optionally offset) spatial frequency
band_limit_mask : function
    Pixels inside the band-limit radius
reflection_pixels : function
    Grid pixel of reflections (h, k)
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Bool, Float, Int, jaxtyped

from slicium.types import GridSpec, scalar_num

jax.config.update("jax_enable_x64", True)


@beartype
def frequency_grids(
    grid: GridSpec,
) -> Tuple[Float[Array, " n n"], Float[Array, " n n"]]:
    """Column (kx) and row (ky) frequencies in 1/Å, unshifted FFT order.

    Returns
    -------
    kx : Float[Array, " n n"]
        Frequency along x, constant down every column.
    ky : Float[Array, " n n"]
        Frequency along y, constant along every row.
    """
    ky, kx = jnp.meshgrid(grid.ky, grid.kx, indexing="ij")
    return kx, ky


@jaxtyped(typechecker=beartype)
def k_squared(
    grid: GridSpec,
    offset_x: scalar_num = 0.0,
    offset_y: scalar_num = 0.0,
) -> Float[Array, " n n"]:
    """Squared frequency ``|k + offset|^2`` on the grid."""
    kx, ky = frequency_grids(grid)
    return jnp.square(kx + offset_x) + jnp.square(ky + offset_y)


@beartype
def band_limit_mask(grid: GridSpec) -> Bool[Array, " n n"]:
    """Pixels with ``|k| <= k_max``, the band limit of the whole run."""
    return k_squared(grid) <= jnp.square(grid.k_max)


@jaxtyped(typechecker=beartype)
def reflection_pixels(
    reflections: Int[Array, " R 2"],
    grid: GridSpec,
) -> Tuple[Int[Array, " R"], Int[Array, " R"]]:
    """Row and column of every reflection (h, k).

    The column is ``(h * n_cells) mod n_pixels`` and the row is
    ``(k * n_cells) mod n_pixels``.
    """
    cols: Int[Array, " R"] = jnp.mod(reflections[:, 0] * grid.n_cells, grid.n_pixels)
    rows: Int[Array, " R"] = jnp.mod(reflections[:, 1] * grid.n_cells, grid.n_pixels)
    return rows, cols
