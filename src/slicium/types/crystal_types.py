"""Data structures and factory functions for cubic crystal representation.

Extended Summary
----------------
Defines the JAX PyTrees describing the crystal that is sliced by the
multislice engine: the unit cell with its atomic basis, and the layer stack
obtained by grouping the basis by depth.

Routine Listings
----------------
CubicLattice : PyTree
    Orthogonal unit cell with fractional atomic basis, temperature and
    in-plane crystal rotation
LayerStack : PyTree
    Atoms of the unit cell grouped into depth-ordered layers
create_cubic_lattice : function
    Factory function validating, wrapping and de-duplicating a basis
create_layer_stack : function
    Factory function to create LayerStack instances with data validation
wrap_fractional : function
    Wrap fractional coordinates into [0, 1)
deduplicate_positions : function
    Report and drop atoms repeated at periodic boundaries
BRAVAIS_LATTICES : tuple
    Names of the supported Bravais lattices

Notes
-----
Fractional coordinates are wrapped into [0, 1) on creation. Atoms that
coincide after wrapping (for example an atom listed at both x=0 and x=1) are
reported with `GeometryWarning`; by default the copies are dropped so that
each site contributes its potential once per unit cell.
"""

import logging
import warnings

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple, Sequence, Tuple, Union
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Bool, Float, Int, Num, jaxtyped

from slicium.errors import ConfigurationError, GeometryWarning

from .custom_types import scalar_float, scalar_num

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

BRAVAIS_LATTICES: Tuple[str, ...] = (
    "simple-cubic",
    "body-centered",
    "face-centered",
    "diamond",
)

_WRAP_TOLERANCE: float = 1e-6


@register_pytree_node_class
class CubicLattice(NamedTuple):
    """JAX-compatible description of an orthogonal crystal unit cell.

    Attributes
    ----------
    cell_lengths : Float[Array, " 3"]
        Lattice constants [a, b, c] in Ångstroms. The beam travels along c.
    frac_positions : Float[Array, " N 3"]
        Fractional atomic coordinates wrapped into [0, 1).
    atomic_numbers : Int[Array, " N"]
        Atomic number of every atom in `frac_positions`.
    temperature : Float[Array, " "]
        Specimen temperature in Kelvin, enters the Debye-Waller factor.
    rotation_deg : Float[Array, " "]
        Rotation of the crystal about the beam axis in degrees, applied
        before the beam tilt.
    bravais : str
        One of `BRAVAIS_LATTICES`, selects the reflection rule.

    Notes
    -----
    `bravais` is static auxiliary data; all other fields are PyTree leaves.
    """

    cell_lengths: Float[Array, " 3"]
    frac_positions: Float[Array, " N 3"]
    atomic_numbers: Int[Array, " N"]
    temperature: Float[Array, " "]
    rotation_deg: Float[Array, " "]
    bravais: str

    def tree_flatten(self):
        return (
            (
                self.cell_lengths,
                self.frac_positions,
                self.atomic_numbers,
                self.temperature,
                self.rotation_deg,
            ),
            self.bravais,
        )

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children, bravais=aux_data)

    @property
    def n_atoms(self) -> int:
        """Number of atoms in the basis after de-duplication."""
        return int(self.frac_positions.shape[0])


@register_pytree_node_class
class LayerStack(NamedTuple):
    """Atoms of one unit cell grouped into layers of equal depth.

    Attributes
    ----------
    positions : Float[Array, " L P 2"]
        In-plane fractional coordinates (x, y) of the atoms of each layer,
        padded to the largest layer.
    atomic_numbers : Int[Array, " L P"]
        Atomic numbers, zero for padding entries.
    mask : Bool[Array, " L P"]
        True where the entry is a real atom.
    depths : Float[Array, " L"]
        Fractional depth of each layer, strictly increasing.
    z_spacing : Float[Array, " "]
        Slice spacing in Ångstroms, unit-cell height divided by layer count.
    """

    positions: Float[Array, " L P 2"]
    atomic_numbers: Int[Array, " L P"]
    mask: Bool[Array, " L P"]
    depths: Float[Array, " L"]
    z_spacing: Float[Array, " "]

    def tree_flatten(self):
        return (
            (
                self.positions,
                self.atomic_numbers,
                self.mask,
                self.depths,
                self.z_spacing,
            ),
            None,
        )

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)

    @property
    def n_layers(self) -> int:
        """Number of distinct atomic layers in the unit cell."""
        return int(self.depths.shape[0])


@jaxtyped(typechecker=beartype)
def wrap_fractional(
    positions: Float[Array, " N 3"],
    tol: float = _WRAP_TOLERANCE,
) -> Float[Array, " N 3"]:
    """Wrap fractional coordinates into [0, 1).

    Values within `tol` below 1 map to 0, so 0.9999999 and 1.0 land on the
    same site as 0.0.
    """
    wrapped: Float[Array, " N 3"] = jnp.mod(positions, 1.0)
    return jnp.where(wrapped > 1.0 - tol, 0.0, wrapped)


def _boundary_duplicates(
    positions: Float[Array, " N 3"],
    atomic_numbers: Int[Array, " N"],
    tol: float,
) -> Bool[Array, " N"]:
    """Flag atoms that repeat an earlier atom of the same species."""
    delta: Float[Array, " N N 3"] = positions[:, None, :] - positions[None, :, :]
    delta = delta - jnp.round(delta)
    coincident: Bool[Array, " N N"] = jnp.all(jnp.abs(delta) < tol, axis=-1)
    same_species: Bool[Array, " N N"] = (
        atomic_numbers[:, None] == atomic_numbers[None, :]
    )
    earlier_copy: Bool[Array, " N N"] = (
        jnp.triu(jnp.logical_and(coincident, same_species).astype(jnp.int32), k=1)
        > 0
    )
    return jnp.any(earlier_copy, axis=0)


@jaxtyped(typechecker=beartype)
def deduplicate_positions(
    positions: Float[Array, " N 3"],
    atomic_numbers: Int[Array, " N"],
    tol: float = _WRAP_TOLERANCE,
    drop: bool = True,
) -> Tuple[Float[Array, " M 3"], Int[Array, " M"]]:
    """Report, and optionally drop, atoms repeated at periodic boundaries.

    Parameters
    ----------
    positions : Float[Array, " N 3"]
        Wrapped fractional coordinates.
    atomic_numbers : Int[Array, " N"]
        Atomic number per position.
    tol : float, optional
        Distance below which two same-species atoms coincide, measured with
        the minimum-image convention. Default: 1e-6
    drop : bool, optional
        Remove the later copies. Default: True

    Returns
    -------
    positions : Float[Array, " M 3"]
        Positions with duplicates removed (M == N when `drop` is False).
    atomic_numbers : Int[Array, " M"]
        Matching atomic numbers.

    Warns
    -----
    GeometryWarning
        Whenever duplicates exist, stating whether they were dropped.
    """
    duplicates: Bool[Array, " N"] = _boundary_duplicates(
        positions, atomic_numbers, tol
    )
    n_duplicates: int = int(jnp.sum(duplicates))
    if n_duplicates == 0:
        return positions, atomic_numbers
    action: str = "dropped" if drop else "kept"
    warnings.warn(
        f"{n_duplicates} atom(s) coincide with another atom after "
        f"wrapping into the unit cell and were {action}",
        GeometryWarning,
        stacklevel=3,
    )
    if not drop:
        return positions, atomic_numbers
    keep: Bool[Array, " N"] = jnp.logical_not(duplicates)
    return positions[keep], atomic_numbers[keep]


@beartype
def create_cubic_lattice(
    cell_lengths: Union[Sequence[scalar_num], Num[Array, " 3"]],
    frac_positions: Union[Sequence[Sequence[scalar_num]], Num[Array, " N 3"]],
    atomic_numbers: Union[Sequence[int], Int[Array, " N"]],
    bravais: str = "simple-cubic",
    temperature: scalar_num = 295.0,
    rotation_deg: scalar_num = 0.0,
    deduplicate: bool = True,
) -> CubicLattice:
    """Create a validated CubicLattice.

    Parameters
    ----------
    cell_lengths : Sequence or Num[Array, " 3"]
        Three positive lattice constants in Ångstroms.
    frac_positions : Sequence or Num[Array, " N 3"]
        Fractional atomic coordinates; values outside [0, 1) are wrapped.
    atomic_numbers : Sequence[int] or Int[Array, " N"]
        Positive atomic number per position.
    bravais : str, optional
        Bravais lattice used for the reflection selection rule.
        Default: "simple-cubic"
    temperature : scalar_num, optional
        Temperature in Kelvin. Default: 295.0
    rotation_deg : scalar_num, optional
        Crystal rotation about the beam axis in degrees. Default: 0.0
    deduplicate : bool, optional
        Drop atoms that coincide with an earlier atom of the same species
        after wrapping. Duplicates are always reported. Default: True

    Returns
    -------
    lattice : CubicLattice
        Validated lattice with wrapped coordinates.

    Raises
    ------
    ConfigurationError
        If the basis is empty, shapes disagree, lattice constants or atomic
        numbers are not positive, the temperature is negative, or the
        Bravais name is unknown.

    Flow
    ----
    - Convert inputs to float64 / int32 JAX arrays
    - Validate shapes, signs and the Bravais name
    - Wrap fractional coordinates into [0, 1)
    - Detect periodic-boundary duplicates, warn, and optionally drop them
    """
    cell_lengths = jnp.asarray(cell_lengths, dtype=jnp.float64)
    frac_positions = jnp.asarray(frac_positions, dtype=jnp.float64)
    atomic_numbers = jnp.asarray(atomic_numbers, dtype=jnp.int32)
    temperature = jnp.asarray(temperature, dtype=jnp.float64)
    rotation_deg = jnp.asarray(rotation_deg, dtype=jnp.float64)

    if cell_lengths.shape != (3,):
        raise ConfigurationError(
            f"lattice must hold three lengths, got shape {cell_lengths.shape}"
        )
    if not bool(jnp.all(cell_lengths > 0)):
        raise ConfigurationError("lattice constants must be positive")
    if frac_positions.size == 0:
        raise ConfigurationError("positions must contain at least one atom")
    if frac_positions.ndim != 2 or frac_positions.shape[1] != 3:
        raise ConfigurationError(
            f"positions must have shape (N, 3), got {frac_positions.shape}"
        )
    if atomic_numbers.shape != (frac_positions.shape[0],):
        raise ConfigurationError(
            f"{atomic_numbers.size} atomic numbers given for "
            f"{frac_positions.shape[0]} positions"
        )
    if not bool(jnp.all(atomic_numbers > 0)):
        raise ConfigurationError("atomic numbers must be positive")
    if not bool(jnp.all(jnp.isfinite(frac_positions))):
        raise ConfigurationError("positions contain non-finite values")
    if bool(temperature < 0):
        raise ConfigurationError("temperature must be non-negative")
    if bravais not in BRAVAIS_LATTICES:
        raise ConfigurationError(
            f"unknown Bravais lattice {bravais!r}, "
            f"expected one of {BRAVAIS_LATTICES}"
        )

    wrapped: Float[Array, " N 3"] = wrap_fractional(frac_positions)
    wrapped, atomic_numbers = deduplicate_positions(
        wrapped, atomic_numbers, drop=deduplicate
    )

    logger.debug(
        "Lattice %s with %d atoms, cell %s",
        bravais,
        wrapped.shape[0],
        cell_lengths.tolist(),
    )
    return CubicLattice(
        cell_lengths=cell_lengths,
        frac_positions=wrapped,
        atomic_numbers=atomic_numbers,
        temperature=temperature,
        rotation_deg=rotation_deg,
        bravais=bravais,
    )


@jaxtyped(typechecker=beartype)
def create_layer_stack(
    positions: Float[Array, " L P 2"],
    atomic_numbers: Int[Array, " L P"],
    mask: Bool[Array, " L P"],
    depths: Float[Array, " L"],
    z_spacing: scalar_float,
) -> LayerStack:
    """Create a LayerStack with data validation.

    Raises
    ------
    ConfigurationError
        If there are no layers, a layer has no atoms, depths are not strictly
        increasing, or the spacing is not positive.
    """
    z_spacing = jnp.asarray(z_spacing, dtype=jnp.float64)
    if depths.shape[0] == 0:
        raise ConfigurationError("layer stack must contain at least one layer")
    if not bool(jnp.all(jnp.any(mask, axis=1))):
        raise ConfigurationError("every layer must contain at least one atom")
    if depths.shape[0] > 1 and not bool(jnp.all(jnp.diff(depths) > 0)):
        raise ConfigurationError("layer depths must be strictly increasing")
    if not bool(z_spacing > 0):
        raise ConfigurationError("layer spacing must be positive")
    return LayerStack(
        positions=positions,
        atomic_numbers=atomic_numbers,
        mask=mask,
        depths=depths,
        z_spacing=z_spacing,
    )
