"""Configuration, index maps and result records of a multislice simulation.

Extended Summary
----------------
`SimulationConfig` is the immutable configuration surface consumed by the
simulator. `IndexMap` ties every reflection to the grid pixels it is read
from. `FinalIntensity` and `DepthIntensity` are the two variants of the
intensity record returned for one beam tilt.

Routine Listings
----------------
SimulationConfig : NamedTuple
    Immutable, validated simulation configuration
IndexMap : PyTree
    Reflection to pixel mapping with partial-coherence weights
FinalIntensity : PyTree
    Intensities at the exit surface for one tilt
DepthIntensity : PyTree
    Intensities after every slice for one tilt
IntensityRecord : TypeAlias
    Either FinalIntensity or DepthIntensity
create_simulation_config : function
    Factory function validating every configuration option
create_index_map : function
    Factory function validating an IndexMap
FORM_FACTORS : tuple
    Supported electron form-factor parameterisations
"""

import math

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple, Optional, Sequence, Tuple, TypeAlias, Union
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Complex, Float, Int, jaxtyped

from slicium.errors import ConfigurationError

from .crystal_types import BRAVAIS_LATTICES
from .custom_types import scalar_num

jax.config.update("jax_enable_x64", True)

FORM_FACTORS: Tuple[str, ...] = ("wentzel", "kirkland")


class SimulationConfig(NamedTuple):
    """Validated configuration of a multislice simulation.

    Attributes
    ----------
    lattice : Tuple[float, float, float]
        Lattice constants (a, b, c) in Ångstroms; the beam runs along c.
    positions : Tuple[Tuple[float, float, float], ...]
        Fractional atomic coordinates of the basis.
    atomic_numbers : Tuple[int, ...]
        Atomic number of each basis atom.
    beam_energy : float
        Accelerating voltage in volts.
    thickness : float
        Crystal thickness in Ångstroms.
    k_max : float
        Band-limit radius in 1/Ångstroms.
    bravais : str
        Bravais lattice of the reflection selection rule.
    temperature : float
        Temperature in Kelvin.
    rotation_deg : float
        Crystal rotation about the beam axis, applied before tilt.
    part_k_max : float
        Standard deviation of the beam's transverse wavevector spread in
        1/Ångstroms; 0 for a coherent beam.
    part_k_extent : int
        Truncation of the spread in standard deviations.
    n_cells : int
        Unit cells per side of the supercell.
    n_pixels : int
        Pixels per side of the supercell.
    two_beam : Optional[Tuple[int, int]]
        Reflection (h, k) coupled to the direct beam in two-beam mode.
    absorption : float
        Absorptive potential as a fraction of the elastic potential.
    msd_ref : float
        Mean-square thermal displacement at 295 K in Å^2.
    form_factor : str
        "wentzel" or "kirkland".
    kirkland_path : Optional[str]
        CSV file of Kirkland coefficients, required for "kirkland".
    deduplicate : bool
        Drop atoms duplicated at periodic boundaries.
    backend : Optional[str]
        JAX backend name ("cpu", "gpu", "tpu"), None for the default.
    """

    lattice: Tuple[float, float, float]
    positions: Tuple[Tuple[float, float, float], ...]
    atomic_numbers: Tuple[int, ...]
    beam_energy: float
    thickness: float
    k_max: float
    bravais: str = "simple-cubic"
    temperature: float = 295.0
    rotation_deg: float = 0.0
    part_k_max: float = 0.0
    part_k_extent: int = 3
    n_cells: int = 8
    n_pixels: int = 256
    two_beam: Optional[Tuple[int, int]] = None
    absorption: float = 0.0
    msd_ref: float = 0.0058
    form_factor: str = "wentzel"
    kirkland_path: Optional[str] = None
    deduplicate: bool = True
    backend: Optional[str] = None

    @property
    def coherent(self) -> bool:
        return self.part_k_max == 0.0


@beartype
def create_simulation_config(
    lattice: Sequence[scalar_num],
    positions: Sequence[Sequence[scalar_num]],
    atomic_numbers: Sequence[int],
    beam_energy: scalar_num,
    thickness: scalar_num,
    k_max: scalar_num,
    bravais: str = "simple-cubic",
    temperature: scalar_num = 295.0,
    rotation_deg: scalar_num = 0.0,
    part_k_max: scalar_num = 0.0,
    part_k_extent: int = 3,
    n_cells: int = 8,
    n_pixels: int = 256,
    two_beam: Optional[Sequence[int]] = None,
    absorption: scalar_num = 0.0,
    msd_ref: scalar_num = 0.0058,
    form_factor: str = "wentzel",
    kirkland_path: Optional[str] = None,
    deduplicate: bool = True,
    backend: Optional[str] = None,
) -> SimulationConfig:
    """Validate options and build a SimulationConfig.

    Every check happens here, before any array is allocated, so an invalid
    configuration never leaves partially built cached state behind.

    Raises
    ------
    ConfigurationError
        For any invalid option; the message names the offending field.
    """
    if len(lattice) != 3:
        raise ConfigurationError("lattice must hold exactly three lengths")
    lattice_t = tuple(float(v) for v in lattice)
    if any(not math.isfinite(v) or v <= 0 for v in lattice_t):
        raise ConfigurationError("lattice constants must be positive")
    if len(positions) == 0:
        raise ConfigurationError("positions must contain at least one atom")
    positions_t = tuple(tuple(float(v) for v in row) for row in positions)
    if any(len(row) != 3 for row in positions_t):
        raise ConfigurationError("every position needs three coordinates")
    if len(atomic_numbers) != len(positions_t):
        raise ConfigurationError(
            f"{len(atomic_numbers)} atomic numbers given for "
            f"{len(positions_t)} positions"
        )
    atomic_t = tuple(int(z) for z in atomic_numbers)
    if any(z <= 0 for z in atomic_t):
        raise ConfigurationError("atomic numbers must be positive")

    scalars = {
        "beam_energy": float(beam_energy),
        "thickness": float(thickness),
        "k_max": float(k_max),
        "temperature": float(temperature),
        "rotation_deg": float(rotation_deg),
        "part_k_max": float(part_k_max),
        "absorption": float(absorption),
        "msd_ref": float(msd_ref),
    }
    for name, value in scalars.items():
        if not math.isfinite(value):
            raise ConfigurationError(f"{name} must be finite")
    for name in ("beam_energy", "k_max"):
        if scalars[name] <= 0:
            raise ConfigurationError(f"{name} must be positive")
    for name in ("thickness", "temperature", "part_k_max", "absorption", "msd_ref"):
        if scalars[name] < 0:
            raise ConfigurationError(f"{name} must be non-negative")
    if part_k_extent < 1:
        raise ConfigurationError("part_k_extent must be a positive integer")
    if bravais not in BRAVAIS_LATTICES:
        raise ConfigurationError(
            f"unknown Bravais lattice {bravais!r}, "
            f"expected one of {BRAVAIS_LATTICES}"
        )
    if form_factor not in FORM_FACTORS:
        raise ConfigurationError(
            f"unknown form factor {form_factor!r}, expected one of {FORM_FACTORS}"
        )
    if form_factor == "kirkland" and kirkland_path is None:
        raise ConfigurationError("form_factor='kirkland' needs kirkland_path")

    two_beam_t: Optional[Tuple[int, int]] = None
    if two_beam is not None:
        if len(two_beam) not in (2, 3):
            raise ConfigurationError(
                "two_beam must be a 2- or 3-index Miller tuple"
            )
        # l is folded into the projection
        two_beam_t = (int(two_beam[0]), int(two_beam[1]))
        if two_beam_t == (0, 0):
            raise ConfigurationError("two_beam reflection cannot be (0, 0)")
        if scalars["part_k_max"] > 0:
            raise ConfigurationError(
                "two-beam mode and partial coherence cannot be combined"
            )

    # same grid checks as create_grid_spec
    for name, count in (("n_pixels", n_pixels), ("n_cells", n_cells)):
        if count <= 0 or count & (count - 1):
            raise ConfigurationError(f"{name}={count} is not a power of two")
    if n_cells < 2:
        raise ConfigurationError("n_cells must be at least 2")
    if n_pixels % n_cells:
        raise ConfigurationError(
            f"n_pixels={n_pixels} is not divisible by n_cells={n_cells}"
        )

    return SimulationConfig(
        lattice=lattice_t,
        positions=positions_t,
        atomic_numbers=atomic_t,
        bravais=bravais,
        part_k_extent=part_k_extent,
        n_cells=n_cells,
        n_pixels=n_pixels,
        two_beam=two_beam_t,
        form_factor=form_factor,
        kirkland_path=kirkland_path,
        deduplicate=deduplicate,
        backend=backend,
        **scalars,
    )


@register_pytree_node_class
class IndexMap(NamedTuple):
    """Pixels and weights every reflection is read from.

    Attributes
    ----------
    rows : Int[Array, " R P"]
        Row (y) pixel indices, unshifted FFT order.
    cols : Int[Array, " R P"]
        Column (x) pixel indices, unshifted FFT order.
    weights : Float[Array, " R P"]
        Non-negative weights, each row sums to one.
    """

    rows: Int[Array, " R P"]
    cols: Int[Array, " R P"]
    weights: Float[Array, " R P"]

    def tree_flatten(self):
        return ((self.rows, self.cols, self.weights), None)

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)


@jaxtyped(typechecker=beartype)
def create_index_map(
    rows: Int[Array, " R P"],
    cols: Int[Array, " R P"],
    weights: Float[Array, " R P"],
) -> IndexMap:
    """Create an IndexMap, checking weights are non-negative and normalised."""
    if not bool(jnp.all(weights >= 0)):
        raise ConfigurationError("index-map weights must be non-negative")
    if not bool(jnp.allclose(jnp.sum(weights, axis=1), 1.0, atol=1e-12)):
        raise ConfigurationError("index-map weights must sum to one per reflection")
    return IndexMap(rows=rows, cols=cols, weights=weights)


@register_pytree_node_class
class FinalIntensity(NamedTuple):
    """Exit-surface intensities for one beam tilt.

    Attributes
    ----------
    intensities : Float[Array, " R"]
        Intensity of every reflection, ordered like `reflections`.
    reflections : Int[Array, " R 2"]
        Miller indices (h, k).
    exit_wave : Complex[Array, " n n"]
        Real-space exit wavefunction in the frame co-moving with the tilt.
    angle_x : Float[Array, " "]
        Beam tilt about y in milliradians.
    angle_y : Float[Array, " "]
        Beam tilt about x in milliradians.
    """

    intensities: Float[Array, " R"]
    reflections: Int[Array, " R 2"]
    exit_wave: Complex[Array, " n n"]
    angle_x: Float[Array, " "]
    angle_y: Float[Array, " "]

    def tree_flatten(self):
        return (tuple(self), None)

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)


@register_pytree_node_class
class DepthIntensity(NamedTuple):
    """Intensities recorded after every slice for one beam tilt.

    Attributes
    ----------
    intensities : Float[Array, " S R"]
        Intensity of every reflection after each of the S slices.
    depths : Float[Array, " S"]
        Depth below the entrance surface after each slice in Ångstroms.
    reflections : Int[Array, " R 2"]
        Miller indices (h, k).
    exit_wave : Complex[Array, " n n"]
        Real-space exit wavefunction in the frame co-moving with the tilt.
    angle_x : Float[Array, " "]
        Beam tilt about y in milliradians.
    angle_y : Float[Array, " "]
        Beam tilt about x in milliradians.
    """

    intensities: Float[Array, " S R"]
    depths: Float[Array, " S"]
    reflections: Int[Array, " R 2"]
    exit_wave: Complex[Array, " n n"]
    angle_x: Float[Array, " "]
    angle_y: Float[Array, " "]

    def tree_flatten(self):
        return (tuple(self), None)

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)


IntensityRecord: TypeAlias = Union[FinalIntensity, DepthIntensity]
