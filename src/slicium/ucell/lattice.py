"""Layer structure, selection rules and orientation of a cubic crystal.

Extended Summary
----------------
Functions that turn a `CubicLattice` into what the multislice engine needs:
the atoms grouped into layers along the beam, the Bravais selection rule of
the projected reflections, and the relation between the laboratory tilt
frame and the rotated crystal frame.

Routine Listings
----------------
group_layers : function
    Group the basis into depth-ordered layers
bravais_allowed : function
    Selection rule for projected reflections (h, k)
rotation_matrix_2d : function
    In-plane rotation matrix for an angle in degrees
crystal_frame_tilt : function
    Express a laboratory beam tilt in the rotated crystal frame
reflection_vectors : function
    Laboratory-frame reciprocal vectors of reflections

Notes
-----
The third Miller index l is fixed by the projection along c and folded into
the two-dimensional grid, so the selection rules act on (h, k) only.
"""

import logging

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Bool, Float, Int, jaxtyped

from slicium.errors import ConfigurationError
from slicium.types import (
    BRAVAIS_LATTICES,
    CubicLattice,
    LayerStack,
    create_layer_stack,
    scalar_num,
)

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

_DEPTH_DECIMALS: int = 6


@beartype
def group_layers(lattice: CubicLattice) -> LayerStack:
    """Group the atoms of the unit cell into layers of equal depth.

    Parameters
    ----------
    lattice : CubicLattice
        Validated lattice with wrapped fractional coordinates.

    Returns
    -------
    layers : LayerStack
        Layers ordered by increasing depth, each padded to the size of the
        most populated layer. The slice spacing is the cell height divided
        by the number of layers.

    Flow
    ----
    - Round depths to suppress floating point scatter
    - Find the unique depths and the layer index of every atom
    - Scatter in-plane coordinates and atomic numbers into padded arrays
    """
    rounded_z: Float[Array, " N"] = jnp.round(
        lattice.frac_positions[:, 2], _DEPTH_DECIMALS
    )
    depths: Float[Array, " L"] = jnp.unique(rounded_z)
    n_layers: int = int(depths.shape[0])
    layer_of: Int[Array, " N"] = jnp.searchsorted(depths, rounded_z)
    counts: Int[Array, " L"] = jnp.bincount(layer_of, length=n_layers)
    max_count: int = int(jnp.max(counts))

    order: Int[Array, " N"] = jnp.argsort(layer_of, stable=True)
    sorted_layer: Int[Array, " N"] = layer_of[order]
    starts: Int[Array, " L"] = jnp.cumsum(counts) - counts
    slot: Int[Array, " N"] = jnp.arange(order.shape[0]) - starts[sorted_layer]

    positions: Float[Array, " L P 2"] = (
        jnp.zeros((n_layers, max_count, 2), dtype=jnp.float64)
        .at[sorted_layer, slot]
        .set(lattice.frac_positions[order, :2])
    )
    atomic_numbers: Int[Array, " L P"] = (
        jnp.zeros((n_layers, max_count), dtype=jnp.int32)
        .at[sorted_layer, slot]
        .set(lattice.atomic_numbers[order])
    )
    mask: Bool[Array, " L P"] = (
        jnp.zeros((n_layers, max_count), dtype=bool)
        .at[sorted_layer, slot]
        .set(True)
    )

    if n_layers > 1:
        gaps: Float[Array, " L"] = jnp.diff(jnp.append(depths, depths[0] + 1.0))
        if not bool(jnp.allclose(gaps, 1.0 / n_layers, atol=1e-4)):
            logger.warning(
                "Layer depths %s are not evenly spaced; slices use the mean "
                "spacing c/%d",
                depths.tolist(),
                n_layers,
            )
    z_spacing = lattice.cell_lengths[2] / n_layers
    logger.debug("Grouped %d atoms into %d layers", lattice.n_atoms, n_layers)
    return create_layer_stack(
        positions=positions,
        atomic_numbers=atomic_numbers,
        mask=mask,
        depths=depths,
        z_spacing=z_spacing,
    )


@jaxtyped(typechecker=beartype)
def bravais_allowed(
    h: Int[Array, " *batch"],
    k: Int[Array, " *batch"],
    bravais: str,
) -> Bool[Array, " *batch"]:
    """Selection rule for projected reflections.

    Parameters
    ----------
    h, k : Int[Array, " *batch"]
        Miller indices.
    bravais : str
        One of "simple-cubic", "body-centered", "face-centered", "diamond".

    Returns
    -------
    allowed : Bool[Array, " *batch"]
        True where the reflection is allowed.

    Notes
    -----
    - simple-cubic: every (h, k)
    - body-centered: h + k even
    - face-centered: h and k both odd or both even
    - diamond: both odd, or both even with h + k divisible by 4
    """
    h_odd: Bool[Array, " *batch"] = jnp.mod(h, 2) == 1
    k_odd: Bool[Array, " *batch"] = jnp.mod(k, 2) == 1
    both_odd: Bool[Array, " *batch"] = jnp.logical_and(h_odd, k_odd)
    both_even: Bool[Array, " *batch"] = jnp.logical_not(
        jnp.logical_or(h_odd, k_odd)
    )
    if bravais == "simple-cubic":
        return jnp.ones_like(h, dtype=bool)
    if bravais == "body-centered":
        return jnp.mod(h + k, 2) == 0
    if bravais == "face-centered":
        return jnp.logical_or(both_odd, both_even)
    if bravais == "diamond":
        return jnp.logical_or(
            both_odd, jnp.logical_and(both_even, jnp.mod(h + k, 4) == 0)
        )
    raise ConfigurationError(
        f"unknown Bravais lattice {bravais!r}, expected one of {BRAVAIS_LATTICES}"
    )


@jaxtyped(typechecker=beartype)
def rotation_matrix_2d(angle_deg: scalar_num) -> Float[Array, " 2 2"]:
    """Counter-clockwise rotation by `angle_deg` in the (x, y) plane."""
    theta = jnp.deg2rad(jnp.asarray(angle_deg, dtype=jnp.float64))
    cos_t = jnp.cos(theta)
    sin_t = jnp.sin(theta)
    return jnp.array([[cos_t, -sin_t], [sin_t, cos_t]])


@jaxtyped(typechecker=beartype)
def crystal_frame_tilt(
    angle_x: scalar_num,
    angle_y: scalar_num,
    rotation_deg: scalar_num,
) -> Tuple[Float[Array, " "], Float[Array, " "]]:
    """Express a laboratory beam tilt in the frame of the rotated crystal.

    Rotating the crystal by +phi about the beam is the same as rotating the
    tilt vector by -phi while keeping the crystal fixed.

    Parameters
    ----------
    angle_x, angle_y : scalar_num
        Laboratory tilt components (any angular unit, returned unchanged in
        unit).
    rotation_deg : scalar_num
        Crystal rotation about the beam axis in degrees.

    Returns
    -------
    tilt_x, tilt_y : Float[Array, " "]
        Tilt components along the crystal a and b axes.
    """
    lab: Float[Array, " 2"] = jnp.array(
        [angle_x, angle_y], dtype=jnp.float64
    )
    crystal: Float[Array, " 2"] = rotation_matrix_2d(-rotation_deg) @ lab
    return crystal[0], crystal[1]


@jaxtyped(typechecker=beartype)
def reflection_vectors(
    reflections: Int[Array, " R 2"],
    lattice: CubicLattice,
) -> Float[Array, " R 2"]:
    """Laboratory-frame reciprocal vectors (1/Å) of reflections (h, k)."""
    g_crystal: Float[Array, " R 2"] = reflections.astype(jnp.float64) / (
        lattice.cell_lengths[:2]
    )
    return g_crystal @ rotation_matrix_2d(lattice.rotation_deg).T
