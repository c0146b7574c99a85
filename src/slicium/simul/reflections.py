"""Reflection enumeration and the reflection-to-pixel index map.

Extended Summary
----------------
The multislice grid holds M x M unit cells, so a reflection (h, k) of the
unit cell lands on pixel ``(k M, h M)`` (row, column) modulo N. A beam with
a finite angular spread is modelled as a set of plane waves offset by whole
pixels from the nominal direction; each reflection then collects intensity
from the same offsets around its own pixel.

Routine Listings
----------------
enumerate_reflections : function
    Allowed reflections inside the band limit, ordered by |g|
coherence_offsets : function
    Pixel offsets and Gaussian weights of a partially coherent beam
build_index_map : function
    Pixels and weights every reflection is read from

Notes
-----
Offsets are confined to ``|delta| < M / 2`` pixels so that the neighbourhoods
of adjacent reflections never overlap.
"""

import logging
import math
import warnings

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Bool, Float, Int, jaxtyped

from slicium.errors import NumericalAliasingRisk
from slicium.types import GridSpec, IndexMap, create_index_map, scalar_num
from slicium.ucell import bravais_allowed

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

_ORDER_DECIMALS: int = 10


@beartype
def enumerate_reflections(grid: GridSpec, bravais: str) -> Int[Array, " R 2"]:
    """List the reflections kept by the simulation.

    Parameters
    ----------
    grid : GridSpec
        Sampling grid, provides the cell lengths, M, N and k_max.
    bravais : str
        Bravais lattice whose selection rule filters (h, k).

    Returns
    -------
    reflections : Int[Array, " R 2"]
        Miller indices (h, k) with ``(h/a)^2 + (k/b)^2 <= k_max^2`` and
        ``|h M|, |k M| < N / 2`` that obey the selection rule, ordered by
        |g| then h then k. (0, 0) is always first.
    """
    half_range: int = (grid.pixels_per_cell - 1) // 2
    indices: Int[Array, " m"] = jnp.arange(-half_range, half_range + 1)
    h_grid, k_grid = jnp.meshgrid(indices, indices, indexing="ij")
    h_flat: Int[Array, " c"] = h_grid.ravel()
    k_flat: Int[Array, " c"] = k_grid.ravel()
    g_sq: Float[Array, " c"] = jnp.square(h_flat / grid.cell_x) + jnp.square(
        k_flat / grid.cell_y
    )
    keep: Bool[Array, " c"] = jnp.logical_and(
        g_sq <= jnp.square(grid.k_max) * (1.0 + 1e-12),
        bravais_allowed(h_flat, k_flat, bravais),
    )
    h_kept: Int[Array, " R"] = h_flat[keep]
    k_kept: Int[Array, " R"] = k_flat[keep]
    g_kept: Float[Array, " R"] = jnp.round(jnp.sqrt(g_sq[keep]), _ORDER_DECIMALS)
    order: Int[Array, " R"] = jnp.lexsort((k_kept, h_kept, g_kept))
    reflections: Int[Array, " R 2"] = jnp.stack(
        [h_kept[order], k_kept[order]], axis=-1
    ).astype(jnp.int32)
    logger.debug("Enumerated %d %s reflections", reflections.shape[0], bravais)
    return reflections


@beartype
def coherence_offsets(
    grid: GridSpec,
    part_k_max: scalar_num,
    part_k_extent: int = 3,
) -> Tuple[Int[Array, " P 2"], Float[Array, " P"]]:
    """Pixel offsets and weights of a beam with Gaussian angular spread.

    Parameters
    ----------
    grid : GridSpec
        Sampling grid.
    part_k_max : scalar_num
        Standard deviation of the transverse wavevector spread in 1/Å.
        Zero gives the coherent single offset (0, 0).
    part_k_extent : int, optional
        Offsets farther than this many standard deviations are dropped.
        Default: 3

    Returns
    -------
    offsets : Int[Array, " P 2"]
        Pixel offsets (column, row), (0, 0) first.
    weights : Float[Array, " P"]
        Normalised Gaussian weights ``exp(-|dk|^2 / (2 sigma^2))``, summing
        to one.

    Warns
    -----
    NumericalAliasingRisk
        If `part_k_max` exceeds half the reflection spacing, where the
        spread of one reflection reaches its neighbours and is truncated,
        or if `part_k_extent` standard deviations reach past
        ``ceil(M / 2) - 1`` pixels.
    """
    sigma: float = float(part_k_max)
    if sigma <= 0.0:
        return (
            jnp.zeros((1, 2), dtype=jnp.int32),
            jnp.ones((1,), dtype=jnp.float64),
        )
    spacing_limit: float = 0.5 / max(float(grid.cell_x), float(grid.cell_y))
    if sigma > spacing_limit:
        warnings.warn(
            f"part_k_max={sigma:.4g} 1/A exceeds half the reflection spacing "
            f"({spacing_limit:.4g} 1/A); the beam spread is truncated at the "
            "neighbouring reflections",
            NumericalAliasingRisk,
            stacklevel=2,
        )
    radius: float = part_k_extent * sigma
    dk_x: float = float(grid.k_pixel_x)
    dk_y: float = float(grid.k_pixel_y)
    cell_limit: int = math.ceil(grid.n_cells / 2) - 1
    wanted_x: int = int(math.floor(radius / dk_x))
    wanted_y: int = int(math.floor(radius / dk_y))
    if max(wanted_x, wanted_y) > cell_limit:
        warnings.warn(
            f"part_k_max={sigma:.4g} 1/A with part_k_extent={part_k_extent} "
            f"needs offsets of {max(wanted_x, wanted_y)} pixels but "
            f"n_cells={grid.n_cells} allows {cell_limit}; the beam spread is "
            "truncated, increase n_cells",
            NumericalAliasingRisk,
            stacklevel=2,
        )
    reach_x: int = min(wanted_x, cell_limit)
    reach_y: int = min(wanted_y, cell_limit)

    dx_grid, dy_grid = jnp.meshgrid(
        jnp.arange(-reach_x, reach_x + 1),
        jnp.arange(-reach_y, reach_y + 1),
        indexing="ij",
    )
    dx_flat: Int[Array, " c"] = dx_grid.ravel()
    dy_flat: Int[Array, " c"] = dy_grid.ravel()
    dk_sq: Float[Array, " c"] = jnp.square(dx_flat * dk_x) + jnp.square(
        dy_flat * dk_y
    )
    inside: Bool[Array, " c"] = dk_sq <= radius**2 * (1.0 + 1e-12)
    dx_kept: Int[Array, " P"] = dx_flat[inside]
    dy_kept: Int[Array, " P"] = dy_flat[inside]
    dk_kept: Float[Array, " P"] = dk_sq[inside]
    order: Int[Array, " P"] = jnp.lexsort((dy_kept, dx_kept, dk_kept))
    offsets: Int[Array, " P 2"] = jnp.stack(
        [dx_kept[order], dy_kept[order]], axis=-1
    ).astype(jnp.int32)
    raw: Float[Array, " P"] = jnp.exp(-dk_kept[order] / (2.0 * sigma**2))
    weights: Float[Array, " P"] = raw / jnp.sum(raw)
    if wanted_x == 0 and wanted_y == 0:
        logger.info(
            "part_k_max=%.4g 1/A is below the reciprocal pixel size; the beam "
            "is treated as coherent",
            sigma,
        )
    return offsets, weights


@jaxtyped(typechecker=beartype)
def build_index_map(
    reflections: Int[Array, " R 2"],
    grid: GridSpec,
    offsets: Int[Array, " P 2"],
    weights: Float[Array, " P"],
) -> IndexMap:
    """Pixels and weights every reflection is read from.

    Reflection (h, k) with offset (dx, dy) is read at row
    ``(k M + dy) mod N`` and column ``(h M + dx) mod N``.
    """
    cols: Int[Array, " R P"] = jnp.mod(
        reflections[:, 0:1] * grid.n_cells + offsets[None, :, 0], grid.n_pixels
    )
    rows: Int[Array, " R P"] = jnp.mod(
        reflections[:, 1:2] * grid.n_cells + offsets[None, :, 1], grid.n_pixels
    )
    return create_index_map(
        rows=rows.astype(jnp.int32),
        cols=cols.astype(jnp.int32),
        weights=jnp.broadcast_to(weights, rows.shape),
    )
