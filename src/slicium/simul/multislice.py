"""The multislice propagation loop.

Extended Summary
----------------
A wavefunction is carried through the crystal slice by slice. Each step
multiplies by the transmission function of the current layer, transforms to
reciprocal space, multiplies by the propagator and transforms back. The loop
is a `jax.lax.scan` over a precomputed slice schedule so that the whole
run compiles to a single XLA program.

Routine Listings
----------------
slice_schedule : function
    Layer and propagator index of every slice, plus slice depths
incident_wave : function
    Unit plane wave, or superposition for a partially coherent beam
propagate : function
    Run the slice loop and return the exit wave
propagate_with_snapshots : function
    Run the slice loop and record reflection intensities after every slice
check_finite : function
    Raise NumericalError if an array holds NaN or infinity
exit_wave_image : function
    Laboratory-frame exit wave with the tilt phase ramp restored

Notes
-----
A tilted beam is evolved in the frame that moves with the tilt: the phase
ramp ``exp(2 pi i k_tilt . r)`` commutes with the local transmission, so
only the propagator needs the offset ``k + k_tilt``. Reflections stay on
exact grid pixels for any tilt.
"""

import math

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Tuple
from jaxtyping import Array, Complex, Float, Int, Num, jaxtyped

from slicium.errors import NumericalError
from slicium.types import GridSpec, IndexMap, scalar_num

from .intensity import extract_intensities

jax.config.update("jax_enable_x64", True)

SCHEDULE_TOLERANCE: float = 1e-9


@beartype
def slice_schedule(
    n_layers: int,
    z_spacing: scalar_num,
    thickness: scalar_num,
) -> Tuple[Int[Array, " S"], Int[Array, " S"], Float[Array, " S"], float]:
    """Order of layers and propagation distances through a slab.

    Parameters
    ----------
    n_layers : int
        Layers per unit cell, cycled in depth order.
    z_spacing : scalar_num
        Distance between consecutive layers in Å.
    thickness : scalar_num
        Slab thickness in Å.

    Returns
    -------
    layer_index : Int[Array, " S"]
        Layer applied at each slice.
    prop_index : Int[Array, " S"]
        0 to propagate by `z_spacing`, 1 for the partial final slice.
    depths : Float[Array, " S"]
        Depth below the entrance surface after each slice in Å.
    partial_dz : float
        Propagation distance of the partial slice, 0 if there is none.

    Notes
    -----
    ``floor(T / dz)`` full slices are followed by one partial slice when the
    remainder exceeds a relative tolerance. Zero thickness gives zero
    slices.
    """
    dz: float = float(z_spacing)
    total: float = float(thickness)
    n_full: int = int(math.floor(total / dz + SCHEDULE_TOLERANCE))
    remainder: float = max(total - n_full * dz, 0.0)
    has_partial: bool = remainder > SCHEDULE_TOLERANCE * dz
    n_slices: int = n_full + int(has_partial)

    layer_index: Int[Array, " S"] = jnp.mod(
        jnp.arange(n_slices, dtype=jnp.int32), n_layers
    )
    prop_index: Int[Array, " S"] = (
        jnp.zeros(n_slices, dtype=jnp.int32).at[n_full:].set(1)
    )
    depths: Float[Array, " S"] = jnp.minimum(
        jnp.arange(1, n_slices + 1, dtype=jnp.float64) * dz, total
    )
    return layer_index, prop_index, depths, remainder if has_partial else 0.0


@jaxtyped(typechecker=beartype)
def incident_wave(
    grid: GridSpec,
    offsets: Int[Array, " P 2"],
) -> Complex[Array, " n n"]:
    """Entrance wavefunction in the frame co-moving with the tilt.

    Parameters
    ----------
    grid : GridSpec
        Sampling grid.
    offsets : Int[Array, " P 2"]
        Pixel offsets (column, row) of the plane-wave components. A single
        (0, 0) offset gives the uniform unit plane wave.

    Returns
    -------
    psi : Complex[Array, " n n"]
        Sum of unit-amplitude plane waves, one per offset.
    """
    pixels: Float[Array, " n"] = jnp.arange(grid.n_pixels, dtype=jnp.float64)
    col_phase: Complex[Array, " P n"] = jnp.exp(
        2j * jnp.pi * offsets[:, 0:1] * pixels / grid.n_pixels
    )
    row_phase: Complex[Array, " P n"] = jnp.exp(
        2j * jnp.pi * offsets[:, 1:2] * pixels / grid.n_pixels
    )
    return jnp.einsum("pr,pc->rc", row_phase, col_phase)


def _slice_step(
    psi: Complex[Array, " n n"],
    transmission: Complex[Array, " n n"],
    kernel: Complex[Array, " n n"],
) -> Complex[Array, " n n"]:
    return jnp.fft.ifft2(jnp.fft.fft2(psi * transmission) * kernel)


@jax.jit
def propagate(
    psi0: Complex[Array, " n n"],
    transmissions: Complex[Array, " L n n"],
    propagators: Complex[Array, " 2 n n"],
    layer_index: Int[Array, " S"],
    prop_index: Int[Array, " S"],
) -> Complex[Array, " n n"]:
    """Carry `psi0` through every slice of the schedule.

    Cached transmissions and propagators are only read.
    """

    def step(psi, indices):
        layer, prop = indices
        return _slice_step(psi, transmissions[layer], propagators[prop]), None

    exit_wave, _ = jax.lax.scan(step, psi0, (layer_index, prop_index))
    return exit_wave


@jax.jit
def propagate_with_snapshots(
    psi0: Complex[Array, " n n"],
    transmissions: Complex[Array, " L n n"],
    propagators: Complex[Array, " 2 n n"],
    layer_index: Int[Array, " S"],
    prop_index: Int[Array, " S"],
    index_map: IndexMap,
) -> Tuple[Complex[Array, " n n"], Float[Array, " S R"]]:
    """Carry `psi0` through the schedule, recording intensities per slice.

    Snapshots are scan outputs, so recording never alters the evolving
    wavefunction and the final state equals the one of `propagate`.
    """

    def step(psi, indices):
        layer, prop = indices
        psi_next = _slice_step(psi, transmissions[layer], propagators[prop])
        return psi_next, extract_intensities(psi_next, index_map)

    return jax.lax.scan(step, psi0, (layer_index, prop_index))


@beartype
def check_finite(values: Num[Array, " ..."], context: str) -> None:
    """Raise NumericalError when `values` holds NaN or infinity."""
    if not bool(jnp.all(jnp.isfinite(values))):
        raise NumericalError(f"non-finite values in {context}")


@jax.jit
def exit_wave_image(
    psi: Complex[Array, " n n"],
    grid: GridSpec,
    tilt_kx: scalar_num = 0.0,
    tilt_ky: scalar_num = 0.0,
) -> Complex[Array, " n n"]:
    """Laboratory-frame exit wave, the co-moving wave times the tilt ramp.

    Parameters
    ----------
    psi : Complex[Array, " n n"]
        Exit wave in the frame co-moving with the tilt.
    grid : GridSpec
        Sampling grid.
    tilt_kx, tilt_ky : scalar_num, optional
        Transverse beam wavevector in 1/Å in the crystal frame.

    Returns
    -------
    image : Complex[Array, " n n"]
        ``psi * exp(2 pi i (kx x + ky y))`` on the real-space grid.
    """
    x: Float[Array, " n"] = jnp.arange(grid.n_pixels) * grid.pixel_size_x
    y: Float[Array, " n"] = jnp.arange(grid.n_pixels) * grid.pixel_size_y
    ramp: Complex[Array, " n n"] = jnp.exp(
        2j * jnp.pi * (tilt_ky * y[:, None] + tilt_kx * x[None, :])
    )
    return psi * ramp
