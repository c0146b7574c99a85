"""Projected potentials of the atomic layers.

Extended Summary
----------------
Every layer of the unit cell is turned into a projected potential (V Å) on
the supercell grid. The potential is assembled in reciprocal space as the
product of the electron form factor, the Debye-Waller factor and the
structure factor of the layer, then brought to real space with one inverse
FFT per layer.

Routine Listings
----------------
structure_factors : function
    Supercell structure factor of one species in every layer
layer_potentials : function
    Projected potential of every layer

Notes
-----
The structure factor is evaluated only on pixels whose frequency index is a
multiple of the unit-cell count M. There the supercell sum equals M^2 times
the single-cell sum; on every other pixel it vanishes exactly. The resulting
potential is therefore periodic with the unit cell, without real-space
truncation of atomic tails.
"""

import logging

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Optional
from jaxtyping import Array, Bool, Complex, Float, Int, jaxtyped

from slicium.errors import ConfigurationError
from slicium.types import GridSpec, LayerStack, scalar_num
from slicium.ucell import k_squared

from .form_factors import (
    debye_waller_factor,
    kirkland_form_factor,
    mean_square_displacement,
    wentzel_form_factor,
)

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

# 2 pi a0 e in V Å^2, converts form factors (Å) to potentials
POTENTIAL_PREFACTOR: float = 2.0 * jnp.pi * 0.5292 * 14.4


def _cell_phases(
    frac: Float[Array, " L P"],
    n_pixels: int,
    n_cells: int,
) -> Complex[Array, " L P n"]:
    """Phase factors of one axis, non-zero only on period-M pixels."""
    index: Float[Array, " n"] = jnp.fft.fftfreq(n_pixels) * n_pixels
    on_lattice: Bool[Array, " n"] = jnp.mod(jnp.round(index), n_cells) == 0
    phase: Complex[Array, " L P n"] = jnp.exp(
        -2j * jnp.pi * frac[..., None] * index / n_cells
    )
    return jnp.where(on_lattice, n_cells * phase, 0.0)


@jaxtyped(typechecker=beartype)
def structure_factors(
    layers: LayerStack,
    grid: GridSpec,
    atomic_number: int,
) -> Complex[Array, " L n n"]:
    """Supercell structure factor of species `atomic_number` per layer.

    Parameters
    ----------
    layers : LayerStack
        Padded layers of the unit cell.
    grid : GridSpec
        Sampling grid.
    atomic_number : int
        Species whose atoms are summed; other atoms and padding are ignored.

    Returns
    -------
    s_z : Complex[Array, " L n n"]
        ``sum_atoms exp(-2 pi i q.r)`` over the whole supercell in unshifted
        FFT order, indexed ``[layer, row, col]``.
    """
    selected: Float[Array, " L P"] = jnp.logical_and(
        layers.mask, layers.atomic_numbers == atomic_number
    ).astype(jnp.float64)
    ax: Complex[Array, " L P n"] = _cell_phases(
        layers.positions[..., 0], grid.n_pixels, grid.n_cells
    )
    ay: Complex[Array, " L P n"] = _cell_phases(
        layers.positions[..., 1], grid.n_pixels, grid.n_cells
    )
    return jnp.einsum("lp,lpr,lpc->lrc", selected, ay, ax)


@jaxtyped(typechecker=beartype)
def layer_potentials(
    layers: LayerStack,
    grid: GridSpec,
    temperature: scalar_num = 295.0,
    msd_ref: scalar_num = 0.0058,
    form_factor: str = "wentzel",
    kirkland_table: Optional[Float[Array, " Z 12"]] = None,
) -> Float[Array, " L n n"]:
    """Projected potential of every layer in V Å.

    Parameters
    ----------
    layers : LayerStack
        Padded layers of the unit cell.
    grid : GridSpec
        Sampling grid.
    temperature : scalar_num, optional
        Temperature in Kelvin. Default: 295.0
    msd_ref : scalar_num, optional
        Mean-square displacement at 295 K in Å^2. Default: 0.0058
    form_factor : str, optional
        "wentzel" or "kirkland". Default: "wentzel"
    kirkland_table : Float[Array, " Z 12"], optional
        Kirkland coefficients, row Z-1 for atomic number Z. Required for
        "kirkland".

    Returns
    -------
    potentials : Float[Array, " L n n"]
        Real projected potential per layer, periodic with the unit cell.

    Raises
    ------
    ConfigurationError
        If the form factor is unknown, or the Kirkland table is missing or
        does not cover every species.

    Flow
    ----
    - Evaluate |q| and the Debye-Waller factor on the grid
    - For every species present, multiply its form factor by its
      structure factors and accumulate
    - Inverse FFT and scale by 2 pi a0 e / (dx dy)
    """
    species: list[int] = sorted(
        set(layers.atomic_numbers[layers.mask].tolist())
    )
    if form_factor == "kirkland":
        if kirkland_table is None:
            raise ConfigurationError("Kirkland form factor needs a coefficient table")
        if max(species) > kirkland_table.shape[0]:
            raise ConfigurationError(
                f"Kirkland table has {kirkland_table.shape[0]} rows, "
                f"atomic number {max(species)} requested"
            )
    elif form_factor != "wentzel":
        raise ConfigurationError(f"unknown form factor {form_factor!r}")

    q: Float[Array, " n n"] = jnp.sqrt(k_squared(grid))
    damping: Float[Array, " n n"] = debye_waller_factor(
        q, mean_square_displacement(temperature, msd_ref)
    )
    spectrum: Complex[Array, " L n n"] = jnp.zeros(
        (layers.n_layers,) + grid.shape, dtype=jnp.complex128
    )
    for atomic_number in species:
        if form_factor == "kirkland":
            f_e: Float[Array, " n n"] = kirkland_form_factor(
                kirkland_table[atomic_number - 1], q
            )
        else:
            f_e = wentzel_form_factor(atomic_number, q)
        spectrum = spectrum + (f_e * damping) * structure_factors(
            layers, grid, atomic_number
        )

    scale: Float[Array, " "] = POTENTIAL_PREFACTOR / (
        grid.pixel_size_x * grid.pixel_size_y
    )
    potentials: Float[Array, " L n n"] = scale * jnp.real(
        jnp.fft.ifft2(spectrum, axes=(-2, -1))
    )
    logger.debug(
        "Built %d layer potentials for species %s (%s form factor)",
        layers.n_layers,
        species,
        form_factor,
    )
    return potentials
