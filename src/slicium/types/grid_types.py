"""Sampling grid shared by every stage of the multislice calculation.

Extended Summary
----------------
The simulation supercell holds `n_cells` x `n_cells` unit cells sampled by
`n_pixels` x `n_pixels` pixels. Real and reciprocal sampling follow from
these counts and the in-plane lattice constants.

Routine Listings
----------------
GridSpec : PyTree
    Real- and reciprocal-space sampling of the simulation supercell
create_grid_spec : function
    Factory function validating pixel and unit-cell counts

Notes
-----
FFT layout convention, relied on by the propagator, the reflection indexer
and the intensity extractor:

- Arrays are indexed ``[row, col]`` which is ``[y, x]``.
- Reciprocal arrays use the unshifted ``fft2`` ordering: pixel ``i`` along an
  axis carries spatial frequency ``fftfreq(n_pixels, d=pixel_size)[i]``.
- The reflection (h, k) of the unit cell sits at column
  ``(h * n_cells) mod n_pixels`` and row ``(k * n_cells) mod n_pixels``.
- Reciprocal amplitudes are ``fft2(psi) / n_pixels**2`` so that a unit plane
  wave has amplitude one at its pixel.
"""

import warnings

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import NamedTuple
from jax.tree_util import register_pytree_node_class
from jaxtyping import Array, Float

from slicium.errors import ConfigurationError, NumericalAliasingRisk

from .custom_types import scalar_num

jax.config.update("jax_enable_x64", True)


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@register_pytree_node_class
class GridSpec(NamedTuple):
    """Sampling of the simulation supercell.

    Attributes
    ----------
    cell_x : Float[Array, " "]
        Unit-cell length along x (columns) in Ångstroms.
    cell_y : Float[Array, " "]
        Unit-cell length along y (rows) in Ångstroms.
    k_max : Float[Array, " "]
        Band-limit radius in 1/Ångstroms.
    n_pixels : int
        Pixels per side of the supercell, a power of two.
    n_cells : int
        Unit cells per side of the supercell, a power of two >= 2.
    """

    cell_x: Float[Array, " "]
    cell_y: Float[Array, " "]
    k_max: Float[Array, " "]
    n_pixels: int
    n_cells: int

    def tree_flatten(self):
        return (
            (self.cell_x, self.cell_y, self.k_max),
            (self.n_pixels, self.n_cells),
        )

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        n_pixels, n_cells = aux_data
        return cls(*children, n_pixels=n_pixels, n_cells=n_cells)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.n_pixels, self.n_pixels)

    @property
    def pixels_per_cell(self) -> int:
        return self.n_pixels // self.n_cells

    @property
    def pixel_size_x(self) -> Float[Array, " "]:
        return self.cell_x * self.n_cells / self.n_pixels

    @property
    def pixel_size_y(self) -> Float[Array, " "]:
        return self.cell_y * self.n_cells / self.n_pixels

    @property
    def k_pixel_x(self) -> Float[Array, " "]:
        return 1.0 / (self.cell_x * self.n_cells)

    @property
    def k_pixel_y(self) -> Float[Array, " "]:
        return 1.0 / (self.cell_y * self.n_cells)

    @property
    def kx(self) -> Float[Array, " n"]:
        """Column spatial frequencies in unshifted FFT order."""
        return jnp.fft.fftfreq(self.n_pixels) * self.n_pixels * self.k_pixel_x

    @property
    def ky(self) -> Float[Array, " n"]:
        """Row spatial frequencies in unshifted FFT order."""
        return jnp.fft.fftfreq(self.n_pixels) * self.n_pixels * self.k_pixel_y

    @property
    def nyquist(self) -> Float[Array, " "]:
        """Smaller of the two Nyquist frequencies."""
        return 0.5 / jnp.maximum(self.pixel_size_x, self.pixel_size_y)


@beartype
def create_grid_spec(
    n_pixels: int,
    n_cells: int,
    cell_x: scalar_num,
    cell_y: scalar_num,
    k_max: scalar_num,
) -> GridSpec:
    """Create a validated GridSpec.

    Parameters
    ----------
    n_pixels : int
        Pixels per side, a power of two.
    n_cells : int
        Unit cells per side, a power of two of at least two, dividing
        `n_pixels`.
    cell_x, cell_y : scalar_num
        In-plane lattice constants in Ångstroms.
    k_max : scalar_num
        Band-limit radius in 1/Ångstroms.

    Returns
    -------
    grid : GridSpec
        Validated sampling grid.

    Raises
    ------
    ConfigurationError
        If counts are not powers of two, `n_cells` < 2, `n_pixels` is not
        divisible by `n_cells`, or any length is not positive.

    Warns
    -----
    NumericalAliasingRisk
        If `k_max` exceeds two thirds of the Nyquist frequency, where the
        product of transmission and wave starts to alias.
    """
    if not _is_power_of_two(n_pixels):
        raise ConfigurationError(f"n_pixels={n_pixels} is not a power of two")
    if not _is_power_of_two(n_cells):
        raise ConfigurationError(f"n_cells={n_cells} is not a power of two")
    if n_cells < 2:
        raise ConfigurationError("n_cells must be at least 2")
    if n_pixels % n_cells != 0:
        raise ConfigurationError(
            f"n_pixels={n_pixels} is not divisible by n_cells={n_cells}"
        )
    cell_x = jnp.asarray(cell_x, dtype=jnp.float64)
    cell_y = jnp.asarray(cell_y, dtype=jnp.float64)
    k_max = jnp.asarray(k_max, dtype=jnp.float64)
    if not bool(cell_x > 0) or not bool(cell_y > 0):
        raise ConfigurationError("in-plane lattice constants must be positive")
    if not bool(k_max > 0):
        raise ConfigurationError("k_max must be positive")

    grid = GridSpec(
        cell_x=cell_x,
        cell_y=cell_y,
        k_max=k_max,
        n_pixels=n_pixels,
        n_cells=n_cells,
    )
    alias_limit = 2.0 * grid.nyquist / 3.0
    if bool(k_max > alias_limit):
        warnings.warn(
            f"k_max={float(k_max):.4g} 1/A exceeds 2/3 of the Nyquist "
            f"frequency ({float(alias_limit):.4g} 1/A); increase n_pixels",
            NumericalAliasingRisk,
            stacklevel=2,
        )
    return grid
