"""Reflection intensities from wavefunctions.

Routine Listings
----------------
reciprocal_amplitude : function
    Normalised reciprocal-space amplitude of a wavefunction
extract_intensities : function
    Weighted intensity of every reflection
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, Complex, Float, jaxtyped

from slicium.types import IndexMap

jax.config.update("jax_enable_x64", True)


@jaxtyped(typechecker=beartype)
def reciprocal_amplitude(
    psi: Complex[Array, " ... n n"],
) -> Complex[Array, " ... n n"]:
    """``fft2(psi) / N^2``, so a unit plane wave has amplitude one."""
    n_total: int = psi.shape[-1] * psi.shape[-2]
    return jnp.fft.fft2(psi, axes=(-2, -1)) / n_total


@jaxtyped(typechecker=beartype)
def extract_intensities(
    psi: Complex[Array, " n n"],
    index_map: IndexMap,
) -> Float[Array, " R"]:
    """Intensity of every reflection of a real-space wavefunction.

    Parameters
    ----------
    psi : Complex[Array, " n n"]
        Real-space wavefunction.
    index_map : IndexMap
        Pixels and weights of each reflection.

    Returns
    -------
    intensities : Float[Array, " R"]
        ``sum_p w_p |Psi(pixel_p)|^2`` per reflection, non-negative and in
        the order of the reflection list.
    """
    power: Float[Array, " n n"] = jnp.square(jnp.abs(reciprocal_amplitude(psi)))
    return jnp.sum(
        index_map.weights * power[index_map.rows, index_map.cols], axis=-1
    )
