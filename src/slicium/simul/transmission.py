"""Conversion of projected potentials into transmission functions.

Routine Listings
----------------
wavelength_ang : function
    Relativistic electron wavelength in Ångstroms
interaction_constant : function
    Relativistic interaction constant sigma in rad / (V Å)
transmission_function : function
    Complex transmission of a projected potential
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Union
from jaxtyping import Array, Complex, Float, Num, jaxtyped

from slicium.types import scalar_float, scalar_num

jax.config.update("jax_enable_x64", True)

ELECTRON_REST_ENERGY_EV: float = 510998.95
H_OVER_SQRT_2ME: float = 12.264259


@jaxtyped(typechecker=beartype)
def wavelength_ang(
    voltage_v: Union[scalar_num, Num[Array, " ..."]],
) -> Float[Array, " ..."]:
    """Calculate the relativistic electron wavelength in angstroms.

    Parameters
    ----------
    voltage_v : Union[scalar_num, Num[Array, " ..."]]
        Accelerating voltage in volts. Scalar or array.

    Returns
    -------
    wavelength : Float[Array, " ..."]
        Electron wavelength in angstroms.

    Examples
    --------
    >>> import slicium as sl
    >>> lam = sl.simul.wavelength_ang(200e3)
    >>> print(f"{float(lam):.5f}")
    0.02508
    """
    voltage: Float[Array, " ..."] = jnp.asarray(voltage_v, dtype=jnp.float64)
    corrected_voltage: Float[Array, " ..."] = voltage * (
        1.0 + voltage / (2.0 * ELECTRON_REST_ENERGY_EV)
    )
    return H_OVER_SQRT_2ME / jnp.sqrt(corrected_voltage)


@jaxtyped(typechecker=beartype)
def interaction_constant(
    voltage_v: Union[scalar_num, Num[Array, " ..."]],
) -> Float[Array, " ..."]:
    """Interaction constant sigma in rad / (V Å).

    Includes the relativistic mass correction:

        sigma = 2 pi / (lambda V) * (E0 + V) / (2 E0 + V)

    with E0 the electron rest energy in eV.
    """
    voltage: Float[Array, " ..."] = jnp.asarray(voltage_v, dtype=jnp.float64)
    return (
        2.0
        * jnp.pi
        / (wavelength_ang(voltage) * voltage)
        * (ELECTRON_REST_ENERGY_EV + voltage)
        / (2.0 * ELECTRON_REST_ENERGY_EV + voltage)
    )


@jaxtyped(typechecker=beartype)
def transmission_function(
    potential: Float[Array, " ... n n"],
    sigma: scalar_float,
    absorption: scalar_float = 0.0,
) -> Complex[Array, " ... n n"]:
    """Transmission ``exp(i sigma (V + i kappa V+))`` of projected potentials.

    Parameters
    ----------
    potential : Float[Array, " ... n n"]
        Projected potential in V Å, one or more layers.
    sigma : scalar_float
        Interaction constant in rad / (V Å).
    absorption : scalar_float, optional
        Absorptive potential as a fraction kappa of the elastic potential.
        Default: 0.0

    Returns
    -------
    transmission : Complex[Array, " ... n n"]
        Complex transmission with modulus at most one.

    Notes
    -----
    The absorptive part uses ``V+ = max(V, 0)`` so that negative excursions
    of the band-limited potential never amplify the wave.
    """
    attenuation: Float[Array, " ... n n"] = (
        sigma * absorption * jnp.maximum(potential, 0.0)
    )
    return jnp.exp(1j * sigma * potential - attenuation)
