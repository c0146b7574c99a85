"""Electron scattering factors and thermal damping.

Extended Summary
----------------
Electron form factors f_e(q) in Ångstroms as a function of the spatial
frequency q = 1/d (1/Å), and the Debye-Waller damping applied to them.
Two parameterisations are available: a screened-Coulomb (Wentzel) model that
is analytic in Z, and the Kirkland fit of Lorentzian plus Gaussian terms
whose coefficients are read from a table.

Routine Listings
----------------
wentzel_form_factor : function
    Screened-Coulomb electron form factor
kirkland_form_factor : function
    Kirkland electron form factor from 12 coefficients
mean_square_displacement : function
    Thermal mean-square displacement at a temperature
debye_waller_factor : function
    Debye-Waller damping exp(-2 pi^2 <u^2> q^2)

Notes
-----
Kirkland coefficients are ordered a1 b1 a2 b2 a3 b3 c1 d1 c2 d2 c3 d3, the
layout of the usual 103 x 12 CSV table.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, Float, jaxtyped

from slicium.types import scalar_float, scalar_int, scalar_num

jax.config.update("jax_enable_x64", True)

BOHR_RADIUS_ANG: float = 0.5292
REFERENCE_TEMPERATURE_K: float = 295.0


@jaxtyped(typechecker=beartype)
def wentzel_form_factor(
    atomic_number: scalar_int,
    q: Float[Array, " ..."],
) -> Float[Array, " ..."]:
    """Screened-Coulomb (Wentzel) electron form factor.

    Parameters
    ----------
    atomic_number : scalar_int
        Atomic number Z.
    q : Float[Array, " ..."]
        Spatial frequency magnitude in 1/Å.

    Returns
    -------
    f_e : Float[Array, " ..."]
        Form factor in Å.

    Notes
    -----
    The potential ``Z e / r * exp(-r / R)`` with Thomas-Fermi screening
    radius ``R = 0.885 a0 Z^(-1/3)`` has the first Born form factor

        f_e(q) = 2 Z R^2 / (a0 (1 + (2 pi q R)^2))

    which is finite at q = 0 and falls off as 1/q^2.
    """
    z_value: Float[Array, " "] = jnp.asarray(atomic_number, dtype=jnp.float64)
    screening: Float[Array, " "] = (
        0.885 * BOHR_RADIUS_ANG * jnp.power(z_value, -1.0 / 3.0)
    )
    return (2.0 * z_value * screening**2 / BOHR_RADIUS_ANG) / (
        1.0 + jnp.square(2.0 * jnp.pi * q * screening)
    )


@jaxtyped(typechecker=beartype)
def kirkland_form_factor(
    params: Float[Array, " 12"],
    q: Float[Array, " ..."],
) -> Float[Array, " ..."]:
    """Kirkland electron form factor.

    Parameters
    ----------
    params : Float[Array, " 12"]
        Coefficients a1 b1 a2 b2 a3 b3 c1 d1 c2 d2 c3 d3.
    q : Float[Array, " ..."]
        Spatial frequency magnitude in 1/Å.

    Returns
    -------
    f_e : Float[Array, " ..."]
        ``sum_i a_i / (q^2 + b_i) + c_i exp(-d_i q^2)`` in Å.
    """
    q_sq: Float[Array, " ..."] = jnp.square(q)
    lorentz: Float[Array, " ..."] = (
        params[0] / (q_sq + params[1])
        + params[2] / (q_sq + params[3])
        + params[4] / (q_sq + params[5])
    )
    gauss: Float[Array, " ..."] = (
        params[6] * jnp.exp(-params[7] * q_sq)
        + params[8] * jnp.exp(-params[9] * q_sq)
        + params[10] * jnp.exp(-params[11] * q_sq)
    )
    return lorentz + gauss


@beartype
def mean_square_displacement(
    temperature: scalar_num,
    msd_ref: scalar_num = 0.0058,
) -> Float[Array, " "]:
    """Mean-square displacement in Å^2, linear in temperature.

    High-temperature Debye limit scaled from the value `msd_ref` at 295 K.
    """
    return (
        jnp.asarray(msd_ref, dtype=jnp.float64)
        * jnp.asarray(temperature, dtype=jnp.float64)
        / REFERENCE_TEMPERATURE_K
    )


@jaxtyped(typechecker=beartype)
def debye_waller_factor(
    q: Float[Array, " ..."],
    mean_square_disp: scalar_float,
) -> Float[Array, " ..."]:
    """Debye-Waller damping ``exp(-2 pi^2 <u^2> q^2)``.

    Equal to one at zero displacement and decreasing with both q and
    displacement.
    """
    return jnp.exp(-2.0 * jnp.pi**2 * mean_square_disp * jnp.square(q))
