"""Exception and warning categories raised by slicium.

Extended Summary
----------------
Configuration problems are detected eagerly by the factory functions, before
any Fourier-transform work, and are raised as `ConfigurationError`. Problems
in user data that do not prevent a simulation are reported through
`warnings.warn` with a dedicated category so callers can filter or escalate
them.

Routine Listings
----------------
ConfigurationError : exception
    Invalid simulation configuration
NumericalError : exception
    Non-finite values produced during a multislice run
GeometryWarning : warning
    Atoms duplicated at periodic boundaries of the unit cell
NumericalAliasingRisk : warning
    Sampling choices that make the result ambiguous or aliased
"""


class ConfigurationError(ValueError):
    """Raised when a simulation configuration is invalid."""


class NumericalError(FloatingPointError):
    """Raised when a multislice run produces NaN or infinite values.

    Only the failing tilt evaluation is aborted; cached transmission and
    propagator arrays are immutable and remain valid.
    """


class GeometryWarning(UserWarning):
    """Atoms coincide after wrapping fractional coordinates into [0, 1).

    Duplicates silently double the potential of the affected site.
    """


class NumericalAliasingRisk(RuntimeWarning):
    """Sampling parameters risk aliasing or ambiguous weight assignment."""


__all__ = [
    "ConfigurationError",
    "NumericalError",
    "GeometryWarning",
    "NumericalAliasingRisk",
]
