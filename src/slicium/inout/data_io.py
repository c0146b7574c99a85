"""Reading scattering tables and simulation configurations from disk.

Extended Summary
----------------
Kirkland form-factor coefficients are read from a CSV table with `pandas`,
one row of twelve coefficients per element ordered by atomic number.
Simulation configurations are read from JSON files whose keys match the
arguments of `create_simulation_config`; atoms may be given by element
symbol instead of atomic number.

Routine Listings
----------------
ELEMENT_SYMBOLS : tuple
    Element symbols ordered by atomic number
atomic_number : function
    Atomic number of an element symbol
load_kirkland_table : function
    Read Kirkland coefficients from a CSV file
load_simulation_config : function
    Read and validate a JSON simulation configuration
"""

import json
import logging
from pathlib import Path

import jax
import jax.numpy as jnp
import pandas as pd
from beartype import beartype
from beartype.roar import BeartypeCallHintViolation
from beartype.typing import Any, Dict, Union
from jaxtyping import Array, Float

from slicium.errors import ConfigurationError
from slicium.types import SimulationConfig, create_simulation_config

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

ELEMENT_SYMBOLS: tuple[str, ...] = (
    "H", "He",
    "Li", "Be", "B", "C", "N", "O", "F", "Ne",
    "Na", "Mg", "Al", "Si", "P", "S", "Cl", "Ar",
    "K", "Ca", "Sc", "Ti", "V", "Cr", "Mn", "Fe", "Co", "Ni", "Cu", "Zn",
    "Ga", "Ge", "As", "Se", "Br", "Kr",
    "Rb", "Sr", "Y", "Zr", "Nb", "Mo", "Tc", "Ru", "Rh", "Pd", "Ag", "Cd",
    "In", "Sn", "Sb", "Te", "I", "Xe",
    "Cs", "Ba",
    "La", "Ce", "Pr", "Nd", "Pm", "Sm", "Eu", "Gd", "Tb", "Dy", "Ho", "Er",
    "Tm", "Yb", "Lu", "Hf", "Ta", "W", "Re", "Os", "Ir", "Pt", "Au", "Hg",
    "Tl", "Pb", "Bi", "Po", "At", "Rn",
    "Fr", "Ra",
    "Ac", "Th", "Pa", "U", "Np", "Pu", "Am", "Cm", "Bk", "Cf", "Es", "Fm",
    "Md", "No", "Lr",
)  # fmt: skip

_SYMBOL_LOOKUP: Dict[str, int] = {
    symbol.lower(): index + 1 for index, symbol in enumerate(ELEMENT_SYMBOLS)
}

KIRKLAND_COLUMNS: int = 12


@beartype
def atomic_number(symbol: str) -> int:
    """Return the atomic number of an element symbol.

    Lookup ignores case and surrounding whitespace.

    Raises
    ------
    KeyError
        If the symbol is not a known element.
    """
    key: str = symbol.strip().lower()
    if key not in _SYMBOL_LOOKUP:
        raise KeyError(f"element symbol {symbol!r} not found")
    return _SYMBOL_LOOKUP[key]


@beartype
def load_kirkland_table(path: Union[str, Path]) -> Float[Array, " Z 12"]:
    """Read Kirkland electron form-factor coefficients.

    Parameters
    ----------
    path : str or Path
        Headerless CSV file, row Z-1 holding a1 b1 a2 b2 a3 b3 c1 d1 c2 d2 c3
        d3 for atomic number Z.

    Returns
    -------
    table : Float[Array, " Z 12"]
        Coefficient table as float64.

    Raises
    ------
    ConfigurationError
        If the table does not have twelve numeric columns.
    """
    kirkland_df: pd.DataFrame = pd.read_csv(path, header=None)
    if kirkland_df.shape[1] != KIRKLAND_COLUMNS:
        raise ConfigurationError(
            f"Kirkland table {path} has {kirkland_df.shape[1]} columns, "
            f"expected {KIRKLAND_COLUMNS}"
        )
    try:
        values = kirkland_df.to_numpy(dtype=float)
    except ValueError as err:
        raise ConfigurationError(
            f"Kirkland table {path} contains non-numeric entries"
        ) from err
    logger.debug("Loaded Kirkland table %s with %d rows", path, values.shape[0])
    return jnp.asarray(values, dtype=jnp.float64)


def _resolve_atom(value: Any) -> int:
    if isinstance(value, str):
        try:
            return atomic_number(value)
        except KeyError as err:
            raise ConfigurationError(str(err)) from err
    return int(value)


@beartype
def load_simulation_config(path: Union[str, Path]) -> SimulationConfig:
    """Read a simulation configuration from a JSON file.

    Parameters
    ----------
    path : str or Path
        JSON object whose keys are the arguments of
        `create_simulation_config`. ``atomic_numbers`` may hold element
        symbols, and a relative ``kirkland_path`` is resolved against the
        directory of the JSON file.

    Returns
    -------
    config : SimulationConfig
        Validated configuration.

    Raises
    ------
    ConfigurationError
        If the file is not a JSON object, holds unknown keys, names an
        unknown element, or fails validation.
    """
    path = Path(path)
    with open(path, "r") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as err:
            raise ConfigurationError(f"{path} is not valid JSON: {err}") from err
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must hold a JSON object")
    unknown: set[str] = set(raw) - set(SimulationConfig._fields)
    if unknown:
        raise ConfigurationError(
            f"unknown configuration keys in {path}: {sorted(unknown)}"
        )
    if "atomic_numbers" in raw:
        raw["atomic_numbers"] = [_resolve_atom(v) for v in raw["atomic_numbers"]]
    if raw.get("kirkland_path") is not None:
        kirkland_path = Path(raw["kirkland_path"])
        if not kirkland_path.is_absolute():
            kirkland_path = path.parent / kirkland_path
        raw["kirkland_path"] = str(kirkland_path)
    try:
        config: SimulationConfig = create_simulation_config(**raw)
    except (TypeError, BeartypeCallHintViolation) as err:
        raise ConfigurationError(f"invalid configuration in {path}: {err}") from err
    logger.info("Loaded simulation configuration from %s", path)
    return config
