"""Data input utilities for multislice simulation.

Extended Summary
----------------
Reads the files a simulation depends on: Kirkland scattering-factor tables
and JSON simulation configurations, and resolves element symbols.

Routine Listings
----------------
ELEMENT_SYMBOLS : tuple
    Element symbols ordered by atomic number
atomic_number : function
    Returns atomic number for given atomic symbol string
load_kirkland_table : function
    Loads Kirkland scattering factors from CSV file
load_simulation_config : function
    Reads and validates a JSON simulation configuration
"""

from .data_io import (
    ELEMENT_SYMBOLS,
    atomic_number,
    load_kirkland_table,
    load_simulation_config,
)

__all__ = [
    "ELEMENT_SYMBOLS",
    "atomic_number",
    "load_kirkland_table",
    "load_simulation_config",
]
