"""
=========================================================

SLICIUM Package (:mod:`slicium`)

=========================================================

Multislice simulation of electron diffraction through cubic crystals,
written in JAX. The root of the slicium package contains submodules for:
- Error and warning categories (`errors`)
- Data I/O (`inout`)
- Multislice simulation (`simul`)
- Custom types (`types`)
- Unit cell and grid geometry (`ucell`)

Each submodule can be directly accessed after importing slicium.
"""

from . import errors, inout, simul, types, ucell

__all__ = ["errors", "inout", "simul", "types", "ucell"]
