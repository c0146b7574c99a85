"""Custom types and data structures for multislice simulation.

Extended Summary
----------------
This module defines JAX-compatible data structures for the crystal, the
sampling grid, the simulation configuration and the intensity records
returned by the simulator. Array containers are PyTrees that pass through
`jax.jit` and `jax.vmap`.

Routine Listings
----------------
CubicLattice : class
    Orthogonal unit cell with fractional atomic basis
LayerStack : class
    Atoms of the unit cell grouped into depth-ordered layers
GridSpec : class
    Real- and reciprocal-space sampling of the supercell
SimulationConfig : class
    Validated configuration surface
IndexMap : class
    Reflection to pixel mapping with partial-coherence weights
FinalIntensity : class
    Exit-surface intensity record
DepthIntensity : class
    Depth-resolved intensity record
create_cubic_lattice : function
    Factory function to create CubicLattice instances
create_layer_stack : function
    Factory function to create LayerStack instances
create_grid_spec : function
    Factory function to create GridSpec instances
create_simulation_config : function
    Factory function to create SimulationConfig instances
create_index_map : function
    Factory function to create IndexMap instances
wrap_fractional : function
    Wrap fractional coordinates into [0, 1)
deduplicate_positions : function
    Report and drop atoms repeated at periodic boundaries

Type Aliases
------------
- `scalar_float`:
    Union type for scalar float values (float or JAX scalar array)
- `scalar_int`:
    Union type for scalar integer values (int or JAX scalar array)
- `scalar_num`:
    Union type for scalar numeric values (int, float, or JAX scalar array)
- `IntensityRecord`:
    Union of the two intensity record variants
"""

from .crystal_types import (
    BRAVAIS_LATTICES,
    CubicLattice,
    LayerStack,
    create_cubic_lattice,
    create_layer_stack,
    deduplicate_positions,
    wrap_fractional,
)
from .custom_types import scalar_float, scalar_int, scalar_num
from .grid_types import GridSpec, create_grid_spec
from .sim_types import (
    FORM_FACTORS,
    DepthIntensity,
    FinalIntensity,
    IndexMap,
    IntensityRecord,
    SimulationConfig,
    create_index_map,
    create_simulation_config,
)

__all__ = [
    "BRAVAIS_LATTICES",
    "FORM_FACTORS",
    "CubicLattice",
    "LayerStack",
    "GridSpec",
    "SimulationConfig",
    "IndexMap",
    "FinalIntensity",
    "DepthIntensity",
    "IntensityRecord",
    "create_cubic_lattice",
    "create_layer_stack",
    "create_grid_spec",
    "create_simulation_config",
    "create_index_map",
    "wrap_fractional",
    "deduplicate_positions",
    "scalar_float",
    "scalar_int",
    "scalar_num",
]
