"""Unit cell and sampling-grid geometry.

Extended Summary
----------------
Utilities that prepare the crystal and the sampling grid for the multislice
engine: grouping atoms into layers, applying Bravais selection rules,
relating laboratory and crystal frames, and building reciprocal-space grids.

Routine Listings
----------------
group_layers : function
    Group the basis into depth-ordered layers
bravais_allowed : function
    Selection rule for projected reflections (h, k)
rotation_matrix_2d : function
    In-plane rotation matrix for an angle in degrees
crystal_frame_tilt : function
    Express a laboratory beam tilt in the rotated crystal frame
reflection_vectors : function
    Laboratory-frame reciprocal vectors of reflections
wrap_fractional : function
    Wrap fractional coordinates into [0, 1)
deduplicate_positions : function
    Report and drop atoms repeated at periodic boundaries
frequency_grids : function
    Two-dimensional column and row spatial frequencies
k_squared : function
    Squared magnitude of the offset spatial frequency
band_limit_mask : function
    Pixels inside the band-limit radius
reflection_pixels : function
    Grid pixel of reflections (h, k)
"""

from slicium.types import deduplicate_positions, wrap_fractional

from .grid import band_limit_mask, frequency_grids, k_squared, reflection_pixels
from .lattice import (
    bravais_allowed,
    crystal_frame_tilt,
    group_layers,
    reflection_vectors,
    rotation_matrix_2d,
)

__all__ = [
    "group_layers",
    "bravais_allowed",
    "rotation_matrix_2d",
    "crystal_frame_tilt",
    "reflection_vectors",
    "wrap_fractional",
    "deduplicate_positions",
    "frequency_grids",
    "k_squared",
    "band_limit_mask",
    "reflection_pixels",
]
