"""Multislice simulation of electron diffraction.

Extended Summary
----------------
Builds projected potentials and transmission functions for the layers of a
cubic crystal, propagates a plane wave through the slab with the multislice
method, and extracts reflection intensities on exact grid pixels.

Routine Listings
----------------
MultisliceSimulator : class
    Cached multislice setup with per-tilt evaluation
wentzel_form_factor : function
    Screened-Coulomb electron form factor
kirkland_form_factor : function
    Kirkland electron form factor from 12 coefficients
mean_square_displacement : function
    Thermal mean-square displacement at a temperature
debye_waller_factor : function
    Debye-Waller damping of the form factors
structure_factors : function
    Supercell structure factor of one species per layer
layer_potentials : function
    Projected potential of every layer
wavelength_ang : function
    Relativistic electron wavelength in Ångstroms
interaction_constant : function
    Relativistic interaction constant sigma
transmission_function : function
    Complex transmission of projected potentials
fresnel_propagator : function
    Band-limited Fresnel kernel
two_beam_propagator : function
    Reduce a kernel to the direct beam and one reflection
propagator_stack : function
    Kernels for a full and a partial slice
enumerate_reflections : function
    Allowed reflections inside the band limit
coherence_offsets : function
    Pixel offsets and weights of a partially coherent beam
build_index_map : function
    Pixels and weights every reflection is read from
reciprocal_amplitude : function
    Normalised reciprocal-space amplitude
extract_intensities : function
    Weighted intensity of every reflection
slice_schedule : function
    Layer and propagator order through the slab
incident_wave : function
    Entrance wavefunction
propagate : function
    Slice loop returning the exit wave
propagate_with_snapshots : function
    Slice loop recording intensities after every slice
check_finite : function
    Raise NumericalError on NaN or infinity
exit_wave_image : function
    Laboratory-frame exit wave

Notes
-----
All array functions are pure and compatible with `jax.jit` and `jax.vmap`.
"""

from .form_factors import (
    debye_waller_factor,
    kirkland_form_factor,
    mean_square_displacement,
    wentzel_form_factor,
)
from .intensity import extract_intensities, reciprocal_amplitude
from .multislice import (
    check_finite,
    exit_wave_image,
    incident_wave,
    propagate,
    propagate_with_snapshots,
    slice_schedule,
)
from .potential import layer_potentials, structure_factors
from .propagator import fresnel_propagator, propagator_stack, two_beam_propagator
from .reflections import build_index_map, coherence_offsets, enumerate_reflections
from .simulator import INTENSITY_MODES, MultisliceSimulator
from .transmission import interaction_constant, transmission_function, wavelength_ang

__all__ = [
    "MultisliceSimulator",
    "INTENSITY_MODES",
    "wentzel_form_factor",
    "kirkland_form_factor",
    "mean_square_displacement",
    "debye_waller_factor",
    "structure_factors",
    "layer_potentials",
    "wavelength_ang",
    "interaction_constant",
    "transmission_function",
    "fresnel_propagator",
    "two_beam_propagator",
    "propagator_stack",
    "enumerate_reflections",
    "coherence_offsets",
    "build_index_map",
    "reciprocal_amplitude",
    "extract_intensities",
    "slice_schedule",
    "incident_wave",
    "propagate",
    "propagate_with_snapshots",
    "check_finite",
    "exit_wave_image",
]
