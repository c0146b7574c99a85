"""High-level multislice simulator.

Extended Summary
----------------
`MultisliceSimulator` performs every validation and every cached
construction once, at setup: the lattice and grid, the layer potentials and
their transmission functions, the reflection list, the index map and the
untilted propagators. Each call to `run` then evaluates one beam tilt as a
pure function of those immutable arrays, so tilt evaluations never interfere
and batches of tilts are vectorised with `jax.vmap`.

Routine Listings
----------------
MultisliceSimulator : class
    Cached multislice setup with per-tilt evaluation
INTENSITY_MODES : tuple
    Names of the supported output modes

Notes
-----
Tilt angles are in milliradians. The crystal rotation about the beam axis is
applied before the tilt.
"""

import logging

import jax
import jax.numpy as jnp
from beartype import beartype
from beartype.typing import Optional, Tuple
from jaxtyping import Array, Complex, Float, Int, Num

from slicium.errors import ConfigurationError
from slicium.inout import load_kirkland_table
from slicium.types import (
    CubicLattice,
    DepthIntensity,
    FinalIntensity,
    GridSpec,
    IndexMap,
    IntensityRecord,
    LayerStack,
    SimulationConfig,
    create_cubic_lattice,
    create_grid_spec,
    scalar_num,
)
from slicium.ucell import crystal_frame_tilt, group_layers, reflection_vectors

from .intensity import extract_intensities
from .multislice import (
    check_finite,
    exit_wave_image,
    incident_wave,
    propagate,
    propagate_with_snapshots,
    slice_schedule,
)
from .potential import layer_potentials
from .propagator import propagator_stack
from .reflections import build_index_map, coherence_offsets, enumerate_reflections
from .transmission import interaction_constant, transmission_function, wavelength_ang

jax.config.update("jax_enable_x64", True)

logger = logging.getLogger(__name__)

INTENSITY_MODES: Tuple[str, ...] = ("final", "depth")

MRAD: float = 1e-3


class MultisliceSimulator:
    """Multislice simulation of one crystal configuration.

    Parameters
    ----------
    config : SimulationConfig
        Validated configuration from `create_simulation_config` or
        `slicium.inout.load_simulation_config`.

    Attributes
    ----------
    config : SimulationConfig
        The configuration the simulator was built from.
    lattice : CubicLattice
        Wrapped and de-duplicated crystal.
    grid : GridSpec
        Sampling grid of the supercell.
    layers : LayerStack
        Atomic layers of the unit cell.
    reflections : Int[Array, " R 2"]
        Reflections (h, k) in output order.
    g_vectors : Float[Array, " R 2"]
        Laboratory-frame reciprocal vectors of the reflections, rotated
        with the crystal.
    index_map : IndexMap
        Pixels and weights every reflection is read from.
    transmissions : Complex[Array, " L n n"]
        Transmission function of every layer.
    wavelength : Float[Array, " "]
        Electron wavelength in Å.
    depths : Float[Array, " S"]
        Depth after every slice in Å.

    Raises
    ------
    ConfigurationError
        If the two-beam reflection is not among the allowed reflections, the
        Kirkland table cannot be read, or the backend is unknown. All checks
        run before any potential is built.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self.config: SimulationConfig = config
        self._device = self._select_device(config.backend)

        self.lattice: CubicLattice = create_cubic_lattice(
            config.lattice,
            config.positions,
            config.atomic_numbers,
            bravais=config.bravais,
            temperature=config.temperature,
            rotation_deg=config.rotation_deg,
            deduplicate=config.deduplicate,
        )
        self.grid: GridSpec = create_grid_spec(
            config.n_pixels,
            config.n_cells,
            config.lattice[0],
            config.lattice[1],
            config.k_max,
        )
        self.layers: LayerStack = group_layers(self.lattice)
        self.reflections: Int[Array, " R 2"] = enumerate_reflections(
            self.grid, config.bravais
        )
        if config.two_beam is not None:
            present: bool = bool(
                jnp.any(
                    jnp.all(
                        self.reflections == jnp.array(config.two_beam), axis=-1
                    )
                )
            )
            if not present:
                raise ConfigurationError(
                    f"two-beam reflection {config.two_beam} is forbidden or "
                    "outside the band limit"
                )
        offsets, weights = coherence_offsets(
            self.grid, config.part_k_max, config.part_k_extent
        )
        self.index_map: IndexMap = build_index_map(
            self.reflections, self.grid, offsets, weights
        )
        kirkland_table: Optional[Float[Array, " Z 12"]] = None
        if config.form_factor == "kirkland":
            try:
                kirkland_table = load_kirkland_table(config.kirkland_path)
            except (OSError, ValueError) as err:
                raise ConfigurationError(
                    f"cannot read Kirkland table {config.kirkland_path!r}: {err}"
                ) from err

        layer_index, prop_index, depths, partial_dz = slice_schedule(
            self.layers.n_layers, self.layers.z_spacing, config.thickness
        )
        self.depths: Float[Array, " S"] = depths
        self._partial_dz: float = partial_dz
        self.wavelength: Float[Array, " "] = wavelength_ang(config.beam_energy)
        sigma: Float[Array, " "] = interaction_constant(config.beam_energy)

        potentials: Float[Array, " L n n"] = layer_potentials(
            self.layers,
            self.grid,
            temperature=config.temperature,
            msd_ref=config.msd_ref,
            form_factor=config.form_factor,
            kirkland_table=kirkland_table,
        )
        transmissions: Complex[Array, " L n n"] = transmission_function(
            potentials, sigma, config.absorption
        )
        check_finite(transmissions, "transmission functions")
        propagators: Complex[Array, " 2 n n"] = propagator_stack(
            self.grid,
            self.wavelength,
            self.layers.z_spacing,
            partial_dz,
            two_beam=config.two_beam,
        )

        self.transmissions = self._place(transmissions)
        self._propagators = self._place(propagators)
        self._psi0 = self._place(incident_wave(self.grid, offsets))
        self._layer_index = self._place(layer_index)
        self._prop_index = self._place(prop_index)

        logger.info(
            "Grid %dx%d px over %dx%d cells (%.4g A/px), k_max %.4g 1/A",
            self.grid.n_pixels,
            self.grid.n_pixels,
            self.grid.n_cells,
            self.grid.n_cells,
            float(self.grid.pixel_size_x),
            config.k_max,
        )
        logger.info(
            "%d layers, %d slices, %d reflections, %d coherence offsets",
            self.layers.n_layers,
            self.n_slices,
            self.reflections.shape[0],
            offsets.shape[0],
        )

    @staticmethod
    def _select_device(backend: Optional[str]):
        if backend is None:
            return None
        try:
            return jax.devices(backend)[0]
        except RuntimeError as err:
            raise ConfigurationError(
                f"JAX backend {backend!r} is not available: {err}"
            ) from err

    def _place(self, array: Num[Array, " ..."]) -> Num[Array, " ..."]:
        if self._device is None:
            return array
        return jax.device_put(array, self._device)

    @property
    def n_slices(self) -> int:
        """Number of slices through the slab."""
        return int(self.depths.shape[0])

    @property
    def g_vectors(self) -> Float[Array, " R 2"]:
        """Laboratory-frame reciprocal vectors (1/Å) of `reflections`."""
        return reflection_vectors(self.reflections, self.lattice)

    def _tilt_wavevector(
        self, angle_x: scalar_num, angle_y: scalar_num
    ) -> Tuple[Float[Array, " "], Float[Array, " "]]:
        tilt_x, tilt_y = crystal_frame_tilt(
            angle_x, angle_y, self.lattice.rotation_deg
        )
        return (
            tilt_x * MRAD / self.wavelength,
            tilt_y * MRAD / self.wavelength,
        )

    def _propagators_for(
        self, tilt_kx: Float[Array, " "], tilt_ky: Float[Array, " "]
    ) -> Complex[Array, " 2 n n"]:
        return propagator_stack(
            self.grid,
            self.wavelength,
            self.layers.z_spacing,
            self._partial_dz,
            tilt_kx,
            tilt_ky,
            two_beam=self.config.two_beam,
        )

    def _evaluate(
        self,
        angle_x: scalar_num,
        angle_y: scalar_num,
        mode: str,
        propagators: Optional[Complex[Array, " 2 n n"]] = None,
    ) -> Tuple[Complex[Array, " n n"], Float[Array, " ..."]]:
        """Pure evaluation of one tilt, safe under `jax.vmap`."""
        if propagators is None:
            tilt_kx, tilt_ky = self._tilt_wavevector(angle_x, angle_y)
            propagators = self._propagators_for(tilt_kx, tilt_ky)
        if mode == "depth":
            return propagate_with_snapshots(
                self._psi0,
                self.transmissions,
                propagators,
                self._layer_index,
                self._prop_index,
                self.index_map,
            )
        exit_wave = propagate(
            self._psi0,
            self.transmissions,
            propagators,
            self._layer_index,
            self._prop_index,
        )
        return exit_wave, extract_intensities(exit_wave, self.index_map)

    @staticmethod
    def _check_mode(mode: str) -> None:
        if mode not in INTENSITY_MODES:
            raise ConfigurationError(
                f"unknown mode {mode!r}, expected one of {INTENSITY_MODES}"
            )

    @beartype
    def run(
        self,
        angle_x: scalar_num = 0.0,
        angle_y: scalar_num = 0.0,
        mode: str = "final",
    ) -> IntensityRecord:
        """Simulate one beam tilt.

        Parameters
        ----------
        angle_x, angle_y : scalar_num, optional
            Beam tilt components in milliradians. Default: 0.0
        mode : str, optional
            "final" for exit-surface intensities, "depth" for intensities
            after every slice. Default: "final"

        Returns
        -------
        record : IntensityRecord
            `FinalIntensity` or `DepthIntensity` according to `mode`.

        Raises
        ------
        ConfigurationError
            If `mode` is unknown.
        NumericalError
            If the run produced NaN or infinite values. Cached arrays are
            unaffected and later runs may proceed.
        """
        self._check_mode(mode)
        logger.debug(
            "Tilt (%.4g, %.4g) mrad, %d slices, mode %s",
            float(angle_x),
            float(angle_y),
            self.n_slices,
            mode,
        )
        untilted: bool = float(angle_x) == 0.0 and float(angle_y) == 0.0
        exit_wave, intensities = self._evaluate(
            angle_x, angle_y, mode, self._propagators if untilted else None
        )
        check_finite(exit_wave, f"exit wave at tilt ({angle_x}, {angle_y})")
        check_finite(intensities, f"intensities at tilt ({angle_x}, {angle_y})")
        angle_x_arr = jnp.asarray(angle_x, dtype=jnp.float64)
        angle_y_arr = jnp.asarray(angle_y, dtype=jnp.float64)
        if mode == "depth":
            return DepthIntensity(
                intensities=intensities,
                depths=self.depths,
                reflections=self.reflections,
                exit_wave=exit_wave,
                angle_x=angle_x_arr,
                angle_y=angle_y_arr,
            )
        return FinalIntensity(
            intensities=intensities,
            reflections=self.reflections,
            exit_wave=exit_wave,
            angle_x=angle_x_arr,
            angle_y=angle_y_arr,
        )

    @beartype
    def intensity(
        self,
        angle_x: scalar_num = 0.0,
        angle_y: scalar_num = 0.0,
        mode: str = "final",
    ) -> Tuple[Float[Array, " ..."], Int[Array, " R 2"]]:
        """Intensities and reflection list for one tilt.

        In "depth" mode the intensities carry a leading axis of length
        `n_slices`.
        """
        record: IntensityRecord = self.run(angle_x, angle_y, mode)
        return record.intensities, record.reflections

    @beartype
    def tilt_series(
        self,
        angles_x: Num[Array, " B"],
        angles_y: Num[Array, " B"],
        mode: str = "final",
    ) -> Float[Array, " B ..."]:
        """Intensities for a batch of tilts, vectorised over the batch.

        Parameters
        ----------
        angles_x, angles_y : Num[Array, " B"]
            Tilt components in milliradians.
        mode : str, optional
            "final" gives shape (B, R); "depth" gives (B, S, R).

        Returns
        -------
        intensities : Float[Array, " B ..."]
            Intensities per tilt in the order of `reflections`.
        """
        self._check_mode(mode)
        if angles_x.shape != angles_y.shape:
            raise ConfigurationError(
                f"angles_x {angles_x.shape} and angles_y {angles_y.shape} differ"
            )
        logger.debug("Tilt series of %d tilts, mode %s", angles_x.shape[0], mode)
        batched = jax.vmap(lambda ax, ay: self._evaluate(ax, ay, mode)[1])
        intensities = batched(
            jnp.asarray(angles_x, dtype=jnp.float64),
            jnp.asarray(angles_y, dtype=jnp.float64),
        )
        check_finite(intensities, "tilt series")
        return intensities

    @beartype
    def exit_wave_image(self, record: IntensityRecord) -> Complex[Array, " n n"]:
        """Laboratory-frame exit wave of a record, tilt ramp restored."""
        tilt_kx, tilt_ky = self._tilt_wavevector(record.angle_x, record.angle_y)
        return exit_wave_image(record.exit_wave, self.grid, tilt_kx, tilt_ky)
