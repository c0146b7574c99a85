import chex
import jax
import jax.numpy as jnp
from absl.testing import parameterized

from slicium.simul.propagator import (
    fresnel_propagator,
    propagator_stack,
    two_beam_propagator,
)
from slicium.types import create_grid_spec
from slicium.ucell import band_limit_mask

jax.config.update("jax_enable_x64", True)

WAVELENGTH: float = 0.025079


class TestFresnelPropagator(chex.TestCase, parameterized.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.grid = create_grid_spec(64, 4, 4.0, 4.0, 1.0)
        self.mask = band_limit_mask(self.grid)

    def test_zero_distance_is_mask(self) -> None:
        kernel = fresnel_propagator(self.grid, WAVELENGTH, 0.0)
        chex.assert_trees_all_close(kernel, self.mask.astype(jnp.complex128))

    @parameterized.parameters(0.5, 1.3575, 10.0)
    def test_unit_modulus_inside_band_limit(self, dz: float) -> None:
        kernel = fresnel_propagator(self.grid, WAVELENGTH, dz)
        modulus = jnp.abs(kernel)
        chex.assert_trees_all_close(
            modulus, self.mask.astype(jnp.float64), atol=1e-12
        )
        chex.assert_trees_all_close(kernel[0, 0], 1.0 + 0j)

    def test_phase_value(self) -> None:
        """Pixel (h, k) = (1, 0) carries phase -pi lambda dz |g|^2."""
        kernel = fresnel_propagator(self.grid, WAVELENGTH, 2.0)
        expected = jnp.exp(-1j * jnp.pi * WAVELENGTH * 2.0 * 0.25**2)
        chex.assert_trees_all_close(kernel[0, 4], expected, atol=1e-12)

    def test_tilt_moves_the_stationary_point(self) -> None:
        """With k_tilt = -dk along x the pixel at +dk has zero phase."""
        dk = 1.0 / 16.0
        kernel = fresnel_propagator(self.grid, WAVELENGTH, 3.0, -dk, 0.0)
        chex.assert_trees_all_close(kernel[0, 1], 1.0 + 0j, atol=1e-12)
        expected = jnp.exp(-1j * jnp.pi * WAVELENGTH * 3.0 * dk**2)
        chex.assert_trees_all_close(kernel[0, 0], expected, atol=1e-12)

    def test_band_limit_ignores_tilt(self) -> None:
        tilted = fresnel_propagator(self.grid, WAVELENGTH, 3.0, 0.3, -0.2)
        chex.assert_trees_all_equal(jnp.abs(tilted) > 0.5, self.mask)


class TestTwoBeamPropagator(chex.TestCase):
    def test_only_two_pixels_survive(self) -> None:
        grid = create_grid_spec(64, 4, 4.0, 4.0, 1.0)
        kernel = fresnel_propagator(grid, WAVELENGTH, 1.0)
        reduced = two_beam_propagator(grid, kernel, (1, 0))
        assert int(jnp.sum(jnp.abs(reduced) > 0)) == 2
        chex.assert_trees_all_close(reduced[0, 0], kernel[0, 0])
        chex.assert_trees_all_close(reduced[0, 4], kernel[0, 4])

    def test_negative_reflection(self) -> None:
        grid = create_grid_spec(64, 4, 4.0, 4.0, 1.0)
        kernel = fresnel_propagator(grid, WAVELENGTH, 1.0)
        reduced = two_beam_propagator(grid, kernel, (0, -2))
        chex.assert_trees_all_close(reduced[56, 0], kernel[56, 0])
        assert int(jnp.sum(jnp.abs(reduced) > 0)) == 2


class TestPropagatorStack(chex.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.grid = create_grid_spec(64, 4, 4.0, 4.0, 1.0)

    def test_full_and_partial(self) -> None:
        stack = propagator_stack(self.grid, WAVELENGTH, 2.0, 0.5)
        chex.assert_shape(stack, (2, 64, 64))
        chex.assert_trees_all_close(
            stack[0], fresnel_propagator(self.grid, WAVELENGTH, 2.0)
        )
        chex.assert_trees_all_close(
            stack[1], fresnel_propagator(self.grid, WAVELENGTH, 0.5)
        )

    def test_two_beam_stack(self) -> None:
        stack = propagator_stack(
            self.grid, WAVELENGTH, 2.0, 0.0, two_beam=(1, 1)
        )
        nonzero = jnp.sum(jnp.abs(stack) > 0, axis=(-2, -1))
        chex.assert_trees_all_equal(nonzero, jnp.array([2, 2]))
