"""Tests for reflection enumeration, beam-spread offsets and the index map."""

import chex
import jax
import jax.numpy as jnp
import pytest
from absl.testing import parameterized

from slicium.errors import NumericalAliasingRisk
from slicium.simul.reflections import (
    build_index_map,
    coherence_offsets,
    enumerate_reflections,
)
from slicium.types import create_grid_spec

jax.config.update("jax_enable_x64", True)


class TestEnumerateReflections(chex.TestCase, parameterized.TestCase):
    """Band-limited, selection-rule filtered reflection lists."""

    def test_simple_cubic_order(self) -> None:
        grid = create_grid_spec(64, 4, 4.0, 4.0, 0.56)
        reflections = enumerate_reflections(grid, "simple-cubic")
        expected = jnp.array(
            [
                [0, 0],
                [-1, 0], [0, -1], [0, 1], [1, 0],
                [-1, -1], [-1, 1], [1, -1], [1, 1],
                [-2, 0], [0, -2], [0, 2], [2, 0],
                [-2, -1], [-2, 1], [-1, -2], [-1, 2],
                [1, -2], [1, 2], [2, -1], [2, 1],
            ],
            dtype=jnp.int32,
        )
        chex.assert_trees_all_equal(reflections, expected)

    def test_edge_of_band_limit_is_kept(self) -> None:
        """|g| = k_max exactly stays in the list."""
        grid = create_grid_spec(64, 4, 4.0, 4.0, 0.5)
        reflections = enumerate_reflections(grid, "simple-cubic")
        assert reflections.shape[0] == 13
        assert [2, 0] in reflections.tolist()

    def test_grid_limits_the_index_range(self) -> None:
        """Four pixels per cell only hold |h|, |k| <= 1."""
        with pytest.warns(NumericalAliasingRisk):
            grid = create_grid_spec(32, 8, 4.0, 4.0, 1.0)
        reflections = enumerate_reflections(grid, "simple-cubic")
        assert reflections.shape[0] == 9
        assert int(jnp.max(jnp.abs(reflections))) == 1

    @parameterized.named_parameters(
        ("body_centered", "body-centered"),
        ("face_centered", "face-centered"),
    )
    def test_even_index_sum(self, bravais: str) -> None:
        grid = create_grid_spec(128, 4, 4.0, 4.0, 1.2)
        reflections = enumerate_reflections(grid, bravais)
        assert bool(jnp.all(jnp.sum(reflections, axis=-1) % 2 == 0))
        chex.assert_trees_all_equal(reflections[0], jnp.array([0, 0]))

    def test_diamond_rule_on_production_grid(self) -> None:
        grid = create_grid_spec(512, 8, 5.431, 5.431, 2.0)
        reflections = enumerate_reflections(grid, "diamond")
        h, k = reflections[:, 0], reflections[:, 1]
        mixed = (h % 2) != (k % 2)
        assert not bool(jnp.any(mixed))
        both_even = jnp.logical_and(h % 2 == 0, k % 2 == 0)
        assert bool(jnp.all(jnp.where(both_even, (h + k) % 4 == 0, True)))
        g = jnp.hypot(h / 5.431, k / 5.431)
        assert bool(jnp.all(g <= 2.0 + 1e-9))
        assert bool(jnp.all(jnp.diff(g) >= -1e-9))

    def test_deterministic(self) -> None:
        grid = create_grid_spec(128, 4, 4.0, 5.0, 1.0)
        first = enumerate_reflections(grid, "face-centered")
        second = enumerate_reflections(grid, "face-centered")
        chex.assert_trees_all_equal(first, second)


class TestCoherenceOffsets(chex.TestCase):
    """Gaussian beam spread sampled on whole pixels."""

    def setUp(self) -> None:
        super().setUp()
        self.grid = create_grid_spec(64, 4, 4.0, 4.0, 1.0)

    def test_coherent_beam(self) -> None:
        offsets, weights = coherence_offsets(self.grid, 0.0)
        chex.assert_trees_all_equal(offsets, jnp.zeros((1, 2), dtype=jnp.int32))
        chex.assert_trees_all_close(weights, jnp.ones(1))

    def test_nine_offsets(self) -> None:
        offsets, weights = coherence_offsets(self.grid, 0.03)
        chex.assert_shape(offsets, (9, 2))
        chex.assert_trees_all_equal(offsets[0], jnp.array([0, 0]))
        chex.assert_trees_all_close(jnp.sum(weights), 1.0)
        assert bool(jnp.all(weights[0] >= weights))
        assert int(jnp.max(jnp.abs(offsets))) == 1

    def test_offsets_stay_within_half_cell(self) -> None:
        """Even a wide spread never reaches the neighbouring reflection."""
        with pytest.warns(NumericalAliasingRisk):
            offsets, weights = coherence_offsets(self.grid, 0.2)
        assert int(jnp.max(jnp.abs(offsets))) < 2
        chex.assert_trees_all_close(jnp.sum(weights), 1.0)

    def test_cell_count_truncation_warns(self) -> None:
        """Three sigma of 0.2/a needs four pixels, eight cells allow three."""
        grid = create_grid_spec(64, 8, 4.0, 4.0, 1.0)
        with pytest.warns(NumericalAliasingRisk, match="increase n_cells"):
            offsets, weights = coherence_offsets(grid, 0.05, 3)
        assert int(jnp.max(jnp.abs(offsets))) == 3
        chex.assert_trees_all_close(jnp.sum(weights), 1.0)

    def test_two_cells_collapse_with_warning(self) -> None:
        grid = create_grid_spec(64, 2, 4.0, 4.0, 1.0)
        with pytest.warns(NumericalAliasingRisk, match="increase n_cells"):
            offsets, _ = coherence_offsets(grid, 0.1, 3)
        chex.assert_trees_all_equal(offsets, jnp.zeros((1, 2), dtype=jnp.int32))

    def test_spread_below_pixel_is_coherent(self) -> None:
        with self.assertLogs("slicium.simul.reflections", level="INFO"):
            offsets, weights = coherence_offsets(self.grid, 0.01)
        chex.assert_shape(offsets, (1, 2))
        chex.assert_trees_all_close(weights, jnp.ones(1))


class TestBuildIndexMap(chex.TestCase):
    def test_pixels_and_weights(self) -> None:
        grid = create_grid_spec(128, 8, 4.0, 4.0, 1.0)
        reflections = jnp.array([[0, 0], [1, 2], [-1, 0]], dtype=jnp.int32)
        offsets = jnp.array([[0, 0], [1, 0], [0, -1]], dtype=jnp.int32)
        weights = jnp.array([0.5, 0.25, 0.25])
        index_map = build_index_map(reflections, grid, offsets, weights)
        chex.assert_shape(index_map.rows, (3, 3))
        assert int(index_map.cols[1, 1]) == 9
        assert int(index_map.rows[1, 1]) == 16
        assert int(index_map.rows[0, 2]) == 127
        assert int(index_map.cols[2, 0]) == 120
        chex.assert_trees_all_close(index_map.weights[2], weights)
