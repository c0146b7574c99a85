import warnings

import chex
import jax
import jax.numpy as jnp
import pytest
from absl.testing import parameterized
from jax import tree_util

from slicium.errors import ConfigurationError, GeometryWarning
from slicium.types.crystal_types import (
    CubicLattice,
    create_cubic_lattice,
    create_layer_stack,
    deduplicate_positions,
    wrap_fractional,
)

jax.config.update("jax_enable_x64", True)


class TestWrapFractional(chex.TestCase):
    """Wrapping of fractional coordinates into the unit cell."""

    @chex.variants(with_jit=True, without_jit=True)
    def test_wraps_into_unit_interval(self) -> None:
        """Values outside [0, 1) map back into the cell."""
        positions = jnp.array([[1.0, 0.5, -0.25], [2.5, -1.0, 0.75]])
        wrapped = self.variant(wrap_fractional)(positions)
        expected = jnp.array([[0.0, 0.5, 0.75], [0.5, 0.0, 0.75]])
        chex.assert_trees_all_close(wrapped, expected, atol=1e-12)

    def test_values_just_below_one_snap_to_zero(self) -> None:
        """0.9999999 is the same site as 0."""
        positions = jnp.array([[0.9999999, 0.5, 0.0]])
        wrapped = wrap_fractional(positions)
        assert float(wrapped[0, 0]) == 0.0


class TestDeduplicatePositions(chex.TestCase):
    """Detection of atoms repeated at periodic boundaries."""

    def setUp(self) -> None:
        super().setUp()
        self.positions = jnp.array(
            [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.5, 0.5, 0.0]]
        )
        self.atomic_numbers = jnp.array([14, 14, 14], dtype=jnp.int32)

    def test_drops_later_copy(self) -> None:
        """The later of two coincident atoms is removed."""
        with pytest.warns(GeometryWarning, match="dropped"):
            positions, numbers = deduplicate_positions(
                self.positions, self.atomic_numbers
            )
        chex.assert_shape(positions, (2, 3))
        chex.assert_shape(numbers, (2,))

    def test_keeps_copy_when_requested(self) -> None:
        """drop=False keeps the atoms but still warns."""
        with pytest.warns(GeometryWarning, match="kept"):
            positions, _ = deduplicate_positions(
                self.positions, self.atomic_numbers, drop=False
            )
        chex.assert_shape(positions, (3, 3))

    def test_different_species_are_not_duplicates(self) -> None:
        """Atoms of different species on one site are both kept."""
        numbers = jnp.array([14, 8, 14], dtype=jnp.int32)
        with warnings.catch_warnings():
            warnings.simplefilter("error", GeometryWarning)
            positions, _ = deduplicate_positions(self.positions, numbers)
        chex.assert_shape(positions, (3, 3))


class TestCreateCubicLattice(chex.TestCase, parameterized.TestCase):
    """Validation and construction of CubicLattice."""

    def test_valid_lattice(self) -> None:
        """A valid basis produces float64 / int32 arrays."""
        lattice = create_cubic_lattice(
            [4.0, 4.0, 4.0],
            [[0.0, 0.0, 0.0], [0.5, 0.5, 0.5]],
            [26, 26],
            bravais="body-centered",
            temperature=100.0,
        )
        assert isinstance(lattice, CubicLattice)
        assert lattice.n_atoms == 2
        assert lattice.bravais == "body-centered"
        assert lattice.frac_positions.dtype == jnp.float64
        assert lattice.atomic_numbers.dtype == jnp.int32
        chex.assert_trees_all_close(lattice.temperature, 100.0)

    def test_boundary_duplicate_is_dropped(self) -> None:
        """An atom listed at x=0 and x=1 contributes once."""
        with pytest.warns(GeometryWarning):
            lattice = create_cubic_lattice(
                [4.0, 4.0, 4.0],
                [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.5, 0.5, 0.0]],
                [14, 14, 14],
            )
        assert lattice.n_atoms == 2

    def test_boundary_duplicate_kept_without_deduplicate(self) -> None:
        """deduplicate=False keeps every listed atom."""
        with pytest.warns(GeometryWarning):
            lattice = create_cubic_lattice(
                [4.0, 4.0, 4.0],
                [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]],
                [14, 14],
                deduplicate=False,
            )
        assert lattice.n_atoms == 2

    @parameterized.named_parameters(
        ("empty_basis", [4.0, 4.0, 4.0], [], []),
        ("mismatched_numbers", [4.0, 4.0, 4.0], [[0.0, 0.0, 0.0]], [14, 14]),
        ("negative_lattice", [4.0, -4.0, 4.0], [[0.0, 0.0, 0.0]], [14]),
        ("zero_atomic_number", [4.0, 4.0, 4.0], [[0.0, 0.0, 0.0]], [0]),
        ("two_lengths", [4.0, 4.0], [[0.0, 0.0, 0.0]], [14]),
    )
    def test_invalid_inputs(self, lattice, positions, numbers) -> None:
        """Invalid bases raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            create_cubic_lattice(lattice, positions, numbers)

    def test_unknown_bravais(self) -> None:
        """Unsupported lattice names are rejected."""
        with pytest.raises(ConfigurationError, match="Bravais"):
            create_cubic_lattice(
                [4.0, 4.0, 4.0], [[0.0, 0.0, 0.0]], [14], bravais="hexagonal"
            )

    def test_negative_temperature(self) -> None:
        """Temperatures below zero are rejected."""
        with pytest.raises(ConfigurationError, match="temperature"):
            create_cubic_lattice(
                [4.0, 4.0, 4.0], [[0.0, 0.0, 0.0]], [14], temperature=-1.0
            )

    def test_pytree_roundtrip(self) -> None:
        """Bravais name is static auxiliary data, arrays are leaves."""
        lattice = create_cubic_lattice(
            [4.0, 4.0, 4.0], [[0.0, 0.0, 0.0]], [14], bravais="face-centered"
        )
        leaves, treedef = tree_util.tree_flatten(lattice)
        assert len(leaves) == 5
        rebuilt = tree_util.tree_unflatten(treedef, leaves)
        assert rebuilt.bravais == "face-centered"
        scaled = tree_util.tree_map(lambda x: x * 2, lattice)
        chex.assert_trees_all_close(scaled.cell_lengths, jnp.full(3, 8.0))


class TestCreateLayerStack(chex.TestCase):
    """Validation of LayerStack."""

    def setUp(self) -> None:
        super().setUp()
        self.positions = jnp.zeros((2, 1, 2))
        self.numbers = jnp.full((2, 1), 14, dtype=jnp.int32)
        self.mask = jnp.ones((2, 1), dtype=bool)

    def test_valid_stack(self) -> None:
        stack = create_layer_stack(
            self.positions, self.numbers, self.mask, jnp.array([0.0, 0.5]), 2.0
        )
        assert stack.n_layers == 2
        chex.assert_trees_all_close(stack.z_spacing, 2.0)

    def test_depths_must_increase(self) -> None:
        with pytest.raises(ConfigurationError, match="increasing"):
            create_layer_stack(
                self.positions,
                self.numbers,
                self.mask,
                jnp.array([0.5, 0.0]),
                2.0,
            )

    def test_empty_layer_rejected(self) -> None:
        mask = jnp.array([[True], [False]])
        with pytest.raises(ConfigurationError, match="at least one atom"):
            create_layer_stack(
                self.positions, self.numbers, mask, jnp.array([0.0, 0.5]), 2.0
            )
