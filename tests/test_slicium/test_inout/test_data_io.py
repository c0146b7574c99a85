"""Tests for element lookup, Kirkland tables and JSON configurations."""

import json
import os
import tempfile

import chex
import jax
import jax.numpy as jnp
import pytest
from absl.testing import parameterized

from slicium.errors import ConfigurationError
from slicium.inout.data_io import (
    ELEMENT_SYMBOLS,
    atomic_number,
    load_kirkland_table,
    load_simulation_config,
)
from slicium.types import SimulationConfig

jax.config.update("jax_enable_x64", True)

KIRKLAND_ROW = "0.1,1.0,0.2,2.0,0.3,3.0,0.01,0.5,0.02,1.0,0.03,2.0"


class TestAtomicNumber(chex.TestCase, parameterized.TestCase):
    @parameterized.named_parameters(
        ("hydrogen", "H", 1),
        ("carbon", "C", 6),
        ("silicon", "Si", 14),
        ("thallium", "Tl", 81),
        ("gold", "Au", 79),
        ("lawrencium", "Lr", 103),
    )
    def test_symbols(self, symbol: str, expected: int) -> None:
        assert atomic_number(symbol) == expected

    def test_case_and_whitespace(self) -> None:
        assert atomic_number("  si ") == 14
        assert atomic_number("FE") == 26

    def test_unknown_symbol(self) -> None:
        with pytest.raises(KeyError, match="not found"):
            atomic_number("Xx")

    def test_table_is_complete(self) -> None:
        assert len(ELEMENT_SYMBOLS) == 103
        assert len(set(ELEMENT_SYMBOLS)) == 103


class TestLoadKirklandTable(chex.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, name: str, text: str) -> str:
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_reads_rows(self) -> None:
        path = self._write("kirkland.csv", "\n".join([KIRKLAND_ROW] * 3) + "\n")
        table = load_kirkland_table(path)
        chex.assert_shape(table, (3, 12))
        assert table.dtype == jnp.float64
        chex.assert_trees_all_close(table[2, 1], 1.0)
        chex.assert_trees_all_close(table[0, 11], 2.0)

    def test_wrong_column_count(self) -> None:
        path = self._write("short.csv", "1.0,2.0,3.0\n4.0,5.0,6.0\n")
        with pytest.raises(ConfigurationError, match="columns"):
            load_kirkland_table(path)

    def test_non_numeric_entry(self) -> None:
        bad = KIRKLAND_ROW.replace("0.5", "abc")
        path = self._write("bad.csv", KIRKLAND_ROW + "\n" + bad + "\n")
        with pytest.raises(ConfigurationError, match="non-numeric"):
            load_kirkland_table(path)


class TestLoadSimulationConfig(chex.TestCase):
    """JSON configuration files."""

    def setUp(self) -> None:
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.base = {
            "lattice": [5.431, 5.431, 5.431],
            "positions": [[0.0, 0.0, 0.0], [0.25, 0.25, 0.25]],
            "atomic_numbers": ["Si", 14],
            "beam_energy": 200000.0,
            "thickness": 100.0,
            "k_max": 2.0,
        }

    def _write(self, payload, name: str = "config.json") -> str:
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w") as f:
            if isinstance(payload, str):
                f.write(payload)
            else:
                json.dump(payload, f)
        return path

    def test_symbols_and_defaults(self) -> None:
        config = load_simulation_config(self._write(self.base))
        assert isinstance(config, SimulationConfig)
        assert config.atomic_numbers == (14, 14)
        assert config.lattice == (5.431, 5.431, 5.431)
        assert config.bravais == "simple-cubic"
        assert config.n_pixels == 256
        assert config.coherent

    def test_two_beam_and_options(self) -> None:
        payload = dict(
            self.base,
            bravais="diamond",
            two_beam=[2, 2, 0],
            absorption=0.05,
            n_pixels=512,
        )
        config = load_simulation_config(self._write(payload))
        assert config.two_beam == (2, 2)
        assert config.absorption == 0.05
        assert config.n_pixels == 512

    def test_relative_kirkland_path(self) -> None:
        payload = dict(
            self.base, form_factor="kirkland", kirkland_path="tables/kirkland.csv"
        )
        config = load_simulation_config(self._write(payload))
        assert config.kirkland_path == os.path.join(
            self.tmpdir.name, "tables", "kirkland.csv"
        )

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown configuration"):
            load_simulation_config(self._write(dict(self.base, voltage=200e3)))

    def test_unknown_element(self) -> None:
        payload = dict(self.base, atomic_numbers=["Si", "Qq"])
        with pytest.raises(ConfigurationError, match="not found"):
            load_simulation_config(self._write(payload))

    def test_invalid_json(self) -> None:
        with pytest.raises(ConfigurationError, match="JSON"):
            load_simulation_config(self._write("{lattice: [1, 2"))

    def test_not_an_object(self) -> None:
        with pytest.raises(ConfigurationError, match="object"):
            load_simulation_config(self._write([1, 2, 3]))

    def test_validation_errors_propagate(self) -> None:
        with pytest.raises(ConfigurationError, match="k_max"):
            load_simulation_config(self._write(dict(self.base, k_max=-1.0)))

    def test_missing_required_field(self) -> None:
        payload = {k: v for k, v in self.base.items() if k != "thickness"}
        with pytest.raises(ConfigurationError, match="invalid configuration"):
            load_simulation_config(self._write(payload))
