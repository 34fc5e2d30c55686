"""
Unit tests for dependencies/parameters.py

Tests recursive resolution and parameter building.
"""

import pytest
from unittest.mock import Mock

from fetchgraph.core.definition import Definition
from fetchgraph.core.enums import Stage
from fetchgraph.dependencies.parameters import (
    Parameters,
    build_parameters,
    is_available,
    resolve,
)


class TestResolve:
    """Test resolve."""

    def test_value_and_status(self):
        """Each name resolves to a value/status pair."""
        b = Definition(id="b", store_id="sb")
        resolved = resolve({"b": b}, {"sb": 5}, {"b": Stage.IDLE})
        assert resolved == {"b": {"status": Stage.IDLE, "value": 5}}

    def test_missing_status_is_waiting(self):
        """Inactive definitions resolve as WAITING."""
        b = Definition(id="b", store_id="sb")
        resolved = resolve({"b": b}, {}, {})
        assert resolved == {"b": {"status": Stage.WAITING, "value": None}}

    def test_map_data_receives_store_and_dependencies(self):
        """map_data sees the raw slot and resolved nested dependencies."""
        c = Definition(id="c", store_id="sc")
        b = Definition(
            id="b", store_id="sb", dependencies={"c": c},
            map_data=lambda data: data["store"] + data["dependencies"]["c"]["value"],
        )
        resolved = resolve({"b": b}, {"sb": 2, "sc": 40}, {"b": Stage.IDLE, "c": Stage.IDLE})
        assert resolved["b"]["value"] == 42

    def test_dotted_names_nest(self):
        """Dotted names place pairs at nested paths."""
        name = Definition(id="name", store_id="sn")
        age = Definition(id="age", store_id="sa")
        resolved = resolve(
            {"user.name": name, "user.age": age},
            {"sn": "Ada", "sa": 36},
            {"name": Stage.IDLE, "age": Stage.IDLE},
        )
        assert resolved["user"]["name"]["value"] == "Ada"
        assert resolved["user"]["age"]["value"] == 36

    def test_variant_reads_shared_slot(self, make_definition):
        """Variants resolve from the base store slot through their own map_data."""
        base = make_definition(overrides={"upper": {"map_data": lambda d: d["store"].upper()}})
        upper = base.variant("upper")
        store = {base.store_id: "abc"}

        assert resolve({"v": base}, store, {})["v"]["value"] == "abc"
        assert resolve({"v": upper}, store, {})["v"]["value"] == "ABC"


class TestBuildParameters:
    """Test build_parameters."""

    def test_raw_shape(self):
        """Raw parameters hold the slot, own data and dependencies."""
        c = Definition(id="c", store_id="sc")
        b = Definition(id="b", store_id="sb", dependencies={"c": c})
        store = {"sb": "own", "sc": "dep"}
        status = {"b": Stage.FETCHING, "c": Stage.IDLE}

        parameters = build_parameters(b, store, status)

        assert parameters.raw == {
            "store": "own",
            "data": {"status": Stage.FETCHING, "value": "own"},
            "dependencies": {"c": {"status": Stage.IDLE, "value": "dep"}},
        }
        assert parameters.mapped is parameters.raw

    def test_map_parameters(self):
        c = Definition(id="c", store_id="sc")
        b = Definition(
            id="b", store_id="sb", dependencies={"c": c},
            map_parameters=lambda raw: {"query": raw["dependencies"]["c"]["value"]},
        )
        parameters = build_parameters(b, {"sc": "python"}, {})
        assert parameters.mapped == {"query": "python"}

    def test_cache_memoizes(self):
        """A cache shared within a pass computes parameters once."""
        mapper = Mock(return_value={"mapped": True})
        b = Definition(id="b", store_id="sb", map_parameters=mapper)
        cache = {}

        first = build_parameters(b, {}, {}, cache)
        second = build_parameters(b, {}, {}, cache)

        assert first is second
        assert isinstance(first, Parameters)
        mapper.assert_called_once()

    def test_is_available_uses_predicate(self):
        """Custom predicates receive mapped and raw parameters."""
        predicate = Mock(return_value=True)
        b = Definition(
            id="b", store_id="sb",
            is_data_available=predicate,
            map_parameters=lambda raw: "mapped",
        )

        assert is_available(b, {}, {}) is True
        args = predicate.call_args[0]
        assert args[0] == "mapped"
        assert args[1]["store"] is None
