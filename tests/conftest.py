"""
fetchgraph Test Configuration and Fixtures

Provides isolated id generators, orchestrators and a small library of
definitions shared by unit and integration tests.
"""

import asyncio
from typing import Any, Dict, List

import pytest

from fetchgraph.bootstrap.config import OrchestratorConfig
from fetchgraph.core.definition import define_data_handler
from fetchgraph.core.ids import IdGenerator
from fetchgraph.kernel.orchestrator import Orchestrator


class RecordingFetcher:
    """
    Async fetcher that records its calls and returns a canned response.

    Calls block on `gate` when one is given, so tests can control the
    order in which concurrent fetches complete.
    """

    def __init__(self, response: Any = None, error: Exception = None, gate: asyncio.Event = None):
        self.response = response
        self.error = error
        self.gate = gate
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, mapped, raw):
        self.calls.append({"mapped": mapped, "raw": raw})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(mapped, raw)
        return self.response

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def ids():
    """Fresh id generator, so generated ids are predictable per test."""
    return IdGenerator()


@pytest.fixture
def config():
    """Orchestrator config that keeps expected failures off the loop handler."""
    return OrchestratorConfig(surface_failures_to_loop=False)


@pytest.fixture
def orchestrator(config):
    return Orchestrator(config=config)


@pytest.fixture
def input_definition(ids):
    """Definition without a fetcher: filled through set_store."""
    return define_data_handler(id_generator=ids, id="query", store_id="query_store")


@pytest.fixture
def make_definition(ids):
    """Factory for definitions with generated ids."""

    def _make(**settings):
        return define_data_handler(id_generator=ids, **settings)

    return _make


@pytest.fixture
def make_fetcher():
    """Factory for RecordingFetcher instances."""
    return RecordingFetcher
