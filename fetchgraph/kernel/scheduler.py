"""
fetchgraph Fetch Scheduler

Starts fetches as asyncio tasks and tracks, per definition, the fetch
epoch and the fetcher key snapshot used to detect stale results.

An epoch is bumped on every launch and on release; a result carrying
an older epoch than the current one is stale. The orchestrator decides
what to do with a result; the scheduler only reports it through the
callbacks passed to launch().
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Set

from fetchgraph.errors.taxonomy import FetchFailure
from fetchgraph.kernel.stage_machine import LaunchRequest

logger = logging.getLogger("kernel.scheduler")


# (request, epoch, response)
SuccessCallback = Callable[[LaunchRequest, int, Any], None]
# (request, epoch, failure)
FailureCallback = Callable[[LaunchRequest, int, FetchFailure], None]


class FetchScheduler:
    """
    Launches and tracks in-flight fetches.

    Usage:
        scheduler = FetchScheduler()
        scheduler.launch(request, on_success, on_failure)
        failures = await scheduler.settle(raise_errors=False)
    """

    def __init__(self, surface_failures_to_loop: bool = True):
        self._surface_failures = surface_failures_to_loop

        self._epochs: Dict[str, int] = {}
        self._keys: Dict[str, Any] = {}
        # Highest epoch belonging to a previous activation, per definition
        self._released_epochs: Dict[str, int] = {}

        self._in_flight: Set[asyncio.Task] = set()
        self._unclaimed: List[BaseException] = []
        self._launch_count = 0

    # =========================================================================
    # BOOKKEEPING
    # =========================================================================

    @property
    def fetch_keys(self) -> Mapping[str, Any]:
        """Key snapshot per definition (read-only view)."""
        return MappingProxyType(self._keys)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def launch_count(self) -> int:
        return self._launch_count

    def epoch(self, definition_id: str) -> int:
        return self._epochs.get(definition_id, 0)

    def is_current(self, definition_id: str, epoch: int) -> bool:
        return self._epochs.get(definition_id, 0) == epoch

    def is_released(self, definition_id: str, epoch: int) -> bool:
        """True if `epoch` belongs to an activation that has since ended."""
        return epoch <= self._released_epochs.get(definition_id, 0)

    def record_key(self, definition_id: str, key: Any) -> None:
        self._keys[definition_id] = key

    def release(self, definition_id: str) -> None:
        """Invalidate every outstanding fetch and forget the key."""
        epoch = self._epochs.get(definition_id, 0) + 1
        self._epochs[definition_id] = epoch
        self._released_epochs[definition_id] = epoch
        self._keys.pop(definition_id, None)
        logger.debug(f"Released fetch bookkeeping for {definition_id} (epoch {epoch})")

    # =========================================================================
    # LAUNCH
    # =========================================================================

    def launch(
        self,
        request: LaunchRequest,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> asyncio.Task:
        """
        Start a fetch for `request`.

        Raises:
            RuntimeError: no running event loop
        """
        loop = asyncio.get_running_loop()
        definition_id = request.definition_id

        epoch = self._epochs.get(definition_id, 0) + 1
        self._epochs[definition_id] = epoch
        self._keys[definition_id] = request.fetcher_key
        self._launch_count += 1

        task = loop.create_task(
            self._run(request, epoch, on_success, on_failure),
            name=f"fetch:{definition_id}:{epoch}",
        )
        self._in_flight.add(task)
        task.add_done_callback(self._on_done)

        logger.debug(f"Launched fetch for {definition_id} (epoch {epoch})")
        return task

    async def _run(
        self,
        request: LaunchRequest,
        epoch: int,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> Any:
        definition = request.definition
        parameters = request.parameters
        try:
            response = definition.fetcher(parameters.mapped, parameters.raw)
            if inspect.isawaitable(response):
                response = await response
        except Exception as exc:
            failure = FetchFailure(
                definition.id, exc, fetcher_key=request.fetcher_key, epoch=epoch,
            )
            on_failure(request, epoch, failure)
            raise failure from exc

        on_success(request, epoch, response)
        return response

    def _on_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            return

        self._unclaimed.append(exc)
        if self._surface_failures:
            task.get_loop().call_exception_handler({
                "message": f"Fetch task {task.get_name()} failed",
                "exception": exc,
                "task": task,
            })

    # =========================================================================
    # SETTLE
    # =========================================================================

    async def settle(self, raise_errors: bool = True) -> List[BaseException]:
        """
        Wait for every in-flight fetch, including ones launched meanwhile.

        Args:
            raise_errors: raise the first collected failure instead of
                returning the list

        Returns:
            Failures collected since the previous settle()
        """
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

        failures, self._unclaimed = self._unclaimed, []
        if failures and raise_errors:
            raise failures[0]
        return failures
