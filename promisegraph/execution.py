"""
Execution module for the promisegraph framework.

An Execution resolves the transitive dependencies of an entry function against a
private copy of the registry. Resolution happens in two phases:

1. Synchronously, the requested names are checked for existence and cycles, and
   every computation touched for the first time is converted to `Pending`. The
   conversion recurses into the computation's own dependencies, so the whole
   reachable subtree is validated and converted before anything is invoked.
2. Asynchronously, the converter of each computation owns it: a single task waits
   for its dependency values, invokes it once, and publishes its value to every
   consumer through a shared promise.
"""

import inspect
import itertools
import logging
import warnings
from contextlib import nullcontext
from typing import TYPE_CHECKING

import anyio

from .exceptions import (
    ComputationError,
    CycleError,
    NodeNotFoundError,
    ResolutionError,
)
from .node import ComputationNode
from .promise import Promise
from .registry import ROOT_NODE_NAME
from .state import InFlight, Pending, Resolved, WorkingSet

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Callable, Mapping, Sequence
    from typing import Any

    from anyio.abc import TaskGroup

    from .config import Config
    from .node import Node
    from .state import NodeState

logger = logging.getLogger(__name__)

_execution_ids = itertools.count(1)


def next_execution_id() -> int:
    return next(_execution_ids)


class Execution:
    def __init__(
        self,
        nodes: "Mapping[str, Node]",
        entry: "Callable[..., Any]",
        dependencies: "Sequence[str]",
        config: "Config",
    ) -> None:
        self.id = next_execution_id()
        self.config = config
        self.entry = ComputationNode(
            name=ROOT_NODE_NAME, dependencies=tuple(dependencies), fn=entry
        )
        self.working_set = WorkingSet.from_nodes({**nodes, ROOT_NODE_NAME: self.entry})
        self.cache: dict[str, "Any"] = {}

        self._task_group: "TaskGroup | None" = None
        self._limiter: "anyio.CapacityLimiter | None" = None
        self._outcome: "Promise[Any] | None" = None

    async def run(self) -> "Any":
        """Resolve the entry's dependencies, call it, and return what it returns."""
        self._outcome = Promise()
        if self.config.max_concurrency is not None:
            self._limiter = anyio.CapacityLimiter(self.config.max_concurrency)

        logger.debug(
            "Starting execution %d with dependencies %s",
            self.id,
            self.entry.dependencies,
        )

        async with anyio.create_task_group() as tg:
            self._task_group = tg

            try:
                arguments = self.resolve(
                    self.entry.dependencies, parent=ROOT_NODE_NAME, ancestors=()
                )
            except ResolutionError as e:
                self._fail(e)
            else:
                tg.start_soon(self._enter, arguments)
                await self._outcome.settled()

            # anything still running is not needed for the outcome anymore
            tg.cancel_scope.cancel()

        self._task_group = None
        return self._outcome.result()

    def resolve(
        self,
        names: "Sequence[str]",
        *,
        parent: str,
        ancestors: "Sequence[str]",
    ) -> "Promise[list[Any]]":
        """
        Return a promise of the values of `names`, in order, as depended on by
        `parent`. Raises `NodeNotFoundError` or `CycleError` before converting
        anything.
        """
        for name in names:
            if name not in self.working_set:
                raise NodeNotFoundError(name)

        path = (*ancestors, parent)
        for name in names:
            if name in path:
                raise CycleError(parent, name, (*path, name))

        states = [self._convert(name, path) for name in names]

        values: "Promise[list[Any]]" = Promise()
        self._spawn(self._collect, states, values)
        return values

    def _convert(self, name: str, path: tuple[str, ...]) -> "NodeState":
        state, owned = self.working_set.convert(
            name,
            lambda node: Pending(node=node, path=(*path, name), future=Promise()),
        )

        if owned:
            state.arguments = self.resolve(
                state.node.dependencies, parent=name, ancestors=path
            )
            self._spawn(self._settle, state)

        return state

    def _spawn(self, fn: "Callable[..., Awaitable[None]]", *args: "Any") -> None:
        if self._task_group is None:
            raise RuntimeError(f"Execution {self.id} is not running.")

        self._task_group.start_soon(fn, *args)

    async def _collect(
        self, states: "list[NodeState]", values: "Promise[list[Any]]"
    ) -> None:
        try:
            resolved = []
            for state in states:
                if isinstance(state, Pending | InFlight):
                    resolved.append(await state.future)
                else:
                    resolved.append(state.value)
        except Exception as e:
            values.set_exception(e)
        else:
            values.set_result(resolved)

    async def _settle(self, state: Pending) -> None:
        name = state.node.name

        try:
            arguments = await state.arguments

            # guard only: a node has a single owner task, so this cannot happen
            if name in self.cache:
                if not state.future.done():
                    state.future.set_result(self.cache[name])
                return

            limiter = self._limiter if self._limiter is not None else nullcontext()
            async with limiter:
                # nothing is invoked once the outcome of the execution is known
                if self._outcome.done():
                    return

                in_flight = InFlight(
                    node=state.node,
                    path=state.path,
                    future=state.future,
                    result=self._invoke(state, arguments),
                )
                self.working_set.transition(name, state, in_flight)
                value = await self._await_result(in_flight, arguments)

            self._finalize(in_flight, value)
        except Exception as e:
            if not state.future.done():
                state.future.set_exception(e)

            self._fail(e)

    def _invoke(self, state: Pending, arguments: list["Any"]) -> "Awaitable[Any]":
        logger.debug("Execution %d invoking '%s'", self.id, state.node.name)

        try:
            result = state.node(*arguments)
        except Exception as e:
            raise self._computation_error(state, arguments, e, True) from e

        if inspect.isawaitable(result):
            return result

        if self.config.warn_on_bare_result:
            fn = state.node.fn
            warnings.warn(
                f"{state.node.name} produced ({result!r}) which is not awaitable,"
                " wrapping it in a resolved promise. Declared by"
                f" {getattr(fn, '__qualname__', type(fn).__qualname__)}.",
                stacklevel=1,
            )

        return Promise.resolved(result)

    async def _await_result(
        self, in_flight: InFlight, arguments: list["Any"]
    ) -> "Any":
        try:
            return await in_flight.result
        except Exception as e:
            raise self._computation_error(in_flight, arguments, e, False) from e

    def _finalize(self, in_flight: InFlight, value: "Any") -> None:
        name = in_flight.node.name
        self.working_set.transition(name, in_flight, Resolved(name=name, value=value))
        self.cache[name] = value
        in_flight.future.set_result(value)

    def _computation_error(
        self,
        state: "Pending | InFlight",
        arguments: list["Any"],
        error: Exception,
        synchronous: bool,
    ) -> ComputationError:
        return ComputationError(
            path=state.path,
            node=state.node.name,
            arguments=list(zip(state.node.dependencies, arguments, strict=True)),
            error=error,
            synchronous=synchronous,
        )

    async def _enter(self, arguments: "Promise[list[Any]]") -> None:
        try:
            values = await arguments
            if self._outcome.done():
                return

            result = self.entry(*values)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self._fail(e)
        else:
            if not self._outcome.done():
                logger.debug("Execution %d completed", self.id)
                self._outcome.set_result(result)

    def _fail(self, error: Exception) -> None:
        if not self._outcome.done():
            logger.debug("Execution %d failed: %s", self.id, error)
            self._outcome.set_exception(error)
