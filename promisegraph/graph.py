"""
Graph module for the promisegraph framework.

```python
graph = Graph()
graph.register_value("age", 1)

@graph.computation("birthday", ["age"])
async def birthday(age: int) -> int:
    return age + 1

assert await graph.execute(lambda birthday: birthday, ["birthday"]) == 2
```
"""

from functools import partial
from typing import TYPE_CHECKING

import anyio
import sniffio

from .config import Config
from .execution import Execution
from .registry import Registry, normalize_dependencies
from .topology import Topology

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable, Iterable, Iterator
    from typing import Any, TypeVar

    from .node import ComputationFn, ComputationNode

    F = TypeVar("F", bound=ComputationFn)


class Graph:
    """
    A named set of value and computation nodes which can be executed any number of
    times, concurrently, from different entry functions. Registration order does not
    matter as long as every dependency is registered by the time of an execution.
    """

    def __init__(self, **settings: "Any") -> None:
        self.config = Config(**settings)
        self.registry = Registry()

    def register_value(self, name: str, value: "Any") -> None:
        """
        Register a value node. The value is injected as is, never copied, so it
        may be a primitive, an object or even a function treated as data.
        """
        self.registry.register_value(name, value)

    def register_computation(
        self,
        name: str,
        dependencies: "Iterable[str] | None",
        fn: "ComputationFn",
    ) -> "ComputationNode":
        """
        Register a computation node, called once per execution with the values of
        `dependencies` as positional arguments. If `dependencies` is None, the
        positional parameter names of `fn` are used.
        """
        return self.registry.register_computation(name, dependencies, fn)

    def computation(
        self, name: str, dependencies: "Iterable[str] | None" = None
    ) -> "Callable[[F], F]":
        """Decorator form of `register_computation`."""

        def decorator(fn: "F") -> "F":
            self.register_computation(name, dependencies, fn)
            return fn

        return decorator

    def create_execution(
        self, entry: "Callable[..., Any]", dependencies: "Iterable[str] | None" = None
    ) -> Execution:
        return Execution(
            self.registry.snapshot(),
            entry,
            normalize_dependencies(entry, dependencies),
            self.config,
        )

    async def execute(
        self, entry: "Callable[..., Any]", dependencies: "Iterable[str] | None" = None
    ) -> "Any":
        """
        Call `entry` with the resolved values of `dependencies` and return its
        result. Each call is an isolated execution with its own cache.
        """
        return await self.create_execution(entry, dependencies).run()

    def run(
        self, entry: "Callable[..., Any]", dependencies: "Iterable[str] | None" = None
    ) -> "Any":
        """Blocking form of `execute`, for callers outside of an event loop."""
        try:
            sniffio.current_async_library()
        except sniffio.AsyncLibraryNotFoundError:
            return anyio.run(
                partial(self.execute, entry, dependencies),
                backend=self.config.async_backend,
            )

        raise RuntimeError(
            "Running a graph directly within an event loop is forbidden as it would"
            " block the loop. Use `await graph.execute(...)` instead."
        )

    def topology(self) -> Topology:
        return Topology.from_nodes(self.registry.snapshot())

    def __contains__(self, name: object) -> bool:
        return name in self.registry

    def __iter__(self) -> "Iterator[str]":
        return iter(self.registry)

    def __len__(self) -> int:
        return len(self.registry)
