import logging
import threading
from typing import TYPE_CHECKING

from .exceptions import DuplicateNameError, InvalidDeclarationError, InvalidNameError
from .node import ComputationNode, ValueNode, declared_parameters

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Iterator
    from typing import Any

    from .node import ComputationFn, Node

logger = logging.getLogger(__name__)

ROOT_NODE_NAME = "root"
"""Reserved for the transient node wrapping the entry function of an execution."""


def validate_name(name: "Any") -> str:
    if not isinstance(name, str):
        raise InvalidNameError(repr(name), "Node name must be a string")
    elif len(name) == 0:
        raise InvalidNameError(name, "Node name cannot be empty")
    elif any(char.isspace() for char in name):
        raise InvalidNameError(name, "Node name cannot contain whitespace")
    elif name == ROOT_NODE_NAME:
        raise InvalidNameError(
            name, f"Node cannot be named '{ROOT_NODE_NAME}' to avoid confusion"
        )

    return name


def normalize_dependencies(
    fn: "ComputationFn", dependencies: "Iterable[str] | None"
) -> tuple[str, ...]:
    if not callable(fn):
        raise InvalidDeclarationError(fn, "Computations must be callable.")
    elif dependencies is None:
        return declared_parameters(fn)
    elif isinstance(dependencies, str):
        raise InvalidDeclarationError(
            fn, "Dependencies must be a sequence of names, not a single string."
        )

    dependencies = tuple(dependencies)
    if invalid := [dep for dep in dependencies if not isinstance(dep, str)]:
        raise InvalidDeclarationError(
            fn, f"Dependency names must be strings, got {invalid!r}."
        )

    return dependencies


class Registry:
    """
    The permanent set of named nodes. Names share one namespace across values and
    computations, and can neither be re-registered nor removed.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, "Node"] = {}
        self._lock = threading.Lock()

    def _insert(self, node: "Node") -> None:
        with self._lock:
            if node.name in self._nodes:
                raise DuplicateNameError(node.name)

            self._nodes[node.name] = node

        logger.debug("Registered %s '%s'", type(node).__name__, node.name)

    def register_value(self, name: str, value: "Any") -> None:
        self._insert(ValueNode(name=validate_name(name), value=value))

    def register_computation(
        self,
        name: str,
        dependencies: "Iterable[str] | None",
        fn: "ComputationFn",
    ) -> ComputationNode:
        name = validate_name(name)
        node = ComputationNode(
            name=name, dependencies=normalize_dependencies(fn, dependencies), fn=fn
        )
        self._insert(node)
        return node

    def snapshot(self) -> dict[str, "Node"]:
        """A shallow copy of the registered nodes; node payloads are shared."""
        with self._lock:
            return dict(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __getitem__(self, name: str) -> "Node":
        return self._nodes[name]

    def __iter__(self) -> "Iterator[str]":
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._nodes)
