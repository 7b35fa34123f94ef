import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from .node import ComputationNode, ValueNode

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable, Callable, Iterator, Mapping
    from typing import Any

    from .node import Node
    from .promise import Promise


class Status(Enum):
    UNRESOLVED_VALUE = "unresolved-value"
    UNRESOLVED_COMPUTATION = "unresolved-computation"
    PENDING = "pending"
    IN_FLIGHT = "in-flight"
    RESOLVED = "resolved"


@dataclass(slots=True)
class UnresolvedValue:
    node: ValueNode

    status: ClassVar[Status] = Status.UNRESOLVED_VALUE

    @property
    def value(self) -> "Any":
        return self.node.value


@dataclass(slots=True)
class UnresolvedComputation:
    node: ComputationNode

    status: ClassVar[Status] = Status.UNRESOLVED_COMPUTATION


@dataclass(slots=True)
class Pending:
    node: ComputationNode
    # the path of the consumer which converted this node, ending with the node itself
    path: tuple[str, ...]
    future: "Promise[Any]"
    arguments: "Promise[list[Any]] | None" = None

    status: ClassVar[Status] = Status.PENDING


@dataclass(slots=True)
class InFlight:
    node: ComputationNode
    path: tuple[str, ...]
    future: "Promise[Any]"
    result: "Awaitable[Any]"

    status: ClassVar[Status] = Status.IN_FLIGHT


@dataclass(slots=True)
class Resolved:
    name: str
    value: "Any"

    status: ClassVar[Status] = Status.RESOLVED


NodeState = UnresolvedValue | UnresolvedComputation | Pending | InFlight | Resolved


def initial_state(node: "Node") -> NodeState:
    if isinstance(node, ValueNode):
        return UnresolvedValue(node)
    elif isinstance(node, ComputationNode):
        return UnresolvedComputation(node)

    raise TypeError(f"Unsupported node type: {type(node).__name__}")


class IllegalTransitionError(RuntimeError):
    def __init__(self, name: str, current: Status, target: Status) -> None:
        super().__init__(
            f"Node '{name}' cannot move from {current.value} to {target.value}."
        )


_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.UNRESOLVED_VALUE: frozenset(),
    Status.UNRESOLVED_COMPUTATION: frozenset({Status.PENDING}),
    Status.PENDING: frozenset({Status.IN_FLIGHT}),
    Status.IN_FLIGHT: frozenset({Status.RESOLVED}),
    Status.RESOLVED: frozenset(),
}


@dataclass
class WorkingSet:
    """
    The per-execution view of every node's state. All reads and transitions go
    through a lock so that converting a node is an atomic check-and-set.
    """

    states: dict[str, NodeState] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_nodes(cls, nodes: "Mapping[str, Node]") -> "WorkingSet":
        return cls(states={name: initial_state(node) for name, node in nodes.items()})

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self.states

    def __getitem__(self, name: str) -> NodeState:
        with self._lock:
            return self.states[name]

    def __iter__(self) -> "Iterator[str]":
        with self._lock:
            return iter(list(self.states))

    def __len__(self) -> int:
        with self._lock:
            return len(self.states)

    def convert(
        self, name: str, factory: "Callable[[ComputationNode], Pending]"
    ) -> tuple[NodeState, bool]:
        """
        Move an unresolved computation to pending using `factory`. Returns the
        current state of the node and whether this call performed the conversion.
        """
        with self._lock:
            state = self.states[name]
            if not isinstance(state, UnresolvedComputation):
                return state, False

            pending = factory(state.node)
            self.states[name] = pending
            return pending, True

    def transition(self, name: str, expected: NodeState, target: NodeState) -> None:
        with self._lock:
            current = self.states[name]
            if (
                current is not expected
                or target.status not in _TRANSITIONS[current.status]
            ):
                raise IllegalTransitionError(name, current.status, target.status)

            self.states[name] = target
