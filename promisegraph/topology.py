from typing import TYPE_CHECKING

import networkx as nx
from networkx import generate_network_text

from .exceptions import CycleError, NodeNotFoundError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from networkx import DiGraph

    from .node import Node


class Topology:
    """
    A static view of a registry: an edge `a -> b` means `b` depends on `a`.
    Dependencies which are not registered are kept as nodes and reported in
    `missing`, since the registry is allowed to be incomplete until executed.
    """

    def __init__(
        self, *, digraph: "DiGraph", order: list[str], missing: frozenset[str]
    ) -> None:
        self.digraph = digraph
        self.order = order
        self.missing = missing

    @classmethod
    def from_nodes(cls, nodes: "Mapping[str, Node]") -> "Topology":
        digraph = nx.DiGraph()

        for name in nodes:
            digraph.add_node(name)

        for name, node in nodes.items():
            for dependency in node.dependencies:
                digraph.add_edge(dependency, name)

        try:
            order = list(nx.topological_sort(digraph))
        except nx.NetworkXUnfeasible as e:
            # report the cycle the same way an execution would, dependent first
            cycle = [u for u, _ in nx.find_cycle(digraph)]
            path = [cycle[0], *reversed(cycle[1:]), cycle[0]]
            raise CycleError(path[-2], path[-1], path) from e

        return cls(
            digraph=digraph,
            order=order,
            missing=frozenset(digraph.nodes - nodes.keys()),
        )

    def dependents(self, name: str) -> set[str]:
        """Every node which transitively depends on `name`."""
        self._check(name)
        return nx.descendants(self.digraph, name)

    def dependencies(self, name: str) -> set[str]:
        """Every node `name` transitively depends on."""
        self._check(name)
        return nx.ancestors(self.digraph, name)

    def _check(self, name: str) -> None:
        if name not in self.digraph:
            raise NodeNotFoundError(name)

    def __str__(self) -> str:
        return "\n".join(generate_network_text(self.digraph, vertical_chains=True))
