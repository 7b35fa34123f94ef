from .config import Config
from .exceptions import (
    ComputationError,
    CycleError,
    DuplicateNameError,
    InvalidDeclarationError,
    InvalidNameError,
    NodeNotFoundError,
    PromiseGraphError,
)
from .execution import Execution
from .graph import Graph
from .promise import Promise
from .registry import ROOT_NODE_NAME
from .topology import Topology

__all__ = [
    "ROOT_NODE_NAME",
    "ComputationError",
    "Config",
    "CycleError",
    "DuplicateNameError",
    "Execution",
    "Graph",
    "InvalidDeclarationError",
    "InvalidNameError",
    "NodeNotFoundError",
    "Promise",
    "PromiseGraphError",
    "Topology",
]
