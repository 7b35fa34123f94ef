from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Sequence
    from typing import Any

PATH_SEPARATOR = "->"


def format_path(path: "Sequence[str]") -> str:
    return PATH_SEPARATOR.join(path)


def format_reason(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


class PromiseGraphError(Exception):
    def __init__(self, *args: "Any", **kwargs: "Any") -> None:
        super().__init__(*args, **kwargs)


##
## REGISTRATION
##


class RegistrationError(PromiseGraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidNameError(RegistrationError):
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(reason)


class DuplicateNameError(RegistrationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"'{name}' is already registered")


class InvalidDeclarationError(RegistrationError):
    def __init__(self, target: "Any", reason: str) -> None:
        self.target = target
        super().__init__(f"Invalid function declaration: {target!r}. {reason}")


##
## RESOLUTION
##


class ResolutionError(PromiseGraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class NodeNotFoundError(ResolutionError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Node '{name}' was not found in graph.")


class CycleError(ResolutionError):
    def __init__(self, node: str, dependency: str, path: "Sequence[str]") -> None:
        self.node = node
        self.dependency = dependency
        self.path = tuple(path)
        super().__init__(
            f"Node '{node}' depends on '{dependency}' which is actually an"
            f" ancestor: {format_path(self.path)}"
        )


##
## COMPUTATION
##


class ComputationError(PromiseGraphError):
    """
    A computation node failed, either by raising when called or because the
    awaitable it returned raised. The original exception is chained as the cause.
    """

    def __init__(
        self,
        path: "Sequence[str]",
        node: str,
        arguments: "Sequence[tuple[str, Any]]",
        error: BaseException,
        synchronous: bool,
    ) -> None:
        self.path = tuple(path)
        self.node = node
        self.arguments = tuple(arguments)
        self.error = error
        self.synchronous = synchronous

        params = ", ".join(f"{name}={value!r}" for name, value in self.arguments)
        if synchronous:
            reason = f"threw error: ({format_reason(error)})"
        else:
            reason = f"returned awaitable rejected with ({format_reason(error)})"

        super().__init__(
            f"Error on path {format_path(self.path)}. call {node}({params}) {reason}"
        )
