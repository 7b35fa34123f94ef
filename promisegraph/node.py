import inspect
from collections.abc import Callable
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from .exceptions import InvalidDeclarationError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Awaitable

    ComputationFn = Callable[..., Awaitable[Any] | Any]

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


class ValueNode(BaseModel):
    name: str
    value: Any

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def dependencies(self) -> tuple[str, ...]:
        return ()


class ComputationNode(BaseModel):
    name: str
    dependencies: tuple[str, ...] = ()
    fn: Callable[..., Any]

    model_config = ConfigDict(extra="forbid", frozen=True)

    def __call__(self, *values: Any) -> Any:
        return self.fn(*values)


Node = ValueNode | ComputationNode


def declared_parameters(fn: "ComputationFn") -> tuple[str, ...]:
    """
    Return the ordered positional parameter names of a callable, which double as
    its dependency names when none are given explicitly.
    """
    try:
        hash(fn)
    except TypeError:
        # callable instances which define __eq__ without __hash__
        return _declared_parameters.__wrapped__(fn)

    return _declared_parameters(fn)


@lru_cache
def _declared_parameters(fn: "ComputationFn") -> tuple[str, ...]:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError) as e:
        raise InvalidDeclarationError(fn, "Its signature cannot be inspected.") from e

    names: list[str] = []
    for param in signature.parameters.values():
        if param.kind not in _POSITIONAL_KINDS:
            raise InvalidDeclarationError(
                fn,
                f"Parameter '{param.name}' cannot be injected positionally;"
                " pass the dependency names explicitly.",
            )

        names.append(param.name)

    return tuple(names)
