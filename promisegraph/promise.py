from typing import TYPE_CHECKING, Generic, TypeVar

import anyio

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")

_UNSET = object()


class PromiseAlreadySettledError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("A promise can only be settled once.")


class Promise(Generic[T]):
    """
    A single-assignment future that any number of tasks can await. Settling it
    wakes every waiter; waiting on a rejected promise raises its exception.

    Backed by an anyio Event, so it must be created inside a running event loop.
    """

    def __init__(self) -> None:
        self._event = anyio.Event()
        self._value: "T | Any" = _UNSET
        self._error: BaseException | None = None

    @classmethod
    def resolved(cls, value: T) -> "Promise[T]":
        promise: Promise[T] = cls()
        promise.set_result(value)
        return promise

    def done(self) -> bool:
        return self._event.is_set()

    def set_result(self, value: T) -> None:
        if self.done():
            raise PromiseAlreadySettledError()

        self._value = value
        self._event.set()

    def set_exception(self, error: BaseException) -> None:
        if self.done():
            raise PromiseAlreadySettledError()

        self._error = error
        self._event.set()

    def result(self) -> T:
        if not self.done():
            raise RuntimeError("Promise has not been settled yet.")
        elif self._error is not None:
            raise self._error

        return self._value

    async def settled(self) -> None:
        """Wait until the promise is settled, without raising its exception."""
        await self._event.wait()

    async def wait(self) -> T:
        await self.settled()
        return self.result()

    def __await__(self) -> "Generator[Any, None, T]":
        return self.wait().__await__()
