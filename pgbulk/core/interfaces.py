from typing import Any, Awaitable, Mapping, Protocol, Union

Record = Mapping[str, Any]


class ParseHook(Protocol):
    """Per-record hook run before column mapping. May be a coroutine function."""

    def __call__(self, record: Record) -> Union[Record, Awaitable[Record]]:
        ...


class FinishHook(Protocol):
    """Runs after verification, on the load connection, before commit."""

    def __call__(self, connection: Any) -> Union[None, Awaitable[None]]:
        ...
