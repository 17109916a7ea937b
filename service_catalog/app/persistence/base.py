"""
Record store capability consumed by repositories.
"""

from typing import Any, Dict, Protocol, Sequence


class RecordStore(Protocol):
    """Durable key -> record storage; the source of truth.

    ``exec`` returns the affected row count. ``query_one`` raises
    RecordNotFoundError when no row matches. Driver and connection failures
    surface as StoreUnavailableError, constraint failures as
    ConstraintViolationError.
    """

    async def exec(self, statement: str, params: Sequence[Any] = ()) -> int:
        ...

    async def query_one(self, statement: str, params: Sequence[Any] = ()) -> Dict[str, Any]:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def health_check(self) -> bool:
        ...
