import asyncio
import logging
from collections.abc import (
    Awaitable,
    Collection,
    Coroutine,
    Iterator,
    MutableMapping,
)
from datetime import date
from typing import Any, Generic, Protocol, TypeVar

from carerecon.errors import CareReconError, StoreError
from carerecon.models import (
    WORKED_SHIFT_STATUSES,
    Caregiver,
    Client,
    DateRange,
    Domain,
    Event,
    Obligation,
    ShiftAssignment,
    ShiftStatus,
)

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")
T = TypeVar("T")

StoredItem = Client | Caregiver | ShiftAssignment | Obligation | Event


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def all(self) -> list[V]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)


class CareStore(Protocol):
    """
    Read-only view of the backing store. Each call is one bulk read and the
    only place the engine suspends.
    """

    async def get_client(self, client_id: str) -> Client | None: ...

    async def get_caregiver(self, caregiver_id: str) -> Caregiver | None: ...

    async def list_obligations(
        self, client_id: str, domain: Domain, date_range: DateRange
    ) -> list[Obligation]: ...

    async def list_events(
        self,
        client_id: str,
        domain: Domain,
        date_range: DateRange,
        *,
        caregiver_id: str | None = None,
    ) -> list[Event]: ...

    async def list_shifts(
        self,
        *,
        date_range: DateRange,
        caregiver_id: str | None = None,
        client_id: str | None = None,
        statuses: Collection[ShiftStatus] = WORKED_SHIFT_STATUSES,
    ) -> list[ShiftAssignment]: ...


def item_key(item: StoredItem) -> str:
    if isinstance(item, Client):
        return f"client:{item.id}"
    if isinstance(item, Caregiver):
        return f"caregiver:{item.id}"
    if isinstance(item, ShiftAssignment):
        return f"shift:{item.id}"
    if isinstance(item, Obligation):
        return f"obligation:{item.domain}:{item.id}"
    return f"event:{item.domain}:{item.id}"


class InMemoryCareStore:
    """
    ``CareStore`` over the in-memory key/value database. Iteration order is
    insertion order, which keeps "first match wins" deterministic.
    """

    def __init__(
        self, db: InMemoryKeyValueDatabase[str, StoredItem] | None = None
    ) -> None:
        self.db: InMemoryKeyValueDatabase[str, StoredItem] = (
            db if db is not None else InMemoryKeyValueDatabase()
        )

    def add(self, *items: StoredItem) -> None:
        for item in items:
            self.db.put(item_key(item), item)

    async def get_client(self, client_id: str) -> Client | None:
        item = self.db.get(f"client:{client_id}")
        return item if isinstance(item, Client) else None

    async def get_caregiver(self, caregiver_id: str) -> Caregiver | None:
        item = self.db.get(f"caregiver:{caregiver_id}")
        return item if isinstance(item, Caregiver) else None

    async def list_obligations(
        self, client_id: str, domain: Domain, date_range: DateRange
    ) -> list[Obligation]:
        return [
            o
            for o in self.db
            if isinstance(o, Obligation)
            and o.domain == domain
            and o.client_id == client_id
            and o.is_active
            and o.start_date <= date_range.end
            and (o.end_date is None or o.end_date >= date_range.start)
        ]

    async def list_events(
        self,
        client_id: str,
        domain: Domain,
        date_range: DateRange,
        *,
        caregiver_id: str | None = None,
    ) -> list[Event]:
        return [
            e
            for e in self.db
            if isinstance(e, Event)
            and e.domain == domain
            and e.client_id == client_id
            and e.event_date in date_range
            and (caregiver_id is None or e.caregiver_id == caregiver_id)
        ]

    async def list_shifts(
        self,
        *,
        date_range: DateRange,
        caregiver_id: str | None = None,
        client_id: str | None = None,
        statuses: Collection[ShiftStatus] = WORKED_SHIFT_STATUSES,
    ) -> list[ShiftAssignment]:
        shifts = [
            s
            for s in self.db
            if isinstance(s, ShiftAssignment)
            and s.date in date_range
            and s.status in statuses
            and (caregiver_id is None or s.caregiver_id == caregiver_id)
            and (client_id is None or s.client_id == client_id)
        ]
        return sorted(shifts, key=lambda s: (s.date, s.start_time))


async def guarded(operation: str, awaitable: Awaitable[T]) -> T:
    """
    Await one store read, turning unexpected failures into ``StoreError``.
    No retry here; the caller owns retry and backoff.
    """
    try:
        return await awaitable
    except CareReconError:
        raise
    except Exception as exc:
        logger.error("Store read failed: %s", operation, exc_info=True)
        raise StoreError(operation, exc) from exc


async def run_all(*coros: Coroutine[Any, Any, T]) -> list[T]:
    """
    Run ``coros`` concurrently and return their results in order. The first
    failure cancels the others and is raised unwrapped.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as failures:
        raise failures.exceptions[0] from None
    return [task.result() for task in tasks]


def history_range(until: date) -> DateRange:
    """Everything recorded up to and including ``until``."""
    return DateRange(start=date.min, end=until)
