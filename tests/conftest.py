import asyncio

import pytest

from carerecon.config import reset_settings
from carerecon.database import InMemoryCareStore
from carerecon.models import Caregiver, Client, DateRange, Domain, Event


class OneClientFailsStore(InMemoryCareStore):
    """
    Care-report reads for cl-2 hang until cancelled; the same read for cl-1
    fails once cl-2's read is in flight.
    """

    def __init__(self) -> None:
        super().__init__()
        self.slow_read_started = asyncio.Event()
        self.slow_read_cancelled = False

    async def list_events(
        self,
        client_id: str,
        domain: Domain,
        date_range: DateRange,
        *,
        caregiver_id: str | None = None,
    ) -> list[Event]:
        if domain == Domain.CARE_REPORT:
            if client_id == "cl-2":
                self.slow_read_started.set()
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    self.slow_read_cancelled = True
                    raise
            await self.slow_read_started.wait()
            raise ConnectionError("replica lost")
        return await super().list_events(
            client_id, domain, date_range, caregiver_id=caregiver_id
        )


def _seed_people(store: InMemoryCareStore) -> None:
    store.add(
        Caregiver(id="cg-1", name="Anna de Vries"),
        Caregiver(id="cg-2", name="Bram Jansen"),
        Client(id="cl-1", name="Mevrouw Bakker"),
        Client(id="cl-2", name="Meneer Visser"),
    )


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store() -> InMemoryCareStore:
    store = InMemoryCareStore()
    _seed_people(store)
    return store


@pytest.fixture
def failing_store() -> OneClientFailsStore:
    store = OneClientFailsStore()
    _seed_people(store)
    return store
