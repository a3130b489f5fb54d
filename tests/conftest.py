"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and
provides an in-memory CollectionClient for the store tests.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.capabilities import Identity, Role  # noqa: E402
from domain.errors import TransportError  # noqa: E402
from repositories.collection_client import (  # noqa: E402
    ID_FIELD,
    ChangeEvent,
    ChangeKind,
    matches_filters,
)


class FakeSubscription:
    def __init__(
        self,
        client: "FakeCollectionClient",
        collection: str,
        on_change: Callable[[ChangeEvent], None],
        on_error: Optional[Callable[[TransportError], None]],
        filters: Optional[Mapping[str, Any]],
        order_by: Optional[str],
    ) -> None:
        self.client = client
        self.collection = collection
        self.on_change = on_change
        self.on_error = on_error
        self.filters = dict(filters or {})
        self.order_by = order_by
        self.active = True

    def snapshot(self) -> ChangeEvent:
        rows = [dict(r) for r in self.client.collections.get(self.collection, {}).values()]
        rows = [r for r in rows if matches_filters(r, self.filters)]
        if self.order_by:
            rows.sort(key=lambda r: str(r.get(self.order_by) or ""), reverse=True)
        return ChangeEvent(ChangeKind.SNAPSHOT, self.collection, documents=tuple(rows))

    async def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.client.released.append(self.collection)


class FakeCollectionClient:
    """
    In-memory CollectionClient.

    - Change events are delivered synchronously inside the write call, unless
      `hold` is set, in which case they queue until `flush()`.
    - `fail(op, ...)` makes every later call of that operation raise
      TransportError until `clear_failures()`.
      `update_many` shares the "update" failure.
    - `emit_error(collection)` reports a subscription failure to listeners.
    """

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.subscriptions: List[FakeSubscription] = []
        self.writes: List[tuple] = []
        self.released: List[str] = []
        self.pending: List[ChangeEvent] = []
        self.hold = False
        self._failures: Dict[str, TransportError] = {}

    # -- test controls -------------------------------------------------

    def seed(self, collection: str, rows: List[Mapping[str, Any]]) -> None:
        """Store rows without emitting change events."""
        docs = self.collections.setdefault(collection, {})
        for row in rows:
            docs[str(row[ID_FIELD])] = dict(row)

    def fail(self, op: str, message: str = "backend unavailable") -> None:
        self._failures[op] = TransportError(message, details={"op": op})

    def clear_failures(self) -> None:
        self._failures.clear()

    def flush(self) -> None:
        pending, self.pending = self.pending, []
        for event in pending:
            self._deliver(event)

    def emit_error(self, collection: str, message: str = "CHANNEL_ERROR") -> None:
        for sub in list(self.subscriptions):
            if sub.active and sub.collection == collection and sub.on_error is not None:
                sub.on_error(TransportError(message, details={"collection": collection}))

    def resnapshot(self, collection: str) -> None:
        for sub in list(self.subscriptions):
            if sub.active and sub.collection == collection:
                sub.on_change(sub.snapshot())

    def active_subscriptions(self, collection: Optional[str] = None) -> List[FakeSubscription]:
        return [
            s for s in self.subscriptions
            if s.active and (collection is None or s.collection == collection)
        ]

    def _check(self, op: str) -> None:
        error = self._failures.get(op)
        if error is not None:
            raise error

    def _notify(self, event: ChangeEvent) -> None:
        if self.hold:
            self.pending.append(event)
        else:
            self._deliver(event)

    def _deliver(self, event: ChangeEvent) -> None:
        for sub in list(self.subscriptions):
            if not sub.active or sub.collection != event.collection:
                continue
            if event.document is not None and not matches_filters(event.document, sub.filters):
                continue
            sub.on_change(event)

    # -- CollectionClient ----------------------------------------------

    async def subscribe(self, collection, on_change, *, on_error=None, filters=None, order_by=None):
        self._check("subscribe")
        sub = FakeSubscription(self, collection, on_change, on_error, filters, order_by)
        self.subscriptions.append(sub)
        on_change(sub.snapshot())
        return sub

    async def list_documents(self, collection, *, filters=None, order_by=None):
        self._check("list")
        rows = [dict(r) for r in self.collections.get(collection, {}).values()]
        return [r for r in rows if matches_filters(r, filters)]

    async def create(self, collection, document_id, data):
        self._check("create")
        row = {**data, ID_FIELD: document_id}
        self.collections.setdefault(collection, {})[document_id] = row
        self.writes.append(("create", collection, document_id, dict(row)))
        self._notify(ChangeEvent(ChangeKind.INSERT, collection, document=dict(row), document_id=document_id))

    async def update(self, collection, document_id, changes):
        self._check("update")
        self.writes.append(("update", collection, document_id, dict(changes)))
        docs = self.collections.get(collection, {})
        if document_id not in docs:
            return
        docs[document_id] = {**docs[document_id], **changes}
        self._notify(
            ChangeEvent(ChangeKind.UPDATE, collection, document=dict(docs[document_id]), document_id=document_id)
        )

    async def update_many(self, collection, document_ids, changes):
        self._check("update")
        self.writes.append(("update_many", collection, tuple(document_ids), dict(changes)))
        docs = self.collections.get(collection, {})
        for document_id in document_ids:
            if document_id not in docs:
                continue
            docs[document_id] = {**docs[document_id], **changes}
            self._notify(
                ChangeEvent(ChangeKind.UPDATE, collection, document=dict(docs[document_id]), document_id=document_id)
            )

    async def delete(self, collection, document_id):
        self._check("delete")
        self.writes.append(("delete", collection, document_id, None))
        if self.collections.get(collection, {}).pop(document_id, None) is not None:
            self._notify(ChangeEvent(ChangeKind.DELETE, collection, document_id=document_id))


class TickingClock:
    """Returns a UTC time one second later on every call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


class SequentialIds:
    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count}"


@pytest.fixture
def fake_client() -> FakeCollectionClient:
    return FakeCollectionClient()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def lawyer() -> Identity:
    return Identity(user_id="lawyer-1", role=Role.LAWYER)


@pytest.fixture
def user() -> Identity:
    return Identity(user_id="user-1", role=Role.USER)
