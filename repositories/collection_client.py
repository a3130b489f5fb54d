"""
Collection Client: the boundary to the real-time document store.

The stores in `services/` only ever talk to a `CollectionClient`. It provides:
- subscribe(collection, ...) -> a live stream of ChangeEvents, starting with a
  full `snapshot` event and followed by per-document insert/update/delete
  events (at-least-once, ordered per document, no cross-collection ordering).
- list/create/update/delete per document.

`SupabaseCollectionClient` is the production implementation: PostgREST for
reads and writes, a realtime channel per subscription for change events.
Every backend or network failure surfaces as `TransportError`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence
from uuid import uuid4

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient  # type: ignore[import-not-found]

from domain.errors import TransportError

logger = logging.getLogger(__name__)

# Primary-key column shared by every collection.
ID_FIELD: str = "id"


class ChangeKind(str, Enum):
    SNAPSHOT = "snapshot"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """
    One change notification for a collection.

    - SNAPSHOT carries the complete current contents in `documents`.
    - INSERT / UPDATE carry the new document in `document`.
    - DELETE carries only `document_id`.
    """

    kind: ChangeKind
    collection: str
    documents: tuple[Mapping[str, Any], ...] = ()
    document: Optional[Mapping[str, Any]] = None
    document_id: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], None]
ErrorCallback = Callable[[TransportError], None]


class Subscription(Protocol):
    @property
    def active(self) -> bool: ...

    async def unsubscribe(self) -> None: ...


class CollectionClient(Protocol):
    """Subscribe/read/write/delete per document collection."""

    async def subscribe(
        self,
        collection: str,
        on_change: ChangeCallback,
        *,
        on_error: Optional[ErrorCallback] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> Subscription: ...

    async def list_documents(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[dict[str, Any]]: ...

    async def create(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None: ...

    async def update(self, collection: str, document_id: str, changes: Mapping[str, Any]) -> None: ...

    async def update_many(
        self, collection: str, document_ids: Sequence[str], changes: Mapping[str, Any]
    ) -> None: ...

    async def delete(self, collection: str, document_id: str) -> None: ...


def matches_filters(document: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality filter match, as applied to incoming change events."""

    if not filters:
        return True
    return all(document.get(key) == value for key, value in filters.items())


def parse_postgres_change(collection: str, payload: Mapping[str, Any]) -> Optional[ChangeEvent]:
    """
    Normalize a realtime postgres_changes payload into a ChangeEvent.

    Payloads arrive either wrapped (`{"data": {"type", "record", "old_record"}}`)
    or flat (`{"eventType", "new", "old"}`) depending on the realtime version.
    Returns None when the payload cannot be interpreted.
    """

    data = payload.get("data", payload)
    if not isinstance(data, Mapping):
        return None

    kind = str(data.get("type") or data.get("eventType") or "").upper()
    record = data.get("record") or data.get("new") or None
    old_record = data.get("old_record") or data.get("old") or None

    if kind == "INSERT" and record:
        return ChangeEvent(ChangeKind.INSERT, collection, document=dict(record), document_id=str(record.get(ID_FIELD)))
    if kind == "UPDATE" and record:
        return ChangeEvent(ChangeKind.UPDATE, collection, document=dict(record), document_id=str(record.get(ID_FIELD)))
    if kind == "DELETE" and old_record and old_record.get(ID_FIELD) is not None:
        return ChangeEvent(ChangeKind.DELETE, collection, document_id=str(old_record[ID_FIELD]))
    return None


class SupabaseSubscription:
    """Handle for one realtime channel. Must be released with `unsubscribe()`."""

    def __init__(
        self,
        owner: "SupabaseCollectionClient",
        collection: str,
        on_change: ChangeCallback,
        on_error: Optional[ErrorCallback],
        filters: Optional[Mapping[str, Any]],
        order_by: Optional[str],
    ) -> None:
        self._owner = owner
        self.collection = collection
        self._on_change = on_change
        self._on_error = on_error
        self._filters = dict(filters or {})
        self._order_by = order_by
        self._channel: Any = None
        self._active = False
        self._degraded = False
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def active(self) -> bool:
        return self._active

    async def _open(self) -> None:
        client = self._owner.supabase
        channel = client.channel(f"{self.collection}-changes-{uuid4().hex[:8]}")

        realtime_filter: Optional[str] = None
        if len(self._filters) == 1:
            (column, value), = self._filters.items()
            realtime_filter = f"{column}=eq.{value}"

        channel.on_postgres_changes(
            event="*",
            schema="public",
            table=self.collection,
            filter=realtime_filter,
            callback=self._handle_payload,
        )
        self._channel = channel
        self._active = True
        try:
            await channel.subscribe(self._handle_status)
            await self._emit_snapshot()
        except TransportError:
            await self._abandon()
            raise
        except Exception as exc:
            await self._abandon()
            raise TransportError(
                f"Failed to subscribe to '{self.collection}': {exc}",
                details={"collection": self.collection},
            ) from exc

    async def _abandon(self) -> None:
        """Tear down a channel that never finished opening."""
        self._active = False
        channel, self._channel = self._channel, None
        try:
            await self._owner.supabase.remove_channel(channel)
        except Exception as exc:
            logger.warning(
                f"Could not remove half-open channel for '{self.collection}': {exc}",
                extra={"collection": self.collection},
            )

    async def _emit_snapshot(self) -> None:
        rows = await self._owner.list_documents(
            self.collection,
            filters=self._filters,
            order_by=self._order_by,
        )
        if not self._active:
            return
        self._on_change(ChangeEvent(ChangeKind.SNAPSHOT, self.collection, documents=tuple(rows)))

    def _handle_payload(self, payload: Mapping[str, Any]) -> None:
        if not self._active:
            return
        event = parse_postgres_change(self.collection, payload)
        if event is None:
            logger.warning(
                f"Dropped unreadable change event on '{self.collection}'",
                extra={"collection": self.collection},
            )
            return
        if event.document is not None and not matches_filters(event.document, self._filters):
            # The document moved out of this filtered view.
            event = ChangeEvent(ChangeKind.DELETE, self.collection, document_id=event.document_id)
        self._on_change(event)

    def _handle_status(self, status: Any, error: Optional[Exception] = None) -> None:
        state = str(getattr(status, "value", status)).upper()
        if not self._active:
            return

        if state in {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}:
            self._degraded = True
            self._report(TransportError(
                f"Subscription to '{self.collection}' interrupted ({state})",
                details={"collection": self.collection, "state": state, "error": str(error or "")},
            ))
        elif state == "SUBSCRIBED" and self._degraded:
            # Changes missed while disconnected are recovered with a fresh snapshot.
            self._degraded = False
            task = asyncio.ensure_future(self._refresh())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _refresh(self) -> None:
        try:
            await self._emit_snapshot()
        except TransportError as exc:
            self._report(exc)

    def _report(self, error: TransportError) -> None:
        logger.warning(
            f"Realtime subscription error on '{self.collection}': {error.message}",
            extra={"collection": self.collection},
        )
        if self._on_error is not None:
            self._on_error(error)

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        for task in list(self._pending):
            task.cancel()
        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                await self._owner.supabase.remove_channel(channel)
            except Exception as exc:
                raise TransportError(
                    f"Failed to release subscription to '{self.collection}': {exc}",
                    details={"collection": self.collection},
                ) from exc
        logger.info(
            f"Released subscription to '{self.collection}'",
            extra={"collection": self.collection},
        )


class SupabaseCollectionClient:
    """CollectionClient backed by Supabase (PostgREST + realtime)."""

    def __init__(self, supabase: AsyncClient, schema: str = "public") -> None:
        self.supabase = supabase
        self.schema = schema

    async def _execute(self, builder: Any, action: str, collection: str) -> List[dict[str, Any]]:
        try:
            response = await builder.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error(
                f"Failed to {action} on '{collection}': {exc}",
                extra={"collection": collection, "action": action},
            )
            raise TransportError(
                f"Failed to {action}: {exc}",
                details={"collection": collection},
            ) from exc

        error = getattr(response, "error", None)
        if error:
            raise TransportError(f"Failed to {action}: {error}", details={"collection": collection})
        return list(getattr(response, "data", None) or [])

    async def subscribe(
        self,
        collection: str,
        on_change: ChangeCallback,
        *,
        on_error: Optional[ErrorCallback] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> SupabaseSubscription:
        subscription = SupabaseSubscription(self, collection, on_change, on_error, filters, order_by)
        await subscription._open()
        logger.info(
            f"Subscribed to '{collection}'",
            extra={"collection": collection, "filters": dict(filters or {})},
        )
        return subscription

    async def list_documents(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[dict[str, Any]]:
        query = self.supabase.table(collection).select("*")
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        if order_by is not None:
            query = query.order(order_by, desc=True)
        return await self._execute(query, "list documents", collection)

    async def create(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        payload = {**data, ID_FIELD: document_id}
        await self._execute(self.supabase.table(collection).insert(payload), "create document", collection)

    async def update(self, collection: str, document_id: str, changes: Mapping[str, Any]) -> None:
        builder = self.supabase.table(collection).update(dict(changes)).eq(ID_FIELD, document_id)
        await self._execute(builder, "update document", collection)

    async def update_many(
        self, collection: str, document_ids: Sequence[str], changes: Mapping[str, Any]
    ) -> None:
        # One PATCH statement: every row changes or none does.
        builder = self.supabase.table(collection).update(dict(changes)).in_(ID_FIELD, list(document_ids))
        await self._execute(builder, "update documents", collection)

    async def delete(self, collection: str, document_id: str) -> None:
        builder = self.supabase.table(collection).delete().eq(ID_FIELD, document_id)
        await self._execute(builder, "delete document", collection)


__all__ = [
    "ID_FIELD",
    "ChangeKind",
    "ChangeEvent",
    "Subscription",
    "CollectionClient",
    "SupabaseCollectionClient",
    "SupabaseSubscription",
    "matches_filters",
    "parse_postgres_change",
]
