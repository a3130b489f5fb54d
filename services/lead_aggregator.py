"""
Lead aggregator.

Subscribes to both lead collections (direct-contact `intake_leads` and
match-request `leads`) and merges them into one origin-tagged feed.

Ordering:
- Each origin's stream is ordered by the store, but nothing orders events
  across the two collections. The merged feed is re-sorted by creation time
  after every change; leads from different origins created at the same instant
  keep concatenation order (direct-contact first). True global order across
  origins is best-effort only.

Writes (single or bulk status updates and removal) require the manage_leads
capability and are confirmed through the subscriptions like every other
write.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from domain.capabilities import Capability, Identity, require_capability
from domain.errors import NotFoundError, TransportError, ValidationError
from domain.lead import LeadOrigin, LeadStatus, TaggedLead, check_lead_transition
from domain.time import utc_now
from repositories.collection_client import ChangeEvent, ChangeKind, CollectionClient, Subscription
from repositories.lead_repository import LeadRepository, row_to_tagged_lead

logger = logging.getLogger(__name__)

LeadFeedListener = Callable[[tuple[TaggedLead, ...]], None]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _creation_key(lead: TaggedLead) -> tuple[bool, datetime]:
    # Leads still waiting for a server timestamp sort as the newest.
    return (lead.created_at is None, lead.created_at or _EPOCH)


def merge_lead_feeds(*feeds: Iterable[TaggedLead]) -> tuple[TaggedLead, ...]:
    """
    Merge per-origin lead feeds into one feed, newest first.

    Feeds are concatenated in argument order and then stably sorted by
    creation time, so ties keep concatenation order. No de-duplication or
    conflict resolution is attempted: the origins never share a collection.
    """

    combined = [lead for feed in feeds for lead in feed]
    return tuple(sorted(combined, key=_creation_key, reverse=True))


def parse_origin(origin: Optional[LeadOrigin | str]) -> Optional[LeadOrigin]:
    """Accept an origin, its string value, or None / "all" meaning no filter."""

    if origin is None or origin == "all":
        return None
    try:
        return LeadOrigin(origin)
    except ValueError as exc:
        raise ValidationError(f"Unknown lead origin '{origin}'", details={"origin": str(origin)}) from exc


def parse_lead_status(status: LeadStatus | str) -> LeadStatus:
    try:
        return LeadStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown lead status '{status}'", details={"status": str(status)}) from exc


class LeadAggregator:
    """
    Merged, origin-tagged view over both lead collections.

    Construct with an explicit CollectionClient; `start()` opens one
    subscription per origin and `close()` releases both.
    """

    def __init__(
        self,
        client: CollectionClient,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = LeadRepository(client)
        self._clock = clock
        self._by_origin: Dict[LeadOrigin, Dict[str, TaggedLead]] = {origin: {} for origin in LeadOrigin}
        self._subscriptions: Dict[LeadOrigin, Subscription] = {}
        self._errors: Dict[LeadOrigin, TransportError] = {}
        self._listeners: List[LeadFeedListener] = []
        self._merged: tuple[TaggedLead, ...] = ()

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        for origin in LeadOrigin:
            existing = self._subscriptions.get(origin)
            if existing is not None and existing.active:
                continue
            try:
                self._subscriptions[origin] = await self._repository.subscribe(
                    origin,
                    partial(self._handle_change, origin),
                    partial(self._handle_subscription_error, origin),
                )
            except TransportError as exc:
                self._handle_subscription_error(origin, exc)

    async def close(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, {}
        for subscription in subscriptions.values():
            await subscription.unsubscribe()
        self._listeners.clear()

    async def __aenter__(self) -> "LeadAggregator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def stale_origins(self) -> frozenset[LeadOrigin]:
        """Origins currently served from their last-known-good view."""
        return frozenset(self._errors)

    @property
    def stale(self) -> bool:
        return bool(self._errors)

    def last_error(self, origin: LeadOrigin) -> Optional[TransportError]:
        return self._errors.get(LeadOrigin(origin))

    def _handle_subscription_error(self, origin: LeadOrigin, error: TransportError) -> None:
        self._errors[origin] = error
        logger.warning(
            f"Lead subscription for {origin.value} failed, serving last-known-good view: {error.message}",
            extra={"origin": origin.value, "cached_leads": len(self._by_origin[origin])},
        )

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def _decode(self, origin: LeadOrigin, row) -> Optional[TaggedLead]:
        try:
            return row_to_tagged_lead(origin, row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                f"Skipping malformed {origin.value} lead row: {exc}",
                extra={"origin": origin.value},
            )
            return None

    def _handle_change(self, origin: LeadOrigin, event: ChangeEvent) -> None:
        leads = self._by_origin[origin]

        if event.kind is ChangeKind.SNAPSHOT:
            rebuilt: Dict[str, TaggedLead] = {}
            for row in event.documents:
                lead = self._decode(origin, row)
                if lead is not None:
                    rebuilt[lead.lead_id] = lead
            self._by_origin[origin] = rebuilt
            self._errors.pop(origin, None)
        elif event.kind in (ChangeKind.INSERT, ChangeKind.UPDATE):
            lead = self._decode(origin, event.document or {})
            if lead is not None:
                leads[lead.lead_id] = lead
        elif event.kind is ChangeKind.DELETE and event.document_id is not None:
            leads.pop(event.document_id, None)

        self._publish()

    def _publish(self) -> None:
        self._merged = merge_lead_feeds(
            self._by_origin[LeadOrigin.DIRECT_CONTACT].values(),
            self._by_origin[LeadOrigin.MATCH_REQUEST].values(),
        )
        for listener in list(self._listeners):
            try:
                listener(self._merged)
            except Exception:
                logger.exception("Lead feed listener failed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def subscribe_all(self, listener: LeadFeedListener) -> Callable[[], None]:
        """
        Register `listener` for the merged feed.

        The listener is called immediately with the current feed and again
        after every change. It is registered only once that first call
        returns. Returns a callable that removes the listener.
        """

        listener(self._merged)
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def leads(self) -> tuple[TaggedLead, ...]:
        return self._merged

    def get(self, lead_id: str, origin: LeadOrigin | str) -> Optional[TaggedLead]:
        return self._by_origin[LeadOrigin(origin)].get(lead_id)

    def counts(self) -> Dict[LeadOrigin, int]:
        return {origin: len(leads) for origin, leads in self._by_origin.items()}

    def filter(
        self,
        origin: Optional[LeadOrigin | str] = None,
        text_search: Optional[str] = None,
    ) -> List[TaggedLead]:
        wanted = parse_origin(origin)
        return [
            lead
            for lead in self._merged
            if (wanted is None or lead.origin is wanted) and lead.matches_text(text_search)
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _require_lead(self, lead_id: str, origin: LeadOrigin) -> TaggedLead:
        lead = self._by_origin[origin].get(lead_id)
        if lead is None:
            raise NotFoundError(
                f"Lead not found: {lead_id} ({origin.value})",
                details={"lead_id": lead_id, "origin": origin.value},
            )
        return lead

    async def update_status(
        self,
        lead_id: str,
        origin: LeadOrigin | str,
        new_status: LeadStatus | str,
        actor: Optional[Identity],
    ) -> None:
        """
        Move a lead forward in its lifecycle.

        Raises:
            AuthorizationError: actor lacks manage_leads.
            ValidationError: unknown origin or status.
            NotFoundError: no such lead for that origin.
            InvalidTransitionError: backward move or any move out of closed.
            TransportError: the write did not reach the store.
        """

        staff = require_capability(actor, Capability.MANAGE_LEADS)
        origin = parse_origin(origin)
        if origin is None:
            raise ValidationError("A lead origin is required", details={"origin": "all"})
        status = parse_lead_status(new_status)

        current = self._require_lead(lead_id, origin)
        if not check_lead_transition(current.status, status):
            return

        await self._repository.update_status(lead_id, origin, status, self._clock())
        logger.info(
            f"Lead {lead_id} moved {current.status.value} -> {status.value}",
            extra={"lead_id": lead_id, "origin": origin.value, "staff_id": staff.user_id},
        )

    async def update_status_many(
        self,
        lead_ids: Sequence[str],
        origin: LeadOrigin | str,
        new_status: LeadStatus | str,
        actor: Optional[Identity],
    ) -> List[str]:
        """
        Apply one status to several leads of the same origin in a single write.

        Every lead is checked before anything is written: one unknown lead or
        illegal move rejects the whole batch. Leads already at the requested
        status are skipped. Returns the ids that were written.
        """

        staff = require_capability(actor, Capability.MANAGE_LEADS)
        origin = parse_origin(origin)
        if origin is None:
            raise ValidationError("A lead origin is required", details={"origin": "all"})
        status = parse_lead_status(new_status)
        if not lead_ids:
            raise ValidationError("No leads selected", details={"lead_ids": []})

        changed: List[str] = []
        for lead_id in dict.fromkeys(lead_ids):
            current = self._require_lead(lead_id, origin)
            if check_lead_transition(current.status, status):
                changed.append(lead_id)
        if not changed:
            return changed

        await self._repository.update_status_many(changed, origin, status, self._clock())
        logger.info(
            f"{len(changed)} {origin.value} leads moved to {status.value}",
            extra={"lead_ids": changed, "origin": origin.value, "staff_id": staff.user_id},
        )
        return changed

    async def remove(self, lead_id: str, origin: LeadOrigin | str, actor: Optional[Identity]) -> None:
        """Hard-delete a lead. Irreversible."""

        staff = require_capability(actor, Capability.MANAGE_LEADS)
        origin = parse_origin(origin)
        if origin is None:
            raise ValidationError("A lead origin is required", details={"origin": "all"})
        self._require_lead(lead_id, origin)

        await self._repository.delete(lead_id, origin)
        logger.info(
            f"Lead {lead_id} removed",
            extra={"lead_id": lead_id, "origin": origin.value, "staff_id": staff.user_id},
        )


__all__ = [
    "LeadAggregator",
    "LeadFeedListener",
    "merge_lead_feeds",
    "parse_origin",
    "parse_lead_status",
]
