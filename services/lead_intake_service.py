"""
Lead intake service.

Persists new leads for both intake pathways:

- match-request: an authenticated user's submission is split by the PII
  partitioner and written as ONE create carrying all three tiers. If that
  create fails, a compensating delete of the id is attempted before the
  error is re-raised, so no partial lead can survive.
- direct-contact: a validated flat form addressed to a single lawyer.

Both writes land with status "new". Nothing is applied locally; the Lead
Aggregator sees the lead when its change event arrives.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

from domain.capabilities import Capability, Identity, require_capability
from domain.errors import PreconditionError, TransportError
from domain.lead import DirectContactInput, LeadOrigin
from domain.partition import partition
from domain.time import utc_now
from repositories.collection_client import CollectionClient
from repositories.lead_repository import LeadRepository

logger = logging.getLogger(__name__)


class LeadIntakeService:
    def __init__(
        self,
        client: CollectionClient,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._repository = LeadRepository(client)
        self._clock = clock
        self._id_factory = id_factory

    async def submit_match_request(self, raw: Mapping[str, Any], owner: Optional[Identity]) -> str:
        """
        Partition and persist a match request, returning the new lead id.

        Raises:
            PreconditionError: no authenticated owner.
            AuthorizationError: the owner's role may not submit match requests.
            ValidationError: unknown, missing or owner-stamp fields in `raw`.
            TransportError: the create failed (after the compensating delete).
        """

        if owner is None:
            raise PreconditionError("Match requests require an authenticated owner")
        require_capability(owner, Capability.SUBMIT_MATCH_REQUEST)

        partitioned = partition(raw, owner.user_id)
        lead_id = self._id_factory()

        try:
            await self._repository.insert_match_request(lead_id, partitioned, self._clock())
        except TransportError:
            logger.error(
                f"Match request {lead_id} failed to persist; rolling back",
                extra={"lead_id": lead_id, "owner_id": owner.user_id},
            )
            await self._compensate(lead_id)
            raise

        logger.info(
            f"Match request persisted: {lead_id}",
            extra={"lead_id": lead_id, "owner_id": owner.user_id},
        )
        return lead_id

    async def _compensate(self, lead_id: str) -> None:
        try:
            await self._repository.delete(lead_id, LeadOrigin.MATCH_REQUEST)
        except TransportError as exc:
            logger.warning(
                f"Compensating delete for {lead_id} failed: {exc.message}",
                extra={"lead_id": lead_id},
            )
        else:
            logger.warning(
                f"Compensating delete executed for {lead_id}",
                extra={"lead_id": lead_id},
            )

    async def submit_direct_contact(self, intake: DirectContactInput) -> str:
        """Validate and persist a direct-contact request. Returns the new lead id."""

        intake.validate()
        lead_id = self._id_factory()
        await self._repository.insert_direct_contact(lead_id, intake, self._clock())
        logger.info(
            f"Direct-contact lead persisted: {lead_id}",
            extra={"lead_id": lead_id, "lawyer_id": intake.lawyer_id},
        )
        return lead_id


__all__ = ["LeadIntakeService"]
