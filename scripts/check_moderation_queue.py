"""
Check moderation queue - review stats and lead counts by origin and status.
"""

import asyncio
import sys
from collections import Counter
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.client import create_supabase_client
from repositories.collection_client import SupabaseCollectionClient
from services.lead_aggregator import LeadAggregator
from services.review_moderation_store import ReviewModerationStore


async def check_moderation_queue():
    """Print review stats and how many leads sit in each status."""

    client = SupabaseCollectionClient(await create_supabase_client())

    async with ReviewModerationStore(client) as store, LeadAggregator(client) as aggregator:
        stats = store.stats()

        print("=" * 50)
        print("REVIEW MODERATION QUEUE")
        print("=" * 50)
        print(f"Total reviews:             {stats.total_reviews}")
        print(f"Pending:                   {stats.total_pending}")
        print(f"Approved:                  {stats.total_approved}")
        print(f"Rejected:                  {stats.total_rejected}")
        print(f"Average rating:            {stats.average_rating:.1f}")
        print(f"Approval rate:             {stats.approval_rate}%")
        if store.stale:
            print("WARNING: review subscription failed, numbers may be out of date")
        print("=" * 50)

        print("\nLeads by origin and status:")
        print("-" * 50)

        counts = Counter((lead.origin.value, lead.status.value) for lead in aggregator.leads())
        for (origin, status) in sorted(counts):
            print(f"{origin} - {status}: {counts[(origin, status)]}")
        for origin in sorted(o.value for o in aggregator.stale_origins):
            print(f"WARNING: {origin} subscription failed, counts may be out of date")

        print("-" * 50)


if __name__ == "__main__":
    asyncio.run(check_moderation_queue())
