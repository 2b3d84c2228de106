"""
Window fetcher: envelopes received in one time window, newest first.
"""

import logging
from datetime import datetime
from typing import List

from .errors import FetchError, TriageError
from .jmap_client import MailProvider
from .mailboxes import resolve_excluded_mailboxes
from .models import EmailEnvelope

logger = logging.getLogger(__name__)

MAX_ENVELOPES_PER_WINDOW = 50


async def fetch_window(
    provider: MailProvider,
    start: datetime,
    end: datetime,
    limit: int = MAX_ENVELOPES_PER_WINDOW,
) -> List[EmailEnvelope]:
    """
    Fetch envelopes received in [start, end), skipping excluded mailboxes.

    The exclusion set is resolved again on every call. A message that is
    also filed in a non-excluded mailbox is kept.

    Returns:
        At most `limit` envelopes (never more than 50), newest first.

    Raises:
        FetchError: on any provider failure; no partial list is returned.
    """
    if end <= start:
        logger.info("Empty window %s .. %s; nothing to fetch.", start.isoformat(), end.isoformat())
        return []

    limit = max(0, min(limit, MAX_ENVELOPES_PER_WINDOW))

    excluded = await resolve_excluded_mailboxes(provider)

    try:
        envelopes = await provider.query_envelopes(
            start,
            end,
            excluded_mailbox_ids=excluded,
            limit=limit,
        )
    except TriageError:
        raise
    except Exception as e:
        raise FetchError(f"Failed to load emails: {e}") from e

    # Keep the ordering and cap even if the provider ignored them
    envelopes = sorted(envelopes, key=lambda env: env.received_at, reverse=True)[:limit]

    logger.info(
        "Fetched %d envelopes for window %s .. %s",
        len(envelopes),
        start.isoformat(),
        end.isoformat(),
    )
    return envelopes
