"""
Mailbox resolver: decide which mailboxes are excluded from triage.
"""

import logging
from typing import Iterable, List

from .errors import FetchError, TriageError
from .jmap_client import MailProvider
from .models import MailboxDescriptor

logger = logging.getLogger(__name__)

EXCLUDED_MAILBOX_NAMES = frozenset({"marketing", "blackhole", "spam", "junk", "trash"})
EXCLUDED_MAILBOX_ROLES = frozenset({"spam", "junk", "trash"})


def is_excluded(mailbox: MailboxDescriptor) -> bool:
    name = (mailbox.name or "").lower()
    role = (mailbox.role or "").lower()
    return name in EXCLUDED_MAILBOX_NAMES or role in EXCLUDED_MAILBOX_ROLES


def excluded_mailbox_ids(mailboxes: Iterable[MailboxDescriptor]) -> List[str]:
    """
    Return the ids of excluded mailboxes, each once, in listing order.
    """
    seen = set()
    ids: List[str] = []
    for mb in mailboxes:
        if mb.id in seen or not is_excluded(mb):
            continue
        seen.add(mb.id)
        ids.append(mb.id)
    return ids


async def resolve_excluded_mailboxes(provider: MailProvider) -> List[str]:
    """
    Fetch the mailbox listing and resolve the excluded ids.

    Raises:
        FetchError: if the listing cannot be retrieved.
    """
    try:
        mailboxes = await provider.list_mailboxes()
    except TriageError:
        raise
    except Exception as e:
        raise FetchError(f"Failed to load mailboxes: {e}") from e

    excluded = excluded_mailbox_ids(mailboxes)
    logger.info(
        "Excluding %d of %d mailboxes from triage.",
        len(excluded),
        len(mailboxes),
    )
    return excluded
