"""
Offline demo collaborators.

DemoMailClient serves a small canned mailbox through the same interface as
JmapClient, and DemoClassifier answers with canned verdicts keyed by message
id. Together they let the whole pipeline (resolver, fetcher, normalizer,
cache) run without credentials.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .classifier import Classifier
from .engine import local_midnight
from .models import (
    NO_ACTION_NEEDED,
    EmailEnvelope,
    MailboxDescriptor,
)

DEMO_MAILBOXES = [
    MailboxDescriptor(id="mb-inbox", name="Inbox", role="inbox"),
    MailboxDescriptor(id="mb-receipts", name="Receipts"),
    MailboxDescriptor(id="mb-marketing", name="Marketing"),
    MailboxDescriptor(id="mb-spam", name="Junk Mail", role="junk"),
    MailboxDescriptor(id="mb-trash", name="Trash", role="trash"),
]

# (id, sender name, sender email, subject, preview, mailboxes, anchor, offset)
# anchor "now" counts back from the current time, "midnight" from the start
# of the current day.
_DEMO_MESSAGES: List[Tuple[str, str, str, str, str, Tuple[str, ...], str, timedelta]] = [
    (
        "demo-001", "Riverside Dental", "frontdesk@riversidedental.example",
        "Please confirm your cleaning appointment",
        "Reply YES to confirm your appointment on Thursday at 10:30am...",
        ("mb-inbox",), "now", timedelta(minutes=2),
    ),
    (
        "demo-002", "City Water", "billing@citywater.example",
        "Final notice: water bill past due",
        "Your balance of $86.20 is past due. Pay by Friday to avoid a late fee...",
        ("mb-inbox",), "now", timedelta(minutes=5),
    ),
    (
        "demo-003", "Parcel Express", "track@parcelexpress.example",
        "Your package is out for delivery",
        "Good news! Your order will arrive today by 8pm...",
        ("mb-inbox", "mb-spam"), "now", timedelta(minutes=9),
    ),
    (
        "demo-004", "MegaMart Deals", "offers@megamart.example",
        "LAST CHANCE: 40% off ends tonight",
        "Important: your exclusive limited time offer is expiring...",
        ("mb-inbox",), "now", timedelta(minutes=14),
    ),
    (
        "demo-005", "Weekly Roundup", "news@roundup.example",
        "This week in gadgets",
        "Our favourite new gadgets of the week...",
        ("mb-marketing",), "now", timedelta(minutes=20),
    ),
    (
        "demo-006", "Coffee Corner", "receipts@coffeecorner.example",
        "Your receipt from Coffee Corner",
        "Thanks for your order. Total charged: $7.45...",
        ("mb-receipts",), "midnight", timedelta(hours=3),
    ),
    (
        "demo-007", "Jordan Lee", "jordan.lee@work.example",
        "Can you sign off on the Q3 budget?",
        "Hi, finance needs your signature on the Q3 budget by Wednesday noon...",
        ("mb-inbox",), "midnight", timedelta(hours=9),
    ),
    (
        "demo-008", "Campaign HQ", "donate@campaign.example",
        "URGENT: action required before midnight",
        "We need your support now more than ever. Chip in $5...",
        ("mb-inbox",), "midnight", timedelta(hours=11),
    ),
    (
        "demo-009", "Prize Center", "winner@prizes.example",
        "You have won!",
        "Claim your prize now...",
        ("mb-spam",), "midnight", timedelta(hours=13),
    ),
    (
        "demo-010", "County Clerk", "jury@county.example",
        "Jury duty questionnaire due",
        "Complete and return the enclosed questionnaire within 10 days...",
        ("mb-inbox",), "midnight", timedelta(days=3),
    ),
    (
        "demo-011", "First Savings Bank", "statements@firstsavings.example",
        "Your monthly statement is ready",
        "Your statement for the period ending on the 30th is available...",
        ("mb-inbox",), "midnight", timedelta(days=4),
    ),
    (
        "demo-012", "Code Host Security", "security@codehost.example",
        "New sign-in to your account",
        "We noticed a new sign-in from an unrecognised device...",
        ("mb-inbox",), "midnight", timedelta(days=5),
    ),
]

# message id -> (category, summary, action, context)
_DEMO_VERDICTS: Dict[str, Tuple[str, str, str, List[str]]] = {
    "demo-001": (
        "ACTIONABLE",
        "Dental cleaning on Thursday needs confirmation",
        "Reply YES to confirm the appointment",
        [
            "Appointment: Thursday at 10:30 AM",
            "Unconfirmed slots may be released to the waitlist",
            "Riverside Dental front desk",
        ],
    ),
    "demo-002": (
        "ACTIONABLE",
        "Water bill of $86.20 is past due",
        "Pay the balance before Friday",
        [
            "Balance due: $86.20",
            "Late fee applies after Friday",
            "Pay online or by phone",
        ],
    ),
    "demo-003": (
        "INFORMATIONAL",
        "Package out for delivery today",
        NO_ACTION_NEEDED,
        [
            "Expected delivery: today by 8 PM",
            "Carrier: Parcel Express",
            "No signature required",
        ],
    ),
    "demo-006": (
        "INFORMATIONAL",
        "Coffee Corner receipt for $7.45",
        NO_ACTION_NEEDED,
        [
            "Total charged: $7.45",
            "Paid by card",
            "No problems with the order",
        ],
    ),
    "demo-007": (
        "ACTIONABLE",
        "Finance needs your Q3 budget signature",
        "Sign the Q3 budget before Wednesday noon",
        [
            "Requested by Jordan Lee",
            "Deadline: Wednesday 12:00",
            "Finance is blocked until it is signed",
        ],
    ),
    "demo-010": (
        "ACTIONABLE",
        "Jury duty questionnaire must be returned",
        "Complete and return the questionnaire within 10 days",
        [
            "Sent by the County Clerk",
            "Return window: 10 days from receipt",
            "Failure to respond may result in a summons",
        ],
    ),
    "demo-011": (
        "INFORMATIONAL",
        "Monthly bank statement available",
        NO_ACTION_NEEDED,
        [
            "First Savings Bank",
            "Statement period ended on the 30th",
            "Available in online banking",
        ],
    ),
    "demo-012": (
        "ACTIONABLE",
        "Unrecognised sign-in to your code host account",
        "Confirm the sign-in was you or reset your password",
        [
            "New device sign-in detected",
            "Review active sessions in security settings",
            "Reset password if this was not you",
        ],
    ),
}


class DemoMailClient:
    """In-memory mail provider with the JmapClient query semantics."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        now = now or datetime.now().astimezone()
        midnight = local_midnight(now.date(), now)

        self._mailboxes = list(DEMO_MAILBOXES)
        self._messages: List[EmailEnvelope] = []
        for msg_id, name, email, subject, preview, mailboxes, anchor, offset in _DEMO_MESSAGES:
            base = now if anchor == "now" else midnight
            record: Dict[str, Any] = {
                "id": msg_id,
                "subject": subject,
                "from": [{"name": name, "email": email}],
                "receivedAt": base - offset,
                "preview": preview,
                "mailboxIds": {mb: True for mb in mailboxes},
            }
            self._messages.append(EmailEnvelope.model_validate(record))

    async def list_mailboxes(self) -> List[MailboxDescriptor]:
        return list(self._mailboxes)

    async def query_envelopes(
        self,
        start: datetime,
        end: datetime,
        excluded_mailbox_ids: Sequence[str] = (),
        limit: int = 50,
    ) -> List[EmailEnvelope]:
        excluded = set(excluded_mailbox_ids)
        matches = [
            env
            for env in self._messages
            if start <= env.received_at < end and (env.mailbox_ids - excluded)
        ]
        matches.sort(key=lambda env: env.received_at, reverse=True)
        return matches[:limit]


class DemoClassifier(Classifier):
    """Canned verdicts; messages without one are treated as SKIP."""

    name = "demo"

    async def _request_payload(self, envelopes: Sequence[EmailEnvelope]) -> Dict[str, Any]:
        classifications = []
        for idx, env in enumerate(envelopes):
            verdict = _DEMO_VERDICTS.get(env.id)
            if verdict is None:
                continue
            category, summary, action, context = verdict
            classifications.append(
                {
                    "email_index": idx,
                    "category": category,
                    "summary": summary,
                    "action": action,
                    "context": context,
                }
            )
        return {"classifications": classifications}
