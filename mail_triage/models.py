"""
Pydantic models for mailboxes, email envelopes, classification results and
triage windows.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, ConfigDict, field_validator


SUMMARY_MAX_CHARS = 100
CONTEXT_LINE_MAX_CHARS = 80
CONTEXT_LINES = 3

NO_ACTION_NEEDED = "No action needed"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Category(str, Enum):
    ACTIONABLE = "ACTIONABLE"
    INFORMATIONAL = "INFORMATIONAL"


class Window(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"

    @property
    def label(self) -> str:
        return {
            Window.TODAY: "Today",
            Window.YESTERDAY: "Yesterday",
            Window.WEEK: "Past Week",
        }[self]


# Windows whose cached value survives until the calendar day changes
DAILY_WINDOWS = (Window.YESTERDAY, Window.WEEK)


# ---------------------------------------------------------------------------
# Mailboxes
# ---------------------------------------------------------------------------


class MailboxDescriptor(BaseModel):
    """
    One entry of the provider's mailbox listing (JMAP Mailbox/get).
    """

    id: str
    name: str = ""
    role: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Email envelopes
# ---------------------------------------------------------------------------


class EmailAddress(BaseModel):
    name: Optional[str] = None
    email: str = ""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )


class EmailEnvelope(BaseModel):
    """
    Metadata plus preview text of a message, as returned by JMAP Email/get.

    Field aliases match the JMAP property names so provider records can be
    validated directly.
    """

    id: str
    subject: str = ""
    sender: List[EmailAddress] = Field(default_factory=list, alias="from")
    received_at: datetime = Field(alias="receivedAt")
    preview: str = ""
    text_body: Optional[str] = Field(default=None, alias="textBody")
    mailbox_ids: Set[str] = Field(default_factory=set, alias="mailboxIds")

    @field_validator("subject", "preview", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("sender", mode="before")
    @classmethod
    def none_to_no_senders(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("mailbox_ids", mode="before")
    @classmethod
    def mailbox_map_to_set(cls, v: Any) -> Any:
        # JMAP sends mailboxIds as {"<id>": true, ...}
        if isinstance(v, dict):
            return {k for k, present in v.items() if present}
        return v

    @property
    def sender_email(self) -> str:
        if self.sender and self.sender[0].email:
            return self.sender[0].email
        return "Unknown"

    @property
    def sender_name(self) -> Optional[str]:
        return self.sender[0].name if self.sender else None

    @classmethod
    def from_jmap(cls, record: Dict[str, Any]) -> "EmailEnvelope":
        """
        Build an envelope from a raw JMAP Email object.

        JMAP returns `textBody` as a list of body-part descriptors; the text
        itself lives in `bodyValues` keyed by partId. The parts are joined
        into a single string, or None when no text part was returned.
        """
        data = dict(record)
        parts = data.pop("textBody", None) or []
        values = data.pop("bodyValues", None) or {}

        chunks: List[str] = []
        for part in parts:
            part_id = part.get("partId") if isinstance(part, dict) else None
            value = values.get(part_id) if part_id else None
            if value and value.get("value"):
                chunks.append(value["value"])

        data["textBody"] = "\n".join(chunks) if chunks else None
        return cls.model_validate(data)

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class ClassificationResult(BaseModel):
    """
    One classifier verdict, referencing its envelope by position in the batch.

    Summary and context lines are clipped to their display limits; context is
    always exactly three lines (padded with empty strings if the model sent
    fewer).
    """

    email_index: int
    category: str
    summary: str = ""
    action: str = ""
    context: List[str] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def upper_category(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("summary", "action", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("summary")
    @classmethod
    def clip_summary(cls, v: str) -> str:
        return v[:SUMMARY_MAX_CHARS]

    @field_validator("context", mode="before")
    @classmethod
    def exactly_three_lines(cls, v: Any) -> Any:
        if v is None:
            v = []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list):
            return v
        lines = [str(line)[:CONTEXT_LINE_MAX_CHARS] for line in v[:CONTEXT_LINES]]
        lines.extend([""] * (CONTEXT_LINES - len(lines)))
        return lines

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )


class TriageEmail(EmailEnvelope):
    """
    An envelope merged with its classification. This is what the cache stores
    and what the report shows.
    """

    category: str
    summary: str = ""
    action: str = ""
    context: List[str] = Field(default_factory=list)

    def web_url(self, base_url: str) -> str:
        return f"{base_url}{self.id}"


__all__ = [
    "Category",
    "Window",
    "DAILY_WINDOWS",
    "MailboxDescriptor",
    "EmailAddress",
    "EmailEnvelope",
    "ClassificationResult",
    "TriageEmail",
    "NO_ACTION_NEEDED",
]
