"""Shared fixtures for mail_triage tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

import httpx
import pytest

from mail_triage.classifier import Classifier
from mail_triage.config import Config
from mail_triage.errors import FetchError
from mail_triage.models import EmailEnvelope, MailboxDescriptor

SESSION_URL = "https://jmap.test/jmap/session"
API_URL = "https://jmap.test/jmap/api/"
ACCOUNT_ID = "acc-123"

# Monday 2026-10-19 15:30 UTC
NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """A fixed, timezone-aware 'now'."""
    return NOW


@pytest.fixture
def config() -> Config:
    """Config with every credential set and no .env lookup."""
    return Config(
        _env_file=None,
        fastmail_api_key="fm-token",
        anthropic_api_key="ant-key",
        openai_api_key="oai-key",
        triage_model="gpt-4o-mini",
        jmap_session_url=SESSION_URL,
        anthropic_api_url="https://llm.test/anthropic/messages",
        openai_api_url="https://llm.test/openai/chat/completions",
    )


@pytest.fixture
def make_envelope() -> Callable[..., EmailEnvelope]:
    """Factory for envelopes with sensible defaults."""

    def _make(
        msg_id: str,
        received_at: datetime = NOW,
        subject: str = "Subject",
        preview: str = "Preview",
        sender: str = "sender@example.com",
        mailboxes: Sequence[str] = ("mb-inbox",),
    ) -> EmailEnvelope:
        return EmailEnvelope.model_validate(
            {
                "id": msg_id,
                "subject": subject,
                "from": [{"name": "Sender", "email": sender}],
                "receivedAt": received_at,
                "preview": preview,
                "mailboxIds": {mb: True for mb in mailboxes},
            }
        )

    return _make


@pytest.fixture
def mailboxes() -> list[MailboxDescriptor]:
    """A mailbox listing with excluded folders matched by name, role or both."""
    return [
        MailboxDescriptor(id="mb-inbox", name="Inbox", role="inbox"),
        MailboxDescriptor(id="mb-marketing", name="Marketing"),
        MailboxDescriptor(id="mb-spam", name="Spam", role="junk"),
        MailboxDescriptor(id="mb-trash", name="Trash", role="trash"),
        MailboxDescriptor(id="mb-archive", name="Archive", role="archive"),
    ]


class FakeMailProvider:
    """In-memory provider that records every call."""

    def __init__(
        self,
        mailboxes: list[MailboxDescriptor],
        envelopes: list[EmailEnvelope],
    ) -> None:
        self.mailboxes = mailboxes
        self.envelopes = envelopes
        self.mailbox_calls = 0
        self.queries: list[dict[str, Any]] = []
        self.fail_listing = False
        self.fail_query = False

    async def list_mailboxes(self) -> list[MailboxDescriptor]:
        self.mailbox_calls += 1
        if self.fail_listing:
            raise FetchError("Failed to load mailboxes")
        return list(self.mailboxes)

    async def query_envelopes(
        self,
        start: datetime,
        end: datetime,
        excluded_mailbox_ids: Sequence[str] = (),
        limit: int = 50,
    ) -> list[EmailEnvelope]:
        self.queries.append(
            {"start": start, "end": end, "excluded": list(excluded_mailbox_ids), "limit": limit}
        )
        if self.fail_query:
            raise FetchError("Failed to load emails")
        excluded = set(excluded_mailbox_ids)
        return [
            env
            for env in self.envelopes
            if start <= env.received_at < end and (env.mailbox_ids - excluded)
        ]


class FakeClassifier(Classifier):
    """Marks every email ACTIONABLE with a summary naming its id."""

    name = "fake"

    def __init__(self) -> None:
        self.batches: list[list[str]] = []
        self.fail = False

    async def _request_payload(self, envelopes: Sequence[EmailEnvelope]) -> dict[str, Any]:
        from mail_triage.errors import ClassificationError

        self.batches.append([env.id for env in envelopes])
        if self.fail:
            raise ClassificationError("HTTP error from OpenAI API: 500")
        return {
            "classifications": [
                {
                    "email_index": i,
                    "category": "ACTIONABLE",
                    "summary": f"summary of {env.id}",
                    "action": "Reply",
                    "context": ["a", "b", "c"],
                }
                for i, env in enumerate(envelopes)
            ]
        }


@pytest.fixture
def fake_provider(
    mailboxes: list[MailboxDescriptor],
    make_envelope: Callable[..., EmailEnvelope],
) -> FakeMailProvider:
    """Provider holding one message in each of today, yesterday and the past week."""
    envelopes = [
        make_envelope("today-1", NOW - timedelta(hours=1)),
        make_envelope("yesterday-1", NOW - timedelta(days=1)),
        make_envelope("week-1", NOW - timedelta(days=4)),
        make_envelope("spam-only", NOW - timedelta(hours=2), mailboxes=("mb-spam",)),
    ]
    return FakeMailProvider(mailboxes, envelopes)


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


# ---------- JMAP server ----------


class JmapServer:
    """httpx.MockTransport handler answering JMAP session and method calls."""

    def __init__(
        self,
        mailboxes: list[dict[str, Any]] | None = None,
        emails: list[dict[str, Any]] | None = None,
    ) -> None:
        self.mailboxes = mailboxes or []
        self.emails = emails or []
        self.requests: list[dict[str, Any]] = []
        self.session_requests = 0
        self.session: dict[str, Any] = {
            "apiUrl": API_URL,
            "primaryAccounts": {"urn:ietf:params:jmap:mail": ACCOUNT_ID},
        }
        self.error_for: str | None = None
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.session_requests += 1
            return httpx.Response(200, json=self.session)

        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "boom"})

        body = json.loads(request.content)
        self.requests.append(body)

        responses = []
        for name, args, call_id in body["methodCalls"]:
            if name == self.error_for:
                responses.append(["error", {"type": "serverFail"}, call_id])
            elif name == "Mailbox/get":
                responses.append(["Mailbox/get", {"list": self.mailboxes}, call_id])
            elif name == "Email/query":
                responses.append(["Email/query", {"ids": [e["id"] for e in self.emails]}, call_id])
            elif name == "Email/get":
                # Deliberately not in query order
                responses.append(["Email/get", {"list": list(reversed(self.emails))}, call_id])
        return httpx.Response(200, json={"methodResponses": responses})


@pytest.fixture
def jmap_server() -> JmapServer:
    return JmapServer(
        mailboxes=[
            {"id": "mb-inbox", "name": "Inbox", "role": "inbox"},
            {"id": "mb-junk", "name": "Junk Mail", "role": "junk"},
            {"id": "mb-blackhole", "name": "BlackHole", "role": None},
        ],
        emails=[
            {
                "id": "m2",
                "subject": "Newer",
                "from": [{"name": "Bob", "email": "bob@example.com"}],
                "receivedAt": "2026-10-19T12:00:00Z",
                "preview": "newer preview",
                "textBody": [{"partId": "1", "type": "text/plain"}],
                "bodyValues": {"1": {"value": "Hello from Bob"}},
                "mailboxIds": {"mb-inbox": True},
            },
            {
                "id": "m1",
                "subject": "Older",
                "from": [{"name": None, "email": "alice@example.com"}],
                "receivedAt": "2026-10-19T09:00:00Z",
                "preview": "older preview",
                "textBody": [],
                "mailboxIds": {"mb-inbox": True, "mb-junk": True},
            },
        ],
    )
