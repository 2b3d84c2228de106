"""
JMAP mail client.

Provides:
- JmapClient: session discovery plus method-call batches over httpx
- list_mailboxes: Mailbox/get snapshot as MailboxDescriptor objects
- query_envelopes: Email/query chained into Email/get via a result reference

The account id is discovered once from the JMAP session resource and injected
into every method call, so callers never pass it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from .config import Config
from .errors import ConfigurationError, FetchError
from .models import EmailEnvelope, MailboxDescriptor

logger = logging.getLogger(__name__)

JMAP_CAPABILITIES = ["urn:ietf:params:jmap:core", "urn:ietf:params:jmap:mail"]
MAIL_CAPABILITY = "urn:ietf:params:jmap:mail"

ENVELOPE_PROPERTIES = [
    "id",
    "subject",
    "from",
    "receivedAt",
    "preview",
    "textBody",
    "bodyValues",
    "mailboxIds",
]


class MailProvider(Protocol):
    """What the resolver and fetcher need from a mail backend."""

    async def list_mailboxes(self) -> List[MailboxDescriptor]:
        ...

    async def query_envelopes(
        self,
        start: datetime,
        end: datetime,
        excluded_mailbox_ids: Sequence[str] = (),
        limit: int = 50,
    ) -> List[EmailEnvelope]:
        ...


def format_utc_date(value: datetime) -> str:
    """Format a datetime as a JMAP UTCDate (naive values are taken as local time)."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _find_response(
    method_responses: List[Any],
    method: str,
    call_id: str,
) -> Dict[str, Any]:
    """
    Pick the arguments of one method response out of a JMAP batch.

    Raises FetchError if the server answered that call with an error or did
    not answer it at all.
    """
    for entry in method_responses:
        if not isinstance(entry, list) or len(entry) != 3:
            continue
        name, args, cid = entry
        if cid != call_id:
            continue
        if name == "error":
            err_type = args.get("type", "unknown") if isinstance(args, dict) else "unknown"
            raise FetchError(f"JMAP {method} failed: {err_type}")
        if name == method and isinstance(args, dict):
            return args

    raise FetchError(f"JMAP response did not include {method}.")


class JmapClient:
    """Thin async wrapper around a JMAP API endpoint."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_token: str,
        session_url: str = "https://api.fastmail.com/jmap/session",
    ) -> None:
        self._http = http
        self._api_token = api_token
        self._session_url = session_url
        self._account_id: Optional[str] = None
        self._api_url: Optional[str] = None

    @classmethod
    def from_config(cls, config: Config, http: httpx.AsyncClient) -> "JmapClient":
        if not config.fastmail_api_key:
            raise ConfigurationError("FASTMAIL_API_KEY is not set in config.")
        return cls(http, config.fastmail_api_key, session_url=config.jmap_session_url)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
        }

    async def _ensure_session(self) -> None:
        if self._account_id and self._api_url:
            return

        try:
            logger.info("Loading JMAP session from %s", self._session_url)
            resp = await self._http.get(self._session_url, headers=self._headers)
            resp.raise_for_status()
            session = resp.json()
        except httpx.HTTPError as e:
            logger.exception("HTTP error loading JMAP session: %s", e)
            raise FetchError(f"HTTP error loading JMAP session: {e}") from e
        except ValueError as e:
            raise FetchError("Invalid JSON in JMAP session response.") from e

        account_id = (session.get("primaryAccounts") or {}).get(MAIL_CAPABILITY)
        api_url = session.get("apiUrl")
        if not account_id:
            raise FetchError("Could not determine accountId from JMAP session.")
        if not api_url:
            raise FetchError("JMAP session did not include an apiUrl.")

        self._account_id = account_id
        self._api_url = api_url

    async def call(self, method_calls: Sequence[list]) -> List[Any]:
        """
        Send one JMAP request and return its methodResponses.

        Arguments:
            method_calls: [name, arguments, call_id] triples. accountId is
                          added to every arguments object.

        Raises:
            FetchError: on HTTP errors or a malformed response.
        """
        await self._ensure_session()

        calls = [
            [name, {**args, "accountId": self._account_id}, call_id]
            for name, args, call_id in method_calls
        ]
        body = {"using": JMAP_CAPABILITIES, "methodCalls": calls}

        try:
            resp = await self._http.post(self._api_url, headers=self._headers, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            logger.exception("HTTP error calling JMAP API: %s", e)
            raise FetchError(f"HTTP error from JMAP API: {e}") from e
        except ValueError as e:
            raise FetchError("Invalid JSON from JMAP API.") from e

        responses = data.get("methodResponses") if isinstance(data, dict) else None
        if not isinstance(responses, list):
            raise FetchError("JMAP response has no methodResponses.")
        return responses

    # -----------------------------------------------------------------------
    # Mailboxes
    # -----------------------------------------------------------------------

    async def list_mailboxes(self) -> List[MailboxDescriptor]:
        responses = await self.call(
            [["Mailbox/get", {"properties": ["id", "name", "role"]}, "mailboxes"]]
        )
        args = _find_response(responses, "Mailbox/get", "mailboxes")

        try:
            return [MailboxDescriptor.model_validate(mb) for mb in args.get("list") or []]
        except ValidationError as e:
            raise FetchError(f"Unexpected mailbox record from JMAP: {e}") from e

    # -----------------------------------------------------------------------
    # Emails
    # -----------------------------------------------------------------------

    async def query_envelopes(
        self,
        start: datetime,
        end: datetime,
        excluded_mailbox_ids: Sequence[str] = (),
        limit: int = 50,
    ) -> List[EmailEnvelope]:
        """
        Return envelopes received in [start, end), newest first, at most `limit`.

        Messages are excluded only when they sit in no mailbox other than the
        excluded ones (JMAP `inMailboxOtherThan`).
        """
        filter_: Dict[str, Any] = {
            "after": format_utc_date(start),
            "before": format_utc_date(end),
        }
        if excluded_mailbox_ids:
            filter_["inMailboxOtherThan"] = list(excluded_mailbox_ids)

        responses = await self.call(
            [
                [
                    "Email/query",
                    {
                        "filter": filter_,
                        "sort": [{"property": "receivedAt", "isAscending": False}],
                        "limit": limit,
                    },
                    "a",
                ],
                [
                    "Email/get",
                    {
                        "#ids": {"resultOf": "a", "name": "Email/query", "path": "/ids"},
                        "properties": ENVELOPE_PROPERTIES,
                        "fetchTextBodyValues": True,
                    },
                    "b",
                ],
            ]
        )

        query_args = _find_response(responses, "Email/query", "a")
        get_args = _find_response(responses, "Email/get", "b")

        try:
            envelopes = [EmailEnvelope.from_jmap(rec) for rec in get_args.get("list") or []]
        except ValidationError as e:
            raise FetchError(f"Unexpected email record from JMAP: {e}") from e

        # Email/get does not promise to keep the query order
        order = {msg_id: i for i, msg_id in enumerate(query_args.get("ids") or [])}
        envelopes.sort(key=lambda env: order.get(env.id, len(order)))

        logger.info(
            "JMAP returned %d envelopes for %s .. %s",
            len(envelopes),
            filter_["after"],
            filter_["before"],
        )
        return envelopes
