"""
Triage engine: orchestrates mail provider + classifier + cache.

Core pieces:
- window_ranges: the today / yesterday / week time ranges for a moment
- TriageSession: the session-scoped cache and status flags
- TriageEngine.run_full_cycle: today always, yesterday/week once per day
- TriageEngine.refresh_today: today only
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Dict, List, Optional

import httpx

from .cache import TriageCache
from .classifier import Classifier, build_classifier
from .config import Config
from .errors import TriageError
from .fetcher import MAX_ENVELOPES_PER_WINDOW, fetch_window
from .jmap_client import JmapClient, MailProvider
from .models import DAILY_WINDOWS, TriageEmail, Window
from .normalizer import build_triage_emails

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowRange:
    window: Window
    start: datetime
    end: datetime


def _local_now() -> datetime:
    return datetime.now().astimezone()


def local_midnight(day: date, now: datetime) -> datetime:
    """
    Midnight starting `day`, in the zone `now` belongs to.

    A fixed offset equal to the system's current offset (what `_local_now`
    returns) stands for the system zone: the offset in force at that midnight
    is looked up rather than reused.
    """
    if now.tzinfo is None:
        return datetime.combine(day, time())
    if isinstance(now.tzinfo, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        return datetime.combine(day, time()).astimezone()
    return datetime.combine(day, time(), tzinfo=now.tzinfo)


def day_key(now: datetime) -> str:
    """Calendar-day string used to decide whether daily windows are stale."""
    return now.date().isoformat()


def window_ranges(now: datetime) -> Dict[Window, WindowRange]:
    """
    Compute the three fetch windows for `now`.

    - today:     midnight .. now
    - yesterday: previous midnight .. midnight
    - week:      7 days before midnight .. previous midnight
    """
    today = now.date()
    today_start = local_midnight(today, now)
    yesterday_start = local_midnight(today - timedelta(days=1), now)
    week_start = local_midnight(today - timedelta(days=7), now)

    return {
        Window.TODAY: WindowRange(Window.TODAY, today_start, now),
        Window.YESTERDAY: WindowRange(Window.YESTERDAY, yesterday_start, today_start),
        Window.WEEK: WindowRange(Window.WEEK, week_start, yesterday_start),
    }


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


@dataclass
class TriageSession:
    """
    Everything one user session keeps between triage cycles.

    `error` holds the message of the last failed cycle, cleared when a new
    cycle starts.
    """

    cache: TriageCache = field(default_factory=TriageCache)
    error: Optional[str] = None
    loading: bool = False
    loading_today: bool = False


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TriageEngine:
    def __init__(
        self,
        provider: MailProvider,
        classifier: Classifier,
        max_emails_per_window: int = MAX_ENVELOPES_PER_WINDOW,
    ) -> None:
        self.provider = provider
        self.classifier = classifier
        self.max_emails_per_window = max_emails_per_window

    async def triage_window(self, rng: WindowRange) -> List[TriageEmail]:
        """Fetch, classify and normalize one window. Raises TriageError subclasses."""
        logger.info(
            "Triaging window %s (%s to %s)",
            rng.window.value,
            rng.start.isoformat(),
            rng.end.isoformat(),
        )
        envelopes = await fetch_window(
            self.provider,
            rng.start,
            rng.end,
            limit=self.max_emails_per_window,
        )
        results = await self.classifier.classify(envelopes)
        emails = build_triage_emails(envelopes, results)

        logger.info(
            "Window %s: %d fetched, %d surfaced.",
            rng.window.value,
            len(envelopes),
            len(emails),
        )
        return emails

    async def run_full_cycle(
        self,
        session: TriageSession,
        now: Optional[datetime] = None,
    ) -> List[Window]:
        """
        Full triage cycle:

        1. Recompute `today`.
        2. Recompute `yesterday` and `week` only if they were not refreshed on
           the current calendar day.
        3. Store every recomputed window, all at once, only if all succeeded.

        Returns the windows that were recomputed; empty if the cycle failed
        (session.error is set) or another full cycle is still running.
        """
        if session.loading:
            logger.warning("Full triage cycle already in progress; ignoring trigger.")
            return []

        session.loading = True
        session.error = None
        try:
            now = now or _local_now()
            day = day_key(now)
            ranges = window_ranges(now)

            updates: Dict[Window, List[TriageEmail]] = {
                Window.TODAY: await self.triage_window(ranges[Window.TODAY]),
            }
            for window in DAILY_WINDOWS:
                if session.cache.is_stale(window, day):
                    updates[window] = await self.triage_window(ranges[window])
                else:
                    logger.info(
                        "Window %s already refreshed on %s; using cached results.",
                        window.value,
                        day,
                    )

            for window, emails in updates.items():
                session.cache.store(window, emails, day=day if window in DAILY_WINDOWS else None)

            logger.info(
                "Full triage cycle complete: refreshed %s.",
                ", ".join(w.value for w in updates),
            )
            return list(updates)

        except TriageError as e:
            logger.exception("Full triage cycle failed: %s", e)
            session.error = str(e)
            return []
        finally:
            session.loading = False

    async def refresh_today(
        self,
        session: TriageSession,
        now: Optional[datetime] = None,
    ) -> List[Window]:
        """
        Recompute `today` alone. yesterday/week are left as they are, stale
        or not.
        """
        if session.loading_today:
            logger.warning("Today refresh already in progress; ignoring trigger.")
            return []

        session.loading_today = True
        session.error = None
        try:
            now = now or _local_now()
            rng = window_ranges(now)[Window.TODAY]
            emails = await self.triage_window(rng)
            session.cache.store(Window.TODAY, emails)
            return [Window.TODAY]

        except TriageError as e:
            logger.exception("Today refresh failed: %s", e)
            session.error = str(e)
            return []
        finally:
            session.loading_today = False


async def start_session(engine: TriageEngine, now: Optional[datetime] = None) -> TriageSession:
    """Create an empty session and run its first full cycle."""
    session = TriageSession()
    await engine.run_full_cycle(session, now=now)
    return session


def build_engine(config: Config, http: httpx.AsyncClient) -> TriageEngine:
    """
    Wire the configured collaborators.

    Demo mode uses the offline demo mailbox and classifier. Otherwise the
    classifier backend is checked first, then the mail provider credentials.

    Raises:
        ConfigurationError: when a required credential is missing.
    """
    if config.demo_mode:
        from .demo import DemoClassifier, DemoMailClient

        logger.info("Demo mode: using canned mailbox and classifications.")
        return TriageEngine(
            DemoMailClient(),
            DemoClassifier(),
            max_emails_per_window=config.max_emails_per_window,
        )

    classifier = build_classifier(config, http)
    provider = JmapClient.from_config(config, http)
    return TriageEngine(
        provider,
        classifier,
        max_emails_per_window=config.max_emails_per_window,
    )
