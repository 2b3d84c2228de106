"""
Per-session triage cache.

`today` is recomputed on every cycle. `yesterday` and `week` remember the
calendar day they were refreshed on and are reused until that day changes.
Nothing is persisted; a new process starts empty.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from .models import DAILY_WINDOWS, TriageEmail, Window


class TriageCache(BaseModel):
    emails: Dict[Window, List[TriageEmail]] = Field(default_factory=dict)
    refreshed_on: Dict[Window, str] = Field(default_factory=dict)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=False,
    )

    def get(self, window: Window) -> List[TriageEmail]:
        return list(self.emails.get(window, []))

    def is_populated(self, window: Window) -> bool:
        return window in self.emails

    def last_refreshed(self, window: Window) -> Optional[str]:
        return self.refreshed_on.get(window)

    def is_stale(self, window: Window, day: str) -> bool:
        """
        Whether `window` must be recomputed on calendar day `day`.

        `today` is always stale.
        """
        if window not in DAILY_WINDOWS:
            return True
        return self.refreshed_on.get(window) != day

    def store(self, window: Window, emails: List[TriageEmail], day: Optional[str] = None) -> None:
        """
        Replace the cached value of `window`.

        For yesterday/week the refresh day is recorded as well and is
        required.
        """
        if window in DAILY_WINDOWS:
            if day is None:
                raise ValueError(f"A refresh day is required to store window {window.value!r}")
            self.refreshed_on[window] = day
        self.emails[window] = list(emails)
