"""
Triage report formatting and output helpers.
"""

from pathlib import Path
from typing import Iterable, List, Optional

from .cache import TriageCache
from .models import Category, TriageEmail, Window


def _render_email(lines: List[str], idx: int, email: TriageEmail, web_mail_url: str) -> None:
    sender = email.sender_name or email.sender_email
    lines.append(f"{idx}. **{email.summary or email.subject}** - {sender}")
    lines.append(f"   - **Subject:** {email.subject}")
    lines.append(f"   - **Action:** {email.action}")
    for line in email.context:
        if line:
            lines.append(f"   - {line}")
    lines.append(f"   - [Open in mail]({email.web_url(web_mail_url)})")
    lines.append("")


def generate_window_text(
    window: Window,
    emails: Iterable[TriageEmail],
    web_mail_url: str,
    refreshed_on: Optional[str] = None,
) -> str:
    """Render one window as a markdown section."""
    emails = list(emails)
    lines: List[str] = []

    heading = f"## {window.label}"
    if refreshed_on:
        heading += f" (refreshed {refreshed_on})"
    lines.append(heading)
    lines.append("")

    for category, empty_note in (
        (Category.ACTIONABLE, "_Nothing needs action._"),
        (Category.INFORMATIONAL, "_No informational emails._"),
    ):
        group = [e for e in emails if e.category == category.value]
        lines.append(f"### {category.value.title()} ({len(group)})")
        lines.append("")
        if not group:
            lines.append(empty_note)
            lines.append("")
            continue
        for idx, email in enumerate(group, start=1):
            _render_email(lines, idx, email, web_mail_url)

    return "\n".join(lines)


def generate_triage_text(
    cache: TriageCache,
    web_mail_url: str,
    windows: Iterable[Window] = tuple(Window),
    error: Optional[str] = None,
) -> str:
    """Convert the cached windows into a human-readable markdown string."""
    lines: List[str] = ["# Email Triage", ""]

    if error:
        lines.append(f"> **Last refresh failed:** {error}")
        lines.append("")

    for window in windows:
        if not cache.is_populated(window):
            lines.append(f"## {window.label}")
            lines.append("")
            lines.append("_Not fetched yet._")
            lines.append("")
            continue
        lines.append(
            generate_window_text(
                window,
                cache.get(window),
                web_mail_url,
                refreshed_on=cache.last_refreshed(window),
            )
        )

    return "\n".join(lines).rstrip() + "\n"


def write_triage_to_file(path: Path, text: str) -> Path:
    """Write the triage report to `path`, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
