"""
Prompt template for the actionability classification pass.
"""

import json
from typing import Dict, List, Sequence

from .models import (
    CONTEXT_LINE_MAX_CHARS,
    NO_ACTION_NEEDED,
    SUMMARY_MAX_CHARS,
    EmailEnvelope,
)


EXAMPLE_RESPONSE = {
    "classifications": [
        {
            "email_index": 0,
            "category": "ACTIONABLE",
            "summary": "Medical appointment on Dec 22",
            "action": "Print and fill out questionnaire",
            "context": [
                "Appointment scheduled for 2:00 PM",
                "Bring insurance card and ID",
                "Arrive 15 minutes early for check-in",
            ],
        }
    ]
}


def _serialize_envelopes(envelopes: Sequence[EmailEnvelope]) -> str:
    blocks = []
    for idx, env in enumerate(envelopes):
        blocks.append(
            f"Email {idx}:\n"
            f"From: {env.sender_email}\n"
            f"Subject: {env.subject}\n"
            f"Preview: {env.preview}"
        )
    return "\n\n".join(blocks)


def build_classification_prompt(envelopes: Sequence[EmailEnvelope]) -> str:
    """
    Build the single-turn prompt that asks the model to classify a batch.

    Emails are enumerated by their position in `envelopes`; the model answers
    with those positions as `email_index`.
    """
    taxonomy = (
        "You are an email triage assistant focused on ACTIONABILITY. Your job is"
        " to surface emails that require the user to DO something, not just"
        " emails that sound important.\n\n"
        "Classify each email as:\n"
        "- ACTIONABLE: User must personally take a specific action (reply, pay,"
        " schedule, sign, submit, confirm, complete a form, make a decision)."
        " Missing this email would cause a real problem: a missed deadline,"
        " lost money, or an unmet obligation.\n"
        "- INFORMATIONAL: Worth a quick glance but no action required (shipping"
        " and delivery notices, purchase receipts with no issues, routine"
        " account statements, successful payment confirmations).\n"
        "- SKIP: Do not surface. This includes marketing, promotional offers,"
        " political campaigns, fundraising requests, newsletters, social media"
        " notifications, automated alerts, and anything where the user is not"
        " personally required to do something.\n\n"
    )

    rules = (
        "IMPORTANT RULES:\n"
        '- Words like "review", "important", "action" or "limited time" do NOT'
        " by themselves make an email actionable\n"
        "- Receipts and order confirmations are INFORMATIONAL unless there is a"
        " problem requiring action\n"
        "- Shipping/delivery notifications are INFORMATIONAL (no action needed to"
        " receive a package)\n"
        "- Political emails and fundraising are ALWAYS SKIP regardless of urgency"
        " language\n"
        '- Marketing emails are ALWAYS SKIP even if they mention "limited time"'
        ' or "expiring"\n'
        '- If unsure, ask: "Would missing this email cause the user to miss a'
        ' deadline, lose money, or fail to fulfill an obligation?"\n\n'
    )

    fields = (
        "For each ACTIONABLE or INFORMATIONAL email, provide:\n"
        "1. Category (ACTIONABLE or INFORMATIONAL)\n"
        f"2. One-line summary (under {SUMMARY_MAX_CHARS} chars) describing what"
        " the email is about\n"
        f'3. Specific action needed (or "{NO_ACTION_NEEDED}" if just'
        " informational)\n"
        f"4. Exactly three lines of contextual information (each under"
        f" {CONTEXT_LINE_MAX_CHARS} chars) that highlight the most important"
        " details\n\n"
    )

    return (
        taxonomy
        + rules
        + fields
        + "Classify these emails:\n\n"
        + _serialize_envelopes(envelopes)
        + "\n\n"
        "Respond in JSON format with this exact structure:\n"
        + json.dumps(EXAMPLE_RESPONSE, indent=2)
        + "\n\n"
        "Only include emails that are ACTIONABLE or INFORMATIONAL in your"
        " response. Skip all others."
    )


def build_classification_messages(envelopes: Sequence[EmailEnvelope]) -> List[Dict[str, str]]:
    return [{"role": "user", "content": build_classification_prompt(envelopes)}]
