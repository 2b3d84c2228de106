"""
mail_triage package

Core logic for LLM-assisted email triage by actionability.
"""

__all__ = [
    "config",
    "logging_config",
    "errors",
    "models",
    "jmap_client",
    "mailboxes",
    "fetcher",
    "prompts",
    "llm_client",
    "classifier",
    "normalizer",
    "cache",
    "engine",
    "demo",
    "report",
    "cli",
]
