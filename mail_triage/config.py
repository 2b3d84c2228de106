from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Model selector values understood by build_classifier()
MODEL_HAIKU = "haiku-4.5"
MODEL_GPT_4O_MINI = "gpt-4o-mini"
SUPPORTED_MODELS = (MODEL_GPT_4O_MINI, MODEL_HAIKU)


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables and .env file.
    """

    # Mail provider (JMAP)
    fastmail_api_key: str = Field(default="", alias="FASTMAIL_API_KEY")
    jmap_session_url: str = Field(
        default="https://api.fastmail.com/jmap/session",
        alias="JMAP_SESSION_URL",
    )
    web_mail_url: str = Field(
        default="https://www.fastmail.com/mail/Inbox/",
        alias="WEB_MAIL_URL",
    )

    # LLM backends
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    triage_model: str = Field(default=MODEL_GPT_4O_MINI, alias="TRIAGE_MODEL")

    anthropic_model_name: str = Field(
        default="claude-haiku-4-5-20251001",
        alias="ANTHROPIC_MODEL_NAME",
    )
    anthropic_api_url: str = Field(
        default="https://api.anthropic.com/v1/messages",
        alias="ANTHROPIC_API_URL",
    )
    anthropic_version: str = Field(default="2023-06-01", alias="ANTHROPIC_VERSION")

    openai_model_name: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL_NAME")
    openai_api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        alias="OPENAI_API_URL",
    )

    classifier_max_tokens: int = Field(default=4000, alias="CLASSIFIER_MAX_TOKENS")
    http_timeout_seconds: float = Field(default=60.0, alias="HTTP_TIMEOUT_SECONDS")

    # Email triage
    max_emails_per_window: int = Field(
        default=50,
        alias="MAX_EMAILS_PER_WINDOW",
    )
    demo_mode: bool = Field(default=False, alias="TRIAGE_DEMO_MODE")

    # Output
    report_output_path: Path = Field(
        default=Path("data") / "triage.md",
        alias="REPORT_OUTPUT_PATH",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


def load_config(**overrides) -> "Config":
    return Config(**overrides)
