"""
Classifier: batch of envelopes in, ClassificationResult list out.

Classifier is the interface the engine depends on. AnthropicClassifier and
OpenAIClassifier differ only in how they reach the model; prompt and payload
parsing are shared.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import httpx
from pydantic import ValidationError

from .config import MODEL_GPT_4O_MINI, MODEL_HAIKU, SUPPORTED_MODELS, Config
from .errors import ClassificationError, ConfigurationError, DataAnomaly
from .llm_client import call_anthropic_json, call_openai_json
from .models import ClassificationResult, EmailEnvelope
from .prompts import build_classification_messages

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def _check_index(result: ClassificationResult, batch_size: int) -> ClassificationResult:
    if not 0 <= result.email_index < batch_size:
        raise DataAnomaly(
            f"email_index {result.email_index} out of range for batch of {batch_size}"
        )
    return result


def parse_classifications(payload: Dict[str, Any], batch_size: int) -> List[ClassificationResult]:
    """
    Validate a `{"classifications": [...]}` payload.

    Entries with an out-of-range email_index are dropped and logged; any
    other malformed entry fails the whole batch.

    Raises:
        ClassificationError: on a missing/invalid top-level field or entry.
    """
    if not isinstance(payload, dict) or "classifications" not in payload:
        raise ClassificationError("Model response lacks the 'classifications' field.")

    raw = payload["classifications"]
    if not isinstance(raw, list):
        raise ClassificationError("'classifications' in model response is not a list.")

    results: List[ClassificationResult] = []
    for entry in raw:
        try:
            result = ClassificationResult.model_validate(entry)
        except ValidationError as ve:
            raise ClassificationError(f"Invalid classification entry {entry!r}: {ve}") from ve

        try:
            results.append(_check_index(result, batch_size))
        except DataAnomaly as anomaly:
            logger.warning("Dropping classification: %s", anomaly)

    return results


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class Classifier(ABC):
    """Capability interface: classify one batch of envelopes."""

    name: str = "classifier"

    async def classify(self, envelopes: Sequence[EmailEnvelope]) -> List[ClassificationResult]:
        """
        Classify a batch in a single model call.

        SKIPped emails are simply absent from the result. An empty batch
        makes no call.

        Raises:
            ClassificationError: if the call fails or the payload is unusable.
        """
        if not envelopes:
            return []

        payload = await self._request_payload(envelopes)
        results = parse_classifications(payload, len(envelopes))

        logger.info(
            "%s kept %d of %d emails.",
            self.name,
            len(results),
            len(envelopes),
        )
        return results

    @abstractmethod
    async def _request_payload(self, envelopes: Sequence[EmailEnvelope]) -> Dict[str, Any]:
        """Ask the backend about `envelopes` and return its JSON object."""


class AnthropicClassifier(Classifier):
    name = MODEL_HAIKU

    def __init__(self, config: Config, http: httpx.AsyncClient) -> None:
        if not config.anthropic_api_key:
            raise ConfigurationError("Anthropic API key not configured")
        self._config = config
        self._http = http

    async def _request_payload(self, envelopes: Sequence[EmailEnvelope]) -> Dict[str, Any]:
        messages = build_classification_messages(envelopes)
        return await call_anthropic_json(self._config, self._http, messages)


class OpenAIClassifier(Classifier):
    name = MODEL_GPT_4O_MINI

    def __init__(self, config: Config, http: httpx.AsyncClient) -> None:
        if not config.openai_api_key:
            raise ConfigurationError("OpenAI API key not configured")
        self._config = config
        self._http = http

    async def _request_payload(self, envelopes: Sequence[EmailEnvelope]) -> Dict[str, Any]:
        messages = build_classification_messages(envelopes)
        return await call_openai_json(self._config, self._http, messages)


_BACKENDS = {
    MODEL_HAIKU: AnthropicClassifier,
    MODEL_GPT_4O_MINI: OpenAIClassifier,
}


def build_classifier(config: Config, http: httpx.AsyncClient) -> Classifier:
    """
    Pick the backend named by config.triage_model.

    Raises:
        ConfigurationError: for an unknown selector or a missing API key.
    """
    backend = _BACKENDS.get(config.triage_model)
    if backend is None:
        raise ConfigurationError(
            f"Unknown model {config.triage_model!r}; "
            f"expected one of {', '.join(SUPPORTED_MODELS)}."
        )
    return backend(config, http)
