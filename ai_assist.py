from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from openai import OpenAI

from quote_config import DEFAULT_AI_MODEL, DEFAULT_AI_TIMEOUT_S, QuoteConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotesEnhancement:
    enhanced_notes: str
    professional_summary: str


@dataclass(frozen=True)
class ServiceAnalysis:
    name: str
    includes: Tuple[str, ...]
    excludes: Tuple[str, ...]


FALLBACK_SERVICE_ANALYSIS = ServiceAnalysis(
    name="Custom Project Solution",
    includes=("Discovery and Planning", "Implementation", "Quality Assurance"),
    excludes=("Third-party fees", "Hardware costs"),
)

NOTES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "enhancedNotes": {"type": "string"},
        "professionalSummary": {"type": "string"},
    },
    "required": ["enhancedNotes", "professionalSummary"],
    "additionalProperties": False,
}

SERVICE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "includes": {"type": "array", "items": {"type": "string"}},
        "excludes": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "includes", "excludes"],
    "additionalProperties": False,
}

_SYSTEM_PROMPT = (
    "You are a proposal writer for a digital services agency.\n"
    "You MUST output ONLY a single JSON object matching the requested schema (no markdown, no commentary).\n"
)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def fallback_notes(draft) -> NotesEnhancement:
    return NotesEnhancement(
        enhanced_notes=draft.notes,
        professional_summary="Quotation prepared for " + draft.client_name,
    )


def build_notes_prompt(draft) -> str:
    items = ", ".join(item.description for item in draft.items)
    return (
        "Enhance the professional tone of this quotation.\n"
        f"Sender: {draft.sender_name}\n"
        f"Client: {draft.client_name}\n"
        f"Items: {items}\n"
        f"Current Notes: {draft.notes}\n\n"
        "Provide a more professional 'Notes' section and a short executive summary for the quote."
    )


def build_service_prompt(description: str) -> str:
    return (
        "Analyze the following service description provided by a user and generate a professional "
        "service package.\n"
        f'Description: "{description}"\n\n'
        "Tasks:\n"
        "1. Create a professional, punchy name for this service (max 5 words).\n"
        "2. Generate 5 specific, high-value inclusions that would be standard for this service.\n"
        "3. Generate 3 logical exclusions (out-of-scope items) that protect the provider.\n\n"
        "Return the data in the specified JSON format."
    )


def _extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Extract and parse the first JSON object found in a string.
    """
    t = (text or "").strip()
    if not t:
        return None
    try:
        if t.startswith("{") and t.endswith("}"):
            return json.loads(t)
    except Exception:
        pass

    m = _JSON_OBJECT_RE.search(t)
    if not m:
        return None
    try:
        payload = json.loads(m.group(0))
    except Exception:
        return None
    return payload if isinstance(payload, dict) else None


def _matches_schema(payload: Any, schema: dict[str, Any]) -> bool:
    """
    Check a parsed payload against one of our flat object schemas (string and string-array properties).
    """
    if not isinstance(payload, dict):
        return False
    for key in schema["required"]:
        if key not in payload:
            return False
        kind = schema["properties"][key]["type"]
        value = payload[key]
        if kind == "string" and not isinstance(value, str):
            return False
        if kind == "array" and not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
            return False
    return True


def _clean_list(values: list[str]) -> Tuple[str, ...]:
    return tuple(v.strip() for v in values if v.strip())


class AIAssistClient:
    """
    Structured text generation for the quotation wizard.

    Both operations make exactly one request (the OpenAI client is built with retries disabled)
    and turn every failure into a deterministic fallback value, so callers never see an exception.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = DEFAULT_AI_MODEL,
        timeout_s: float = DEFAULT_AI_TIMEOUT_S,
        client: Any = None,
    ) -> None:
        self.api_key = (api_key or "").strip() or None
        self.model = model
        self.timeout_s = timeout_s
        self._client = client

    @classmethod
    def from_config(cls, config: QuoteConfig) -> "AIAssistClient":
        return cls(
            api_key=config.openai_api_key if config.ai_available else None,
            model=config.ai_model,
            timeout_s=config.ai_timeout_s,
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None or self.api_key is not None

    def enhance_notes(self, draft) -> NotesEnhancement:
        payload = self._request_json(
            prompt=build_notes_prompt(draft),
            schema_name="quotation_notes",
            schema=NOTES_SCHEMA,
        )
        if payload is None:
            return fallback_notes(draft)
        return NotesEnhancement(
            enhanced_notes=payload["enhancedNotes"],
            professional_summary=payload["professionalSummary"],
        )

    def analyze_custom_service(self, description: str) -> ServiceAnalysis:
        payload = self._request_json(
            prompt=build_service_prompt(description),
            schema_name="custom_service_package",
            schema=SERVICE_SCHEMA,
        )
        if payload is None:
            return FALLBACK_SERVICE_ANALYSIS
        name = payload["name"].strip()
        if not name:
            logger.warning("AI service analysis returned a blank name; using fallback")
            return FALLBACK_SERVICE_ANALYSIS
        # Counts (5 inclusions / 3 exclusions) are a request to the model, not something we enforce.
        return ServiceAnalysis(
            name=name,
            includes=_clean_list(payload["includes"]),
            excludes=_clean_list(payload["excludes"]),
        )

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout_s, max_retries=0)
        return self._client

    def _request_json(self, *, prompt: str, schema_name: str, schema: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        One structured-output request; returns the validated payload or None on any failure.
        """
        if not self.enabled:
            logger.info("AI assist disabled (no API key); using fallback", extra={"schema": schema_name})
            return None

        try:
            resp = self._get_client().responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                text={
                    "format": {
                        "type": "json_schema",
                        "name": schema_name,
                        "schema": schema,
                        "strict": True,
                    }
                },
            )
            text = resp.output_text or ""
            payload = _extract_json_object(text)
            valid = _matches_schema(payload, schema)
        except Exception:
            logger.warning("AI request failed; using fallback", exc_info=True, extra={"schema": schema_name})
            return None

        if not valid:
            logger.warning(
                "AI response did not match schema; using fallback",
                extra={"schema": schema_name, "response_length": len(text)},
            )
            return None

        logger.info(
            "AI structured response accepted",
            extra={"schema": schema_name, "model": self.model, "input_length": len(prompt)},
        )
        return payload
