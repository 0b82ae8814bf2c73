"""Semantic match oracles backed by hosted models (Anthropic or OpenAI).

The model is shown one scenario and the numbered candidate tests of its
endpoint and must answer with JSON only::

    {"matches": [{"test_id": "...", "coverage": "full|partial|none",
                  "confidence": 0.0-1.0, "explanation": "..."}]}

No retries are attempted here or in the engine.  A missing key, an
unreachable service or a rejected request raises
:class:`~src.shared.errors.OracleUnavailableError`; there is no fallback to a
weaker matcher.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from src.oracles.payloads import OraclePayload
from src.shared.config import OracleSettings
from src.shared.constants import ANTHROPIC_API_VERSION, SUPPORTED_ORACLE_PROVIDERS
from src.shared.errors import (
    ConfigurationError,
    OracleContractError,
    OracleTimeoutError,
    OracleUnavailableError,
)
from src.shared.models import OracleResponse, Scenario, UnitTest

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

_PROMPT_TEMPLATE = """You are an expert QA analyst performing test coverage analysis.
Decide which of the unit tests below exercise the business scenario.

SCENARIO
Endpoint: {endpoint}
Category: {category}
Priority: {priority}
Description: {text}

CANDIDATE UNIT TESTS
{tests}

For each test that is relevant, report:
- coverage "full" only if the test checks the described behaviour completely
  (status code, condition and, where applicable, response body assertions);
- coverage "partial" if it checks some of it, with an explanation of exactly
  what is missing;
- confidence as a number between 0 and 1.

Omit tests that are not relevant.  Respond with valid JSON only:
{{"matches": [{{"test_id": "<ID>", "coverage": "full|partial", "confidence": 0.9, "explanation": "<text>"}}]}}"""


def build_prompt(scenario: Scenario, tests: Sequence[UnitTest], limit: int = 50) -> str:
    """Render the matching prompt for one scenario."""
    lines: list[str] = []
    for number, test in enumerate(tests[:limit], start=1):
        lines.append(
            f"Test {number}:\n"
            f"  ID: {test.id}\n"
            f"  Name: {test.declared_name}\n"
            f"  Description: {test.description or '-'}\n"
            f"  File: {test.file_path}:{test.line_number}"
        )
    if len(tests) > limit:
        lines.append(f"... and {len(tests) - limit} more tests not shown")
    return _PROMPT_TEMPLATE.format(
        endpoint=scenario.endpoint_key,
        category=scenario.category.value,
        priority=scenario.priority.value,
        text=scenario.text,
        tests="\n".join(lines),
    )


def parse_reply(text: str) -> OraclePayload:
    """Parse the model's reply, tolerating a surrounding code fence.

    Raises:
        OracleContractError: the reply is not the expected JSON document.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        return OraclePayload.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise OracleContractError(f"Unparseable oracle reply: {exc}") from exc


def _anthropic_reply_text(body: Any) -> str:
    if not isinstance(body, dict):
        raise OracleContractError("Oracle service returned a non-object body")
    blocks = body.get("content") or []
    parts = [b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
    if not parts:
        raise OracleContractError("Oracle service returned no text content")
    return "".join(parts)


def _openai_reply_text(body: Any) -> str:
    if not isinstance(body, dict):
        raise OracleContractError("Oracle service returned a non-object body")
    choices = body.get("choices") or []
    message = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise OracleContractError("Oracle service returned no message content")
    return content


class LLMOracle:
    """Asks a hosted Anthropic model which candidate tests cover a scenario.

    Subclasses target other providers by overriding the request hooks
    (``_api_key``, ``_url``, ``_headers``, ``_body``) and ``_reply_text``.
    """

    provider = "anthropic"
    key_variable = "ANTHROPIC_API_KEY"

    def __init__(
        self,
        settings: OracleSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_candidates: int = 50,
    ) -> None:
        self._settings = settings or OracleSettings()
        self._transport = transport
        self._max_candidates = max_candidates

    @property
    def model(self) -> str:
        return self._settings.model

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    def _api_key(self) -> str:
        return self._settings.api_key

    def _url(self) -> str:
        return self._settings.base_url.rstrip("/") + "/v1/messages"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self._settings.max_tokens,
            "temperature": 0.0,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _reply_text(self, body: Any) -> str:
        return _anthropic_reply_text(body)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def match(
        self, scenario: Scenario, candidate_tests: Sequence[UnitTest]
    ) -> OracleResponse:
        api_key = self._api_key()
        if not api_key:
            raise OracleUnavailableError(
                f"{self.key_variable} is not set; the semantic match oracle is unavailable"
            )

        url = self._url()
        prompt = build_prompt(scenario, candidate_tests, self._max_candidates)
        timeout = self._settings.request_timeout
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(url, json=self._body(prompt), headers=self._headers(api_key))
        except httpx.TimeoutException:
            raise OracleTimeoutError(scenario.endpoint_key, scenario.text, timeout) from None
        except httpx.HTTPError as exc:
            raise OracleUnavailableError(f"Oracle service unreachable at {url}: {exc}") from exc

        if resp.status_code in (401, 403):
            raise OracleUnavailableError(
                f"Oracle service rejected the credentials (HTTP {resp.status_code})"
            )
        if resp.status_code >= 400:
            raise OracleUnavailableError(
                f"Oracle service returned HTTP {resp.status_code}: {resp.text[:200]}"
            )

        try:
            reply = self._reply_text(resp.json())
        except ValueError as exc:
            raise OracleContractError(f"Oracle service returned invalid JSON: {exc}") from exc

        payload = parse_reply(reply)
        logger.debug(
            "Oracle (%s) matched %d tests for %s: %s",
            self.provider, len(payload.matches), scenario.endpoint_key, scenario.text,
            extra={"endpoint_key": scenario.endpoint_key, "scenario": scenario.text},
        )
        return payload.to_response(candidate_tests)


class OpenAIOracle(LLMOracle):
    """Same prompt and contract, sent to the OpenAI Chat Completions API."""

    provider = "openai"
    key_variable = "OPENAI_API_KEY"

    @property
    def model(self) -> str:
        return self._settings.openai_model

    def _api_key(self) -> str:
        return self._settings.openai_api_key

    def _url(self) -> str:
        return self._settings.openai_base_url.rstrip("/") + "/v1/chat/completions"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "authorization": f"Bearer {api_key}",
            "content-type": "application/json",
        }

    def _body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self._settings.max_tokens,
            "temperature": 0.0,
            "response_format": {"type": "json_object"},
            "messages": [{"role": "user", "content": prompt}],
        }

    def _reply_text(self, body: Any) -> str:
        return _openai_reply_text(body)


_PROVIDERS: dict[str, type[LLMOracle]] = {
    "anthropic": LLMOracle,
    "openai": OpenAIOracle,
}


def create_oracle(
    settings: OracleSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LLMOracle:
    """Build the oracle for ``settings.provider``.

    Raises:
        ConfigurationError: the provider is not supported.
    """
    settings = settings or OracleSettings()
    name = settings.provider.strip().lower()
    oracle_cls = _PROVIDERS.get(name)
    if oracle_cls is None:
        raise ConfigurationError(
            f"Unknown oracle provider '{settings.provider}' "
            f"(expected one of: {', '.join(SUPPORTED_ORACLE_PROVIDERS)})"
        )
    return oracle_cls(settings, transport=transport)
