"""
Generative-AI client (Google Gemini REST API).

API:   POST {base_url}/models/{model}:generateContent?key={api_key}
Docs:  https://ai.google.dev/api/generate-content

Credential setup (.env, gitignored):
  ALPHA_LEDGER_GEMINI_API_KEY=your_key_here

With ``use_search=True`` the request enables the Google Search tool and the
response's grounding metadata is parsed into ``Citation`` (title + uri)
pairs.

This client never raises on API failures: every error becomes an
``AiReport`` with ``ok=False`` and a user-facing advisory string.  Errors are
classified loosely by content — "model not found" versus everything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

import httpx

from alpha_ledger.config import AiConfig

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "尚未設定 AI 金鑰，無法產生分析。請設定 ALPHA_LEDGER_GEMINI_API_KEY。"
MODEL_NOT_FOUND_MESSAGE = "指定的 AI 模型不存在或未開放使用，請確認模型名稱設定。"
GENERIC_FAILURE_MESSAGE = "情報網連線失敗。請確認您的金鑰是否正確，稍後再試。"
EMPTY_RESPONSE_TEXT = "（AI 未回傳內容）"


@dataclass(frozen=True)
class Citation:
    """A web source the model grounded its answer on."""

    title: str
    uri: str


@dataclass
class AiReport:
    """Text returned by the model (or an advisory message on failure).

    Attributes:
        text:  Model output, or the advisory message when ``ok`` is False.
        links: Grounding citations, de-duplicated by URI, in response order.
        ok:    False when the call failed or was not attempted.
        model: Model name the request targeted.
    """

    text: str
    links: list[Citation] = field(default_factory=list)
    ok: bool = True
    model: str = ""


def classify_error(status_code: Optional[int], message: str) -> str:
    """Map an API failure to the advisory shown to the user."""
    lowered = message.lower()
    if status_code == 404 or "not found" in lowered or "is not supported" in lowered:
        return MODEL_NOT_FOUND_MESSAGE
    return GENERIC_FAILURE_MESSAGE


def parse_generate_response(data: Any) -> tuple[str, list[Citation]]:
    """Extract joined text and grounding citations from a generateContent body.

    No schema is enforced: parts, chunks and fields of an unexpected shape
    are skipped.
    """
    if not isinstance(data, dict):
        return "", []
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return "", []
    first = candidates[0]

    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        parts = []
    text = "".join(
        p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
    )

    links: list[Citation] = []
    seen: set[str] = set()
    metadata = first.get("groundingMetadata")
    chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
    for chunk in chunks if isinstance(chunks, list) else []:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        uri = web.get("uri")
        if not isinstance(uri, str) or not uri or uri in seen:
            continue
        seen.add(uri)
        title = web.get("title")
        links.append(Citation(title=title if isinstance(title, str) and title else uri, uri=uri))
    return text, links


class AiClient:
    """Thin passthrough to the Gemini ``generateContent`` endpoint.

    Usage::

        client = AiClient.from_config(config.ai)
        report = client.generate(prompt, use_search=True)
        print(report.text)
        for link in report.links:
            print(link.title, link.uri)
    """

    DEFAULT_BASE_URL: ClassVar[str] = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialise the AI client.

        Args:
            api_key: Gemini API key. ``None`` / empty → every call returns
                the missing-key advisory without touching the network.
            model: Default model name.
            base_url: API root (no trailing slash).
            timeout: Request timeout in seconds; grounded reports are slow.
            http_client: Pre-built ``httpx.Client`` (tests inject one).
        """
        self.api_key = api_key or ""
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: AiConfig) -> "AiClient":
        return cls(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    def close(self) -> None:
        self._http.close()

    def generate(
        self,
        prompt: str,
        use_search: bool = False,
        model: Optional[str] = None,
    ) -> AiReport:
        """Send ``prompt`` and return the model's text.

        Args:
            prompt:     Free-text prompt.
            use_search: Enable web grounding (Google Search tool).
            model:      Override the default model for this call.

        Returns:
            AiReport; ``ok=False`` with an advisory text on any failure.
        """
        model_name = model or self.model
        if not self.api_key:
            logger.warning("AI call skipped: no API key configured")
            return AiReport(text=MISSING_KEY_MESSAGE, ok=False, model=model_name)

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if use_search:
            body["tools"] = [{"google_search": {}}]

        try:
            resp = self._http.post(
                f"{self.base_url}/models/{model_name}:generateContent",
                params={"key": self.api_key},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            message = _error_message(exc.response)
            logger.error(
                "AI request failed (model=%s, status=%d): %s",
                model_name, exc.response.status_code, message,
            )
            return AiReport(
                text=classify_error(exc.response.status_code, message),
                ok=False,
                model=model_name,
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("AI request failed (model=%s): %s", model_name, exc)
            return AiReport(text=classify_error(None, str(exc)), ok=False, model=model_name)

        try:
            text, links = parse_generate_response(data)
        except (AttributeError, TypeError, KeyError) as exc:
            logger.error("AI response unreadable (model=%s): %s", model_name, exc)
            return AiReport(text=GENERIC_FAILURE_MESSAGE, ok=False, model=model_name)
        logger.info(
            "AI response received (model=%s, chars=%d, citations=%d)",
            model_name, len(text), len(links),
        )
        return AiReport(text=text or EMPTY_RESPONSE_TEXT, links=links, ok=True, model=model_name)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return f"HTTP {resp.status_code}"
