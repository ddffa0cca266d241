from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from studyaid.core.config import settings
from studyaid.core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


def _extract_chat_completion_text(res: Any) -> str:
    """Pull the assistant text out of a chat completion response."""
    choices = getattr(res, "choices", None) or []
    if not choices:
        return ""
    msg = getattr(choices[0], "message", None)
    content = getattr(msg, "content", None) if msg is not None else None
    if isinstance(content, str):
        return content
    # Some OpenAI-compatible gateways return a list of content parts
    if isinstance(content, list):
        parts: List[str] = []
        for p in content:
            text = p.get("text") if isinstance(p, dict) else getattr(p, "text", None)
            if isinstance(text, str):
                parts.append(text)
        return "".join(parts)
    return ""


class LLMClient:
    """Thin wrapper over an OpenAI-compatible chat completions endpoint.

    Sampling parameters are fixed by configuration; callers only supply the
    prompt. Every failure surfaces as ``UpstreamServiceError``.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout_sec: Optional[float] = None,
        max_retries: Optional[int] = None,
        client: Any = None,
    ):
        self.api_key = (api_key if api_key is not None else settings.LLM_API_KEY) or None
        self.base_url = (base_url if base_url is not None else settings.LLM_BASE_URL) or None
        self.model = model or settings.LLM_MODEL
        self.temperature = float(settings.LLM_TEMPERATURE if temperature is None else temperature)
        self.top_p = float(settings.LLM_TOP_P if top_p is None else top_p)
        self.max_tokens = int(max_tokens or settings.LLM_MAX_TOKENS)
        self.timeout_sec = float(timeout_sec or settings.LLM_TIMEOUT_SEC)
        self.max_retries = int(settings.LLM_MAX_RETRIES if max_retries is None else max_retries)
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self.api_key:
            raise UpstreamServiceError("LLM is not configured. Set LLM_API_KEY in backend/.env")

        from openai import OpenAI

        kwargs: Dict[str, Any] = {
            "api_key": self.api_key,
            "timeout": self.timeout_sec,
            "max_retries": self.max_retries,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        self._client = OpenAI(**kwargs)
        return self._client

    def complete(self, prompt: str) -> str:
        client = self._get_client()
        try:
            res = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                top_p=self.top_p,
                max_tokens=self.max_tokens,
                stream=False,
            )
        except Exception as exc:
            # openai raises APITimeoutError / APIStatusError / APIConnectionError
            logger.warning("LLM request failed: %s: %s", type(exc).__name__, exc)
            raise UpstreamServiceError(f"AI service request failed: {exc}", {"type": type(exc).__name__}) from exc

        text = _extract_chat_completion_text(res).strip()
        if not text:
            raise UpstreamServiceError("Empty response from AI service")

        logger.debug("LLM completion received: %d chars", len(text))
        return text
