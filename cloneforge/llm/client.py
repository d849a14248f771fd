"""
LLM Client
==========
Asynchronous client wrapper for the Anthropic Messages API (Claude).

Every stage collaborator talks to Claude through this one client: research,
page generation, bug fixing, and the vision comparisons after deploy.

Retry Policy:
    - Timeouts and HTTP 5xx are retried (LLM_MAX_RETRIES attempts)
    - HTTP 429 stops immediately (rate limit; retrying only burns quota)
    - Other HTTP 4xx stop immediately (bad key, bad request)
    - When every attempt fails a CollaboratorError is raised; the runner
      turns that into a failed job with the message recorded

Structured Output:
    - Prompts ask for raw JSON; models still wrap it in ``` fences sometimes
    - extract_json() strips fences, then falls back to the first {...} / [...]
      block, and returns None when nothing parses. Callers pick the safe
      default for their own contract.

Cancellation:
    - Calls are plain awaits on httpx; cancelling the awaiting task aborts
      the in-flight request.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from cloneforge.core.config import (
    ANTHROPIC_API_VERSION,
    ANTHROPIC_BASE_URL,
    ANTHROPIC_MODEL,
    LLM_MAX_RETRIES,
    LLM_TIMEOUT_SECONDS,
)
from cloneforge.core.errors import CollaboratorError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Image payload
# ---------------------------------------------------------------------------
@dataclass
class ImageInput:
    """Base64 image sent alongside a prompt (vision stages)."""
    data: str
    media_type: str = "image/png"


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------
_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*\n?|\n?```\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    return _FENCE_RE.sub("", raw.strip()).strip()


def extract_json(raw: str) -> Optional[Any]:
    """
    Parse a JSON object or array out of an LLM response.

    Parameters
    ----------
    raw : str
        Raw text returned by the model.

    Returns
    -------
    Any or None
        The parsed value, or None if no JSON could be recovered.
    """
    if not raw or not raw.strip():
        return None

    cleaned = strip_code_fences(raw)
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        pass

    # Last resort: the outermost {...} or [...] block in the text
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = cleaned.find(open_ch)
        end = cleaned.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except (json.JSONDecodeError, ValueError):
                continue

    logger.warning("Could not parse JSON from LLM response (%d chars)", len(raw))
    return None


def strip_code_block(raw: str) -> str:
    """Return the body of the first fenced code block, or the text itself."""
    match = re.search(r"```[\w.+-]*\n(.*?)```", raw, re.DOTALL)
    if match:
        return match.group(1).rstrip() + "\n"
    return raw.strip() + "\n"


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------
class ClaudeClient:
    """
    Async HTTP client for the Anthropic Messages API.

    Usage:
        client = ClaudeClient(api_key)
        text = await client.complete("Analyze Notion...", system="You are...")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        model: str = ANTHROPIC_MODEL,
        base_url: str = ANTHROPIC_BASE_URL,
        timeout_seconds: float = LLM_TIMEOUT_SECONDS,
        max_retries: int = LLM_MAX_RETRIES,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    def _build_payload(
        self,
        prompt: str,
        system: str,
        max_tokens: int,
        images: Optional[List[ImageInput]],
    ) -> dict:
        content: List[dict] = []
        for image in images or []:
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": image.data,
                },
            })
        content.append({"type": "text", "text": prompt})

        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            payload["system"] = system
        return payload

    @staticmethod
    def _extract_text(data: dict) -> str:
        try:
            for block in data.get("content", []):
                if block.get("type") == "text":
                    return block.get("text", "")
        except (AttributeError, TypeError):
            pass
        return ""

    async def complete(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 8000,
        images: Optional[List[ImageInput]] = None,
        stage: str = "llm",
    ) -> str:
        """
        Send one user turn to Claude and return the first text block.

        Raises
        ------
        CollaboratorError
            When every attempt failed or the response carried no text.
        """
        http = await self._get_http()
        url = f"{self.base_url}/messages"
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        payload = self._build_payload(prompt, system, max_tokens, images)
        last_error = "no attempts made"

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await http.post(url, json=payload, headers=headers)
                resp.raise_for_status()
                text = self._extract_text(resp.json())
                if text:
                    return text
                last_error = "empty response"
                logger.warning("Claude attempt %d: empty response", attempt)
            except httpx.TimeoutException:
                last_error = "timeout"
                logger.warning("Claude attempt %d: timeout", attempt)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                last_error = f"HTTP {status}"
                logger.warning("Claude attempt %d: HTTP %d", attempt, status)
                if status < 500:
                    break  # 429 and other client errors are not retried
            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning("Claude attempt %d: %s", attempt, last_error)

        raise CollaboratorError(stage, f"Claude request failed ({last_error})")

    async def complete_json(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 8000,
        images: Optional[List[ImageInput]] = None,
        stage: str = "llm",
    ) -> Optional[Any]:
        """complete() + extract_json(); None when the answer is not JSON."""
        raw = await self.complete(prompt, system, max_tokens, images, stage)
        return extract_json(raw)
