"""AI reply gateway: HTTP connection to the chat webhook.

The webhook (an n8n flow in front of a chat model) receives the conversation
context and answers in one of several shapes, depending on how the flow's
"Respond to Webhook" node was configured over time. The gateway normalises
all of them into a single string and falls back to the local ResponseMatcher
whenever anything goes wrong.

Request body:
    {"modelId", "modelName", "message", "userId", "userName",
     "history": [<last 10 messages>], "timestamp": <ISO8601>}

Recognised response shapes, tried in order:
    1. {"node": "Respond to Webhook", "settings": {"responseBody": {"response": ...}}}
    2. {"success": true, "response": ...}
    3. {"response": ...}
    4. {"message": ...}
    5. {"text": ...}
    6. {"output": ...}
    7. {"content": ...}
    8. [<any of the above>, ...]   (first element only)
    9. "plain string"
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from onlynex.matcher import ResponseMatcher
from onlynex.models import ReplyContext

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10

APOLOGY = "Ops, tive um probleminha aqui! 😅 Tenta de novo, amor? 💕"


# ---------------------------------------------------------------------------
# Response extractors: pure (data) -> str | None functions
# ---------------------------------------------------------------------------

def strip_expression_prefix(value: str) -> str:
    """Drop the leading "=" n8n leaves on unevaluated expressions."""
    return value[1:] if value.startswith("=") else value


def _non_empty(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _nested_webhook_node(data: Any) -> str | None:
    if not isinstance(data, dict) or data.get("node") != "Respond to Webhook":
        return None
    settings = data.get("settings")
    if not isinstance(settings, dict):
        return None
    body = settings.get("responseBody")
    if not isinstance(body, dict):
        return None
    return _non_empty(body.get("response"))


def _success_response(data: Any) -> str | None:
    if isinstance(data, dict) and data.get("success"):
        return _non_empty(data.get("response"))
    return None


def _key(name: str) -> Callable[[Any], str | None]:
    def extract(data: Any) -> str | None:
        if isinstance(data, dict):
            return _non_empty(data.get(name))
        return None

    extract.__name__ = f"_{name}_field"
    return extract


def _first_item(data: Any) -> str | None:
    if isinstance(data, list) and data:
        return _extract_raw(data[0], nested=False)
    return None


def _plain_string(data: Any) -> str | None:
    return _non_empty(data)


REPLY_EXTRACTORS: list[Callable[[Any], str | None]] = [
    _nested_webhook_node,
    _success_response,
    _key("response"),
    _key("message"),
    _key("text"),
    _key("output"),
    _key("content"),
    _first_item,
    _plain_string,
]


def _extract_raw(data: Any, nested: bool = True) -> str | None:
    """First extracted value that is non-empty once its prefix is dropped.

    The value comes back unstripped. `nested=False` skips the array extractor
    so a list inside a list is not unwrapped twice.
    """
    for extractor in REPLY_EXTRACTORS:
        if not nested and extractor is _first_item:
            continue
        value = extractor(data)
        if value is not None and strip_expression_prefix(value):
            return value
    return None


def extract_reply(data: Any) -> str | None:
    """Run the extractors in order and return the first non-empty reply."""
    value = _extract_raw(data)
    if value is None:
        return None
    return strip_expression_prefix(value)


# ---------------------------------------------------------------------------
# AIReplyGateway
# ---------------------------------------------------------------------------

class AIReplyGateway:
    """Async client for the chat webhook with a guaranteed local fallback.

    Args:
        webhook_url:        Full URL of the webhook; empty disables remote calls.
        use_local_fallback: Answer with the matcher on failure (default) instead
                            of the fixed apology.
        timeout:            HTTP timeout in seconds. Defaults to 20.
        matcher:            Local reply source; a fresh ResponseMatcher if omitted.
    """

    def __init__(
        self,
        webhook_url: str = "",
        use_local_fallback: bool = True,
        timeout: float = 20.0,
        matcher: ResponseMatcher | None = None,
    ) -> None:
        self._url = webhook_url.strip()
        self._use_local_fallback = use_local_fallback
        self._timeout = timeout
        self.matcher = matcher or ResponseMatcher()

    @property
    def is_using_ai(self) -> bool:
        return bool(self._url)

    async def get_reply(self, ctx: ReplyContext) -> str:
        """Return a displayable reply for `ctx.user_message`. Never raises."""
        missing = [
            name for name in ("model_id", "model_name", "user_message", "user_identity")
            if not getattr(ctx, name).strip()
        ]
        if missing:
            logger.warning("reply context missing %s, using local replies", ", ".join(missing))
            return self.matcher.match(ctx.user_message)

        if not self._url:
            logger.debug("no webhook configured, using local replies")
            return self.matcher.match(ctx.user_message)

        try:
            return await self._call_webhook(ctx)
        except GatewayError as e:
            logger.warning("webhook failed for model=%s: %s", ctx.model_id, e)
            if self._use_local_fallback:
                return self.matcher.match(ctx.user_message)
            return APOLOGY

    async def check_health(self) -> bool:
        """True when the webhook is configured and answers a health probe with 2xx."""
        if not self._url:
            return False
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json={"healthCheck": True}, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("webhook health check failed: %s", e)
            return False
        return True

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _build_body(self, ctx: ReplyContext) -> dict[str, Any]:
        history = ctx.recent_history[-HISTORY_WINDOW:]
        return {
            "modelId": ctx.model_id,
            "modelName": ctx.model_name,
            "message": ctx.user_message,
            "userId": ctx.user_identity,
            "userName": ctx.user_display_name,
            "history": [m.model_dump(mode="json", exclude_none=True) for m in history],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _call_webhook(self, ctx: ReplyContext) -> str:
        body = self._build_body(ctx)
        logger.debug(
            "webhook call url=%s model=%s history=%d", self._url, ctx.model_id, len(body["history"]),
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GatewayError(f"Cannot connect to webhook at {self._url}") from e
        except httpx.HTTPStatusError as e:
            raise GatewayError(f"Webhook returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise GatewayError(f"Webhook timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise GatewayError(f"Webhook request failed: {e}") from e

        return self._parse_response(resp.text)

    def _parse_response(self, raw: str) -> str:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            if not raw.strip():
                raise GatewayError("Webhook returned an empty body")
            logger.debug("webhook answered plain text len=%d", len(raw))
            return raw

        reply = extract_reply(data)
        if reply is None:
            raise GatewayError(f"Unrecognised webhook response format: {raw[:200]!r}")
        logger.debug("webhook reply len=%d", len(reply))
        return reply


# ---------------------------------------------------------------------------
# GatewayError: raised internally for every transport and format failure
# ---------------------------------------------------------------------------

class GatewayError(RuntimeError):
    """Raised when the webhook cannot be reached or answers something unusable."""
