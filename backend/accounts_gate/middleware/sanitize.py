"""Request sanitization middleware.

Pure ASGI: the path, query string and JSON body are rewritten before
routing, so path parameters, query parameters and body fields arrive clean.
"""

import json
import logging
from urllib.parse import parse_qsl, urlencode

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from accounts_gate.services.sanitizer import sanitize, sanitize_string

logger = logging.getLogger(__name__)


def sanitize_query_string(raw: bytes) -> bytes:
    """Strip control characters from decoded query values; keep the rest untouched."""
    if not raw:
        return raw
    pairs = parse_qsl(raw.decode("latin-1"), keep_blank_values=True)
    cleaned = [(key, sanitize_string(value)) for key, value in pairs]
    if cleaned == pairs:
        return raw
    return urlencode(cleaned).encode("latin-1")


class SanitizeMiddleware:
    """Remove control characters from paths, query strings and JSON request bodies."""

    def __init__(self, app: ASGIApp, max_body_size: int = 10 * 1024 * 1024) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        cleaned_path = sanitize_string(path)
        if cleaned_path != path:
            scope = dict(scope)
            scope["path"] = cleaned_path

        query_string = scope.get("query_string", b"")
        if query_string:
            cleaned_query = sanitize_query_string(query_string)
            if cleaned_query != query_string:
                scope = dict(scope)
                scope["query_string"] = cleaned_query

        content_type = Headers(scope=scope).get("content-type", "")
        if "application/json" not in content_type.lower():
            await self.app(scope, receive, send)
            return

        messages: list[Message] = []
        body = b""
        complete = False
        while True:
            message = await receive()
            messages.append(message)
            if message["type"] != "http.request":
                break
            body += message.get("body", b"")
            if not message.get("more_body", False):
                complete = True
                break
            if len(body) > self.max_body_size:
                logger.warning(f"Request body over {self.max_body_size} bytes left unsanitized")
                break

        if complete:
            cleaned = self._sanitize_body(body)
            if cleaned is not body:
                scope = dict(scope)
                scope["headers"] = [
                    (key, value) for key, value in scope["headers"] if key.lower() != b"content-length"
                ] + [(b"content-length", str(len(cleaned)).encode("latin-1"))]
            messages = [{"type": "http.request", "body": cleaned, "more_body": False}]

        # Replay what was consumed, then continue with the live channel
        async def replay() -> Message:
            if messages:
                return messages.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    @staticmethod
    def _sanitize_body(body: bytes) -> bytes:
        if not body:
            return body
        try:
            payload = json.loads(body)
        except ValueError:
            # Malformed JSON is reported by request validation downstream
            return body
        cleaned = sanitize(payload)
        if cleaned == payload:
            return body
        return json.dumps(cleaned, ensure_ascii=False).encode("utf-8")
