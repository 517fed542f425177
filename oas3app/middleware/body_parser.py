"""
oas3-app: Body Parser Middleware
=================================

What:  Buffers the request body, enforces the parser size limit and parses it
       by media type into request.state.body.
How:   Pure ASGI middleware: reads every http.request message, stores the raw
       bytes on request.state.raw_body and replays them to the downstream
       stages, so the validator and the route handlers can read the body again.

Parsed media types:
    application/x-www-form-urlencoded  → dict (repeated keys become lists)
    text/plain                         → str
    application/json (+ configured)    → JSON object or array
    application/pdf                    → bytes
    anything else / empty body         → {}

Failures:
    body larger than the limit  → PayloadTooLargeError (413)
    unknown charset             → UnsupportedCharsetError (415)
    malformed / non-strict JSON → MalformedBodyError (400)
    client gone mid-body        → no response, nothing downstream runs
"""

import codecs
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from oas3app.exceptions import MalformedBodyError, PayloadTooLargeError, UnsupportedCharsetError

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100 * 1024

URLENCODED = "application/x-www-form-urlencoded"
TEXT = "text/plain"
JSON = "application/json"
PDF = "application/pdf"

_CHARSET = re.compile(r"charset\s*=\s*\"?([\w.:-]+)\"?", re.IGNORECASE)


def split_content_type(value: Optional[str]) -> Tuple[str, Optional[str]]:
    """Return (media type, charset) from a Content-Type header value."""
    if not value:
        return "", None
    media_type, _, params = value.partition(";")
    match = _CHARSET.search(params)
    return media_type.strip().lower(), match.group(1).lower() if match else None


def decode(body: bytes, charset: Optional[str]) -> str:
    charset = charset or "utf-8"
    try:
        codecs.lookup(charset)
    except LookupError:
        raise UnsupportedCharsetError(charset)
    try:
        return body.decode(charset)
    except UnicodeDecodeError as e:
        raise MalformedBodyError(f"Request body is not valid {charset}: {e.reason}")


def parse_urlencoded(text: str) -> Dict[str, Union[str, List[str]]]:
    parsed: Dict[str, Union[str, List[str]]] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        if key not in parsed:
            parsed[key] = value
        elif isinstance(parsed[key], list):
            parsed[key].append(value)
        else:
            parsed[key] = [parsed[key], value]
    return parsed


def parse_json(text: str, strict: bool = True) -> Any:
    if not text.strip():
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedBodyError(
            f"Unexpected token in JSON at position {e.pos}",
            errors=[{"message": e.msg, "line": e.lineno, "column": e.colno}],
        )
    if strict and not isinstance(value, (dict, list)):
        raise MalformedBodyError("JSON body must be an object or an array")
    return value


class BodyParserMiddleware:
    """
    Body parsing stage.

    Args:
        limit:            Maximum body size in bytes.
        json_media_type:  Additional media type parsed as JSON.
        strict:           Only accept JSON objects and arrays.
    """

    def __init__(
        self,
        app: ASGIApp,
        limit: int = DEFAULT_LIMIT,
        json_media_type: str = JSON,
        strict: bool = True,
    ) -> None:
        self.app = app
        self.limit = limit
        self.json_types = {JSON, json_media_type.lower()}
        self.strict = strict

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        length = headers.get("content-length")
        if length is not None and length.strip().isdigit() and int(length) > self.limit:
            raise PayloadTooLargeError(self.limit, int(length))

        try:
            body = await self._read_body(receive)
        except ClientDisconnect:
            # nobody is left to answer
            logger.debug("Client disconnected while sending %s %s", scope["method"], scope["path"])
            return
        state = scope.setdefault("state", {})
        state["raw_body"] = body
        state["body"] = self.parse(headers.get("content-type"), body)

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _read_body(self, receive: Receive) -> bytes:
        chunks = []
        size = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.limit:
                raise PayloadTooLargeError(self.limit)
            chunks.append(chunk)
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def parse(self, content_type: Optional[str], body: bytes) -> Any:
        if not body:
            return {}
        media_type, charset = split_content_type(content_type)
        if media_type in self.json_types:
            return parse_json(decode(body, charset), strict=self.strict)
        if media_type == URLENCODED:
            return parse_urlencoded(decode(body, charset))
        if media_type == TEXT:
            return decode(body, charset)
        if media_type == PDF:
            return body
        return {}
