"""
Incremental scanner pulling a few element values out of Blob service XML responses.

Only two things are looked for:
- `Name` directly inside `Blob` or `Container` (one entry of a listing)
- `Message` directly inside `Error` (an error document), which stops the scan
  with a `ServerRejectedError`

Everything else is skipped without being buffered, so listings of any size
can be piped through chunk by chunk.
"""

from __future__ import annotations

import codecs
import logging
import re
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

from .errors import ServerRejectedError, XmlParseError
from .types import ElementEvent

__all__ = ("ElementExtractor", "aiter_elements", "find_error", "iter_elements", "iter_names")

logger = logging.getLogger(__name__)

RESULT_PARENTS = frozenset({"Blob", "Container"})
RESULT_ELEMENT = "Name"
ERROR_ROOT = "Error"
ERROR_MESSAGE = "Message"
ERROR_CODE = "Code"

_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|amp|lt|gt|quot|apos);")
_NAMED_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}


def _is_captured(name: str, parent: str | None) -> bool:
    if parent == ERROR_ROOT:
        return name in (ERROR_MESSAGE, ERROR_CODE)
    return name == RESULT_ELEMENT and parent in RESULT_PARENTS


def _replace_entity(match: re.Match) -> str:
    ref = match.group(1)
    if ref[0] != "#":
        return _NAMED_ENTITIES[ref]
    code = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:])
    try:
        return chr(code)
    except (ValueError, OverflowError):
        return match.group(0)


def _unescape(text: str) -> str:
    return _ENTITY_RE.sub(_replace_entity, text) if "&" in text else text


class ElementExtractor:
    """
    Push parser: `feed` bytes as they arrive, then `close`.

    Both return the events completed by the data seen so far. In strict mode
    malformed or truncated input raises `XmlParseError`, otherwise the scan
    stops quietly after logging a warning.
    """

    def __init__(self, *, strict: bool = True):
        self.strict = strict
        self._decoder = codecs.getincrementaldecoder("utf-8-sig")()
        self._stack: list[str] = []
        self._in_tag = False
        self._tag: list[str] = []
        self._quote: str | None = None
        # Text of the element being captured, None when not capturing
        self._text: list[str] | None = None
        self._raw: list[str] = []
        self._error_code: str | None = None
        self._events: list[ElementEvent] = []
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, data: bytes) -> list[ElementEvent]:
        if self._done:
            return []
        try:
            self._scan(self._decode(data))
        except XmlParseError as e:
            self._stop(e)
        return self._pop_events()

    def close(self) -> list[ElementEvent]:
        if self._done:
            return []
        try:
            self._scan(self._decode(b"", final=True))
            if self._in_tag:
                raise XmlParseError("Unterminated tag at end of document")
            if self._stack:
                raise XmlParseError(f"Document ended with unclosed element <{self._stack[-1]}>")
        except XmlParseError as e:
            self._stop(e)
        self._done = True
        return self._pop_events()

    def _decode(self, data: bytes, final: bool = False) -> str:
        try:
            return self._decoder.decode(data, final)
        except UnicodeDecodeError as e:
            raise XmlParseError(f"Invalid UTF-8 in document: {e}") from e

    def _stop(self, error: XmlParseError):
        self._done = True
        if self.strict:
            self._events.clear()
            raise error
        logger.warning("Stopped scanning malformed XML: %s", error)

    def _pop_events(self) -> list[ElementEvent]:
        events, self._events = self._events, []
        return events

    def _scan(self, text: str):
        i, n = 0, len(text)
        while i < n:
            if not self._in_tag:
                j = text.find("<", i)
                if j == -1:
                    self._add_text(text[i:])
                    return
                self._add_text(text[i:j])
                self._flush_text()
                self._in_tag = True
                i = j + 1
                continue
            c = text[i]
            i += 1
            if self._quote is not None:
                if c == self._quote:
                    self._quote = None
                self._tag.append(c)
            elif c == ">" and self._tag_complete():
                raw = "".join(self._tag)
                self._tag = []
                self._in_tag = False
                self._on_tag(raw)
            else:
                if c in "\"'" and self._tag and self._tag[0] not in "!":
                    self._quote = c
                self._tag.append(c)

    def _tag_complete(self) -> bool:
        if not self._tag or self._tag[0] != "!":
            return True
        raw = "".join(self._tag)
        if raw.startswith("!--"):
            return len(raw) >= 5 and raw.endswith("--")
        if raw.startswith("![CDATA["):
            return raw.endswith("]]")
        # Partial '<!-' or '<![CDATA' prefixes are still ambiguous
        return not ("!--".startswith(raw) or "![CDATA[".startswith(raw))

    def _add_text(self, text: str):
        if self._text is not None and text:
            self._raw.append(text)

    def _flush_text(self):
        if self._raw:
            if self._text is not None:
                self._text.append(_unescape("".join(self._raw)))
            self._raw = []

    def _on_tag(self, raw: str):
        if raw.startswith("![CDATA["):
            if self._text is not None:
                self._text.append(raw[8:-2])
            return
        if raw.startswith(("!", "?")):
            return
        if raw.startswith("/"):
            self._on_end(raw[1:].strip())
            return

        is_empty = raw.endswith("/")
        body = raw[:-1] if is_empty else raw
        parts = body.split(None, 1)
        if not parts:
            raise XmlParseError(f"Empty tag <{raw}>")
        name = parts[0]
        parent = self._stack[-1] if self._stack else None
        # Mixed content is not a value we look for
        self._text = None
        if is_empty:
            if _is_captured(name, parent):
                self._on_value(name, parent, "")
            return
        self._stack.append(name)
        if _is_captured(name, parent):
            self._text = []

    def _on_end(self, name: str):
        if not self._stack:
            raise XmlParseError(f"Unexpected closing tag </{name}>")
        if self._stack[-1] != name:
            raise XmlParseError(f"Closing tag </{name}> does not match <{self._stack[-1]}>")
        self._stack.pop()
        if self._text is None:
            return
        value = "".join(self._text)
        self._text = None
        self._on_value(name, self._stack[-1] if self._stack else None, value)

    def _on_value(self, name: str, parent: str | None, value: str):
        if parent == ERROR_ROOT:
            if name == ERROR_CODE:
                self._error_code = value
                return
            self._done = True
            self._events.clear()
            raise ServerRejectedError(value, code=self._error_code)
        self._events.append(ElementEvent(name, value))


def _as_chunks(chunks: bytes | Iterable[bytes]) -> Iterable[bytes]:
    if isinstance(chunks, (bytes, bytearray, memoryview)):
        return [bytes(chunks)]
    return chunks


def iter_elements(chunks: bytes | Iterable[bytes], *, strict: bool = True) -> Iterator[ElementEvent]:
    """
    Lazily yield the listing entries found in a body (or an iterable of body chunks).

    Raises `ServerRejectedError` as soon as an error document's message is read.
    """
    extractor = ElementExtractor(strict=strict)
    for chunk in _as_chunks(chunks):
        yield from extractor.feed(chunk)
        if extractor.done:
            return
    yield from extractor.close()


async def aiter_elements(chunks: AsyncIterable[bytes], *, strict: bool = True) -> AsyncIterator[ElementEvent]:
    """Same as `iter_elements` over an async byte stream"""
    extractor = ElementExtractor(strict=strict)
    async for chunk in chunks:
        for event in extractor.feed(chunk):
            yield event
        if extractor.done:
            return
    for event in extractor.close():
        yield event


def iter_names(chunks: bytes | Iterable[bytes], *, strict: bool = True) -> Iterator[str]:
    for event in iter_elements(chunks, strict=strict):
        yield event.text


def find_error(body: bytes | None) -> ServerRejectedError | None:
    """Returns the error carried by a response body, if any"""
    if not body:
        return None
    try:
        for _ in iter_elements(body, strict=False):
            pass
    except ServerRejectedError as e:
        return e
    return None
