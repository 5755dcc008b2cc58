"""Reply chunking and the server-sent event protocol.

``chunk_text`` cuts a finished reply into small fragments for paced
delivery. Markdown structure lines are never split, CJK text is only cut at
punctuation or whitespace, and joining the fragments gives back the input
exactly. ``stream_reply`` wraps those fragments in ``start``/``chunk``/
``end``/``error`` frames.
"""

from __future__ import annotations

import asyncio
import enum
import random
import re
from typing import AsyncIterator, Awaitable, Callable, Iterator, List, Optional

import structlog
from pydantic_core import PydanticSerializationError

from .errors import TransmissionError
from .models import QueryResult, StreamMessage, StreamMetadata

logger = structlog.get_logger(__name__)

MAX_CHUNK_LENGTH = 12
START_PLACEHOLDER = "正在思考中..."
STREAM_ERROR_REPLY = "抱歉，服务暂时不可用。请稍后再试。"

MARKER_GLYPHS = ("📚", "🎯", "📝", "📊", "🔗", "👤")
SEPARATORS = "，。！？；：、（）【】《》“”‘’" + ",.!?;:\"'"

_SEPARATOR_RUN_RE = re.compile(rf"([{re.escape(SEPARATORS)}\s]+)")
_HEADING_RE = re.compile(r"^\s*#{1,6}\s")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s")
_QUOTE_RE = re.compile(r"^\s*>")
_CODE_FENCE_RE = re.compile(r"^\s*```")
_RULE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")


class LineKind(enum.Enum):
    HEADING = "heading"
    LIST_ITEM = "list_item"
    QUOTE = "quote"
    CODE_FENCE = "code_fence"
    TABLE_ROW = "table_row"
    RULE = "rule"
    MARKER = "marker"
    BLANK = "blank"
    PLAIN = "plain"

    @property
    def structural(self) -> bool:
        return self not in (LineKind.PLAIN, LineKind.BLANK)


def is_blank(line: str) -> bool:
    return not line.strip()


def is_heading(line: str) -> bool:
    return bool(_HEADING_RE.match(line))


def is_list_item(line: str) -> bool:
    return bool(_LIST_ITEM_RE.match(line))


def is_quote(line: str) -> bool:
    return bool(_QUOTE_RE.match(line))


def is_code_fence(line: str) -> bool:
    return bool(_CODE_FENCE_RE.match(line))


def is_table_row(line: str) -> bool:
    stripped = line.strip()
    return len(stripped) >= 2 and stripped.startswith("|") and stripped.endswith("|")


def is_rule(line: str) -> bool:
    return bool(_RULE_RE.match(line))


def is_marker(line: str) -> bool:
    return line.lstrip().startswith(MARKER_GLYPHS)


# First match wins; rules are checked before list items.
_PREDICATES = (
    (LineKind.BLANK, is_blank),
    (LineKind.CODE_FENCE, is_code_fence),
    (LineKind.HEADING, is_heading),
    (LineKind.RULE, is_rule),
    (LineKind.TABLE_ROW, is_table_row),
    (LineKind.QUOTE, is_quote),
    (LineKind.LIST_ITEM, is_list_item),
    (LineKind.MARKER, is_marker),
)


def classify_line(line: str) -> LineKind:
    """Return the kind of a single line (without its newline)."""
    for kind, predicate in _PREDICATES:
        if predicate(line):
            return kind
    return LineKind.PLAIN


def _split_plain(line: str, max_chunk: int) -> Iterator[str]:
    buffer = ""
    for piece in _SEPARATOR_RUN_RE.split(line):
        if not piece:
            continue
        if _SEPARATOR_RUN_RE.fullmatch(piece):
            buffer += piece
            continue
        if buffer and len(buffer) + len(piece) > max_chunk:
            yield buffer
            buffer = ""
        buffer += piece
    if buffer:
        yield buffer


def chunk_text(text: str, max_chunk: int = MAX_CHUNK_LENGTH) -> List[str]:
    """Split ``text`` into fragments whose concatenation equals ``text``."""
    lines = text.split("\n")
    last = len(lines) - 1
    fragments: List[str] = []

    for index, line in enumerate(lines):
        newline = "" if index == last else "\n"
        if classify_line(line) is not LineKind.PLAIN:
            fragments.append(line + newline)
            continue

        pieces = list(_split_plain(line, max_chunk))
        pieces[-1] += newline
        fragments.extend(pieces)

    return [fragment for fragment in fragments if fragment]


# Protocol -----------------------------------------------------------------


def encode_event(message: StreamMessage) -> str:
    """Serialise one message as an SSE ``data:`` frame."""
    try:
        payload = message.model_dump_json(by_alias=True, exclude_none=True)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise TransmissionError(
            code="ENCODE_FAILED",
            message=f"Failed to encode {message.type} frame: {exc}",
        ) from exc
    return f"data: {payload}\n\n"


async def stream_reply(
    produce: Callable[[], Awaitable[QueryResult]],
    *,
    delay_min: float,
    delay_max: float,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
    encoder: Callable[[StreamMessage], str] = encode_event,
) -> AsyncIterator[str]:
    """Yield SSE frames: one ``start``, the chunks, then ``end`` or ``error``.

    A chunk that fails to encode is skipped. When ``is_disconnected``
    reports the client gone the generator stops without a terminal frame.
    """
    rng = rng or random.Random()
    sent = 0
    try:
        yield encoder(StreamMessage(type="start", content=START_PLACEHOLDER))

        try:
            result = await produce()
        except Exception as exc:
            logger.error("Failed to build streamed reply", error=str(exc))
            yield encoder(StreamMessage(type="error", content=STREAM_ERROR_REPLY))
            return

        fragments = chunk_text(result.reply)
        last_index = len(fragments) - 1
        for index, fragment in enumerate(fragments):
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected, stopping stream", chunks_sent=sent)
                return
            try:
                frame = encoder(StreamMessage(type="chunk", content=fragment))
            except TransmissionError as exc:
                logger.warning("Skipping stream chunk", error=exc.message, index=sent)
                continue
            yield frame
            sent += 1
            if index < last_index:
                await sleep(rng.uniform(delay_min, delay_max))

        yield encoder(
            StreamMessage(
                type="end",
                metadata=StreamMetadata(
                    topic=result.topic,
                    confidence=result.confidence,
                    processing_time=result.processing_time,
                ),
            )
        )
        logger.info("Stream completed", chunks_sent=sent, topic=result.topic)
    except asyncio.CancelledError:
        logger.info("Stream cancelled", chunks_sent=sent)
        raise


__all__ = [
    "LineKind",
    "MAX_CHUNK_LENGTH",
    "START_PLACEHOLDER",
    "STREAM_ERROR_REPLY",
    "chunk_text",
    "classify_line",
    "encode_event",
    "stream_reply",
]
