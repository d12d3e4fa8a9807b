"""
Separation of model "thoughts" from visible output.

Models wrap internal reasoning in ``<think>...</think>``. In streaming mode the
markers can be split across fragments, so ThinkingBufferParser keeps back only
the trailing characters that might still turn into the marker it is waiting
for and lets every other character through immediately.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, Callable, Literal

logger = logging.getLogger(__name__)

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_THOUGHT_PATTERN = re.compile(r"<think>(.*?)</think>\s*", re.DOTALL)


class ParserState(Enum):
    OUTSIDE = "outside"
    INSIDE_THOUGHT = "inside_thought"


@dataclass
class ParsedChunk:
    """A fragment classified by the parser"""
    type: Literal["thought_chunk", "response_chunk"]
    chunk: str


def _partial_marker_length(buffer: str, marker: str) -> int:
    """Length of the longest buffer suffix that is a proper prefix of marker"""
    for size in range(min(len(marker) - 1, len(buffer)), 0, -1):
        if buffer.endswith(marker[:size]):
            return size
    return 0


class ThinkingBufferParser:
    """
    Two-state parser (OUTSIDE / INSIDE_THOUGHT) for streamed model output.

    Usage:
        parser = ThinkingBufferParser(handle=print)
        for fragment in fragments:
            parser.feed(fragment)
        thoughts, response = parser.finish()
    """

    def __init__(self, handle: Callable[[ParsedChunk], None] | None = None):
        self.handle = handle
        self.state = ParserState.OUTSIDE
        self._buffer = ""
        self._thoughts: list[str] = []
        self._response: list[str] = []

    @property
    def thoughts(self) -> str:
        return "".join(self._thoughts)

    @property
    def response(self) -> str:
        return "".join(self._response)

    def _marker(self) -> str:
        return THINK_OPEN if self.state is ParserState.OUTSIDE else THINK_CLOSE

    def _emit(self, text: str) -> None:
        if not text:
            return
        if self.state is ParserState.OUTSIDE:
            chunk = ParsedChunk("response_chunk", text)
            self._response.append(text)
        else:
            chunk = ParsedChunk("thought_chunk", text)
            self._thoughts.append(text)
        logger.debug(f"Parsed {chunk.type}: {text!r}")
        if self.handle:
            self.handle(chunk)

    def feed(self, text: str) -> None:
        """Consume one fragment"""
        self._buffer += text

        while True:
            marker = self._marker()
            index = self._buffer.find(marker)
            if index == -1:
                break
            self._emit(self._buffer[:index])
            self._buffer = self._buffer[index + len(marker):]
            self.state = (
                ParserState.INSIDE_THOUGHT
                if self.state is ParserState.OUTSIDE
                else ParserState.OUTSIDE
            )

        keep = _partial_marker_length(self._buffer, self._marker())
        ready = len(self._buffer) - keep
        self._emit(self._buffer[:ready])
        self._buffer = self._buffer[ready:]

    def finish(self) -> tuple[str, str]:
        """Flush held-back text and return (thoughts, response)"""
        if self.state is ParserState.INSIDE_THOUGHT:
            logger.warning("Stream ended inside an unterminated thought block")
        self._emit(self._buffer)
        self._buffer = ""
        return self.thoughts, self.response


async def parse_thinking_stream(
    stream: AsyncIterable[str],
    handle: Callable[[ParsedChunk], None] | None = None
) -> tuple[str, str]:
    """Drain an async text stream through ThinkingBufferParser"""
    parser = ThinkingBufferParser(handle)
    async for fragment in stream:
        if fragment:
            parser.feed(fragment)
    thoughts, response = parser.finish()
    logger.debug(
        f"Stream parsed: {len(thoughts)} thought chars, {len(response)} response chars"
    )
    return thoughts, response


def extract_thoughts(text: str) -> tuple[list[str], str]:
    """
    Split a complete response into its thoughts and the visible remainder.

    Every ``<think>...</think>`` span, plus trailing whitespace, is removed.
    Returned thoughts are trimmed and empty ones dropped.
    """
    thoughts = [m.group(1).strip() for m in _THOUGHT_PATTERN.finditer(text)]
    visible = _THOUGHT_PATTERN.sub("", text)
    return [t for t in thoughts if t], visible
