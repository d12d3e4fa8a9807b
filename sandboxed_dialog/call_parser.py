"""
Scanner for the tool call syntax models emit in free text:

    > 😈<id>/<tool>/<command>
    ```<lang>
    <content>
    ```

The header may appear anywhere after a ``>``; the opening fence must start the
line right after it (blank lines in between are allowed). Content runs until
the next fence and is trimmed, as is the command.
"""

import logging
import string
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SENTINEL = "😈"
FENCE = "```"

_LANG_CHARS = frozenset(string.ascii_lowercase)


@dataclass
class RawToolCall:
    """A syntactically valid call, before tool resolution"""
    id: str
    tool_name: str
    command: str
    content: str
    full_match: str
    start: int
    end: int


def _read_segment(text: str, pos: int) -> tuple[str | None, int]:
    """Read a non-empty run up to the next '/'; returns (segment, index after '/')"""
    end = text.find("/", pos)
    if end <= pos:
        return None, pos
    segment = text[pos:end]
    if "\n" in segment:
        return None, pos
    return segment, end + 1


def _match_at(text: str, start: int) -> RawToolCall | None:
    """Try to read one call whose header begins with the '>' at start"""
    length = len(text)
    pos = start + 1
    while pos < length and text[pos].isspace():
        pos += 1

    if not text.startswith(SENTINEL, pos):
        return None
    pos += len(SENTINEL)

    call_id, pos = _read_segment(text, pos)
    if call_id is None:
        return None
    tool_name, pos = _read_segment(text, pos)
    if tool_name is None:
        return None

    command_end = pos
    while command_end < length and text[command_end] not in "/\n":
        command_end += 1
    if command_end == pos:
        return None
    command = text[pos:command_end]

    fence = command_end
    while fence < length and text[fence].isspace():
        fence += 1
    if fence == command_end or text[fence - 1] != "\n" or not text.startswith(FENCE, fence):
        return None

    body = fence + len(FENCE)
    while body < length and text[body] in _LANG_CHARS:
        body += 1

    closing = text.find(FENCE, body)
    if closing == -1:
        return None
    end = closing + len(FENCE)

    return RawToolCall(
        id=call_id,
        tool_name=tool_name,
        command=command.strip(),
        content=text[body:closing].strip(),
        full_match=text[start:end],
        start=start,
        end=end,
    )


def scan_tool_calls(text: str) -> list[RawToolCall]:
    """Return every well-formed call in document order"""
    calls: list[RawToolCall] = []
    pos = 0
    while True:
        start = text.find(">", pos)
        if start == -1:
            break
        call = _match_at(text, start)
        if call is None:
            pos = start + 1
            continue
        logger.debug(f"Matched call {call.id} -> {call.tool_name}/{call.command}")
        calls.append(call)
        pos = call.end
    return calls


def format_tool_call(
    call_id: str,
    tool_name: str,
    command: str,
    content: str,
    language: str = ""
) -> str:
    """Render a call in the syntax scan_tool_calls understands"""
    return f"> {SENTINEL}{call_id}/{tool_name}/{command}\n{FENCE}{language}\n{content}\n{FENCE}"
