"""Server-Sent-Events framing for streamed LLM responses."""
from typing import AsyncIterator, List, Optional

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSELineBuffer:
    """Reassembles lines that are split across network reads."""

    def __init__(self):
        self._pending = ""

    def feed(self, text: str) -> List[str]:
        """Add decoded text and return every line it completed."""
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> Optional[str]:
        """Return the unterminated tail at end of stream, if any."""
        tail, self._pending = self._pending.rstrip("\r"), ""
        return tail or None


def data_payload(line: str) -> Optional[str]:
    """Payload of a ``data:`` line, None for comments, events and blank lines."""
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if payload.startswith(" "):
        payload = payload[1:]
    return payload


async def iter_sse_data(text_chunks: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield the payload of every ``data:`` frame until ``[DONE]``.

    Args:
        text_chunks: Decoded response body, in arbitrary read-sized pieces

    Yields:
        Raw payload strings (usually JSON), in arrival order
    """
    buffer = SSELineBuffer()
    async for text in text_chunks:
        for line in buffer.feed(text):
            payload = data_payload(line)
            if payload is None or not payload.strip():
                continue
            if payload.strip() == DONE_SENTINEL:
                return
            yield payload

    tail = buffer.flush()
    if tail is not None:
        payload = data_payload(tail)
        if payload is not None and payload.strip() and payload.strip() != DONE_SENTINEL:
            yield payload
