"""Shared test doubles for the HTTP transport."""
from typing import Callable, Iterable, List

import httpx

from chatrelay.core.http_client import UpstreamHTTPClient


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given pieces, one read each."""

    def __init__(self, parts: Iterable[bytes]):
        self.parts = list(parts)

    async def __aiter__(self):
        for part in self.parts:
            yield part


class RecordingHandler:
    """MockTransport handler replaying scripted responses in order.

    Each scripted item is used once: an httpx.Response is returned, an
    exception is raised.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request #{len(self.requests)} to {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)


def sse_body(*payloads: str) -> bytes:
    """Encode payloads as ``data:`` frames."""
    return "".join(f"data: {p}\n\n" for p in payloads).encode("utf-8")


def make_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> UpstreamHTTPClient:
    """Transport whose network is the given handler."""
    return UpstreamHTTPClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
