"""Passthrough to the front-end development server.

HTTP requests are forwarded with the Host rewritten to the target and the
response is streamed back unchanged. WebSocket connections (hot reload) are
bridged frame by frame until either side closes.
"""

import asyncio
from typing import Optional

import httpx
import websockets
from loguru import logger
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response, StreamingResponse
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

HOP_BY_HOP_HEADERS = {
    b"connection",
    b"keep-alive",
    b"proxy-authenticate",
    b"proxy-authorization",
    b"te",
    b"trailers",
    b"transfer-encoding",
    b"upgrade",
}
# Recomputed by the outgoing client
REQUEST_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {b"host", b"content-length"}


def websocket_url(target_url: str, path: str, query: str = "") -> str:
    """Translate an http(s) target into the matching ws(s) URL for `path`"""
    url = httpx.URL(target_url)
    scheme = "wss" if url.scheme == "https" else "ws"
    ws = f"{scheme}://{url.netloc.decode('ascii')}{path}"
    return f"{ws}?{query}" if query else ws


async def _close(websocket: WebSocket, code: int = 1000) -> None:
    if (
        websocket.application_state != WebSocketState.DISCONNECTED
        and websocket.client_state != WebSocketState.DISCONNECTED
    ):
        await websocket.close(code=code)


class DevServerProxy:
    def __init__(self, target_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.target_url = target_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.target_url,
            transport=transport,
            timeout=httpx.Timeout(None, connect=5.0),
            follow_redirects=False,
        )

    async def forward(self, request: Request) -> Response:
        url = httpx.URL(path=request.url.path, query=request.url.query.encode("utf-8"))
        headers = [(k, v) for k, v in request.headers.raw if k.lower() not in REQUEST_SKIP_HEADERS]
        body = await request.body()

        upstream_request = self._client.build_request(request.method, url, headers=headers, content=body)
        try:
            upstream = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Dev server unreachable at {self.target_url}: {e}")
            return PlainTextResponse("Bad Gateway", status_code=502)

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = [
            (k.lower(), v) for k, v in upstream.headers.raw if k.lower() not in HOP_BY_HOP_HEADERS
        ]
        return response

    async def forward_websocket(self, websocket: WebSocket) -> None:
        url = websocket_url(self.target_url, websocket.url.path, websocket.url.query)
        subprotocols = websocket.scope.get("subprotocols") or None
        try:
            async with websockets.connect(url, subprotocols=subprotocols) as upstream:
                await websocket.accept(subprotocol=upstream.subprotocol)
                await self._bridge(websocket, upstream)
        except (websockets.exceptions.WebSocketException, OSError) as e:
            logger.error(f"WebSocket proxy to {url} failed: {e}")
            await _close(websocket, code=1011)

    async def _bridge(self, websocket: WebSocket, upstream) -> None:
        async def client_to_upstream():
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
                    if message.get("text") is not None:
                        await upstream.send(message["text"])
                    elif message.get("bytes") is not None:
                        await upstream.send(message["bytes"])
            except (WebSocketDisconnect, websockets.exceptions.ConnectionClosed):
                pass
            await upstream.close()

        async def upstream_to_client():
            try:
                async for message in upstream:
                    if isinstance(message, str):
                        await websocket.send_text(message)
                    else:
                        await websocket.send_bytes(message)
            except websockets.exceptions.ConnectionClosed:
                pass
            await _close(websocket)

        tasks = [asyncio.create_task(client_to_upstream()), asyncio.create_task(upstream_to_client())]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()

    async def aclose(self) -> None:
        await self._client.aclose()
