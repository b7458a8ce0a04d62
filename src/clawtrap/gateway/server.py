"""WebSocket gateway impersonating the assistant's streaming API.

Frames are JSON objects with a ``type`` of ``chat``, ``tool_call``,
``system`` or ``pong``; a frame that is not JSON is treated as chat text.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from aiohttp import WSCloseCode, WSMsgType, web

from clawtrap import __version__
from clawtrap.errors import AdmissionRejectedError, SessionNotFoundError
from clawtrap.honeypot import Honeypot
from clawtrap.logging import get_logger

log = get_logger("clawtrap.gateway.server")

CAPABILITIES = ["chat", "tools", "streaming"]
_CREDENTIAL_QUERY_KEYS = ("token", "api_key", "key")


def client_identity(request: web.Request) -> str:
    """Client address: ``X-Forwarded-For``, then ``X-Real-IP``, then the peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.remote or "unknown"


def parse_frame(data: str) -> dict[str, Any]:
    """Decode a client frame; anything that is not a JSON object is chat text."""
    try:
        frame = json.loads(data)
    except ValueError:
        return {"type": "chat", "content": data}
    if not isinstance(frame, dict):
        return {"type": "chat", "content": data}
    return frame


def presented_credentials(request: web.Request) -> list[str]:
    """Credentials the client offered on the upgrade request."""
    found: list[str] = []
    auth = request.headers.get("Authorization", "")
    if auth:
        scheme, _, value = auth.partition(" ")
        found.append(value.strip() if scheme.lower() == "bearer" and value else auth)
    for key in _CREDENTIAL_QUERY_KEYS:
        value = request.query.get(key)
        if value:
            found.append(value)
    return found


async def _send(ws: web.WebSocketResponse, frame: dict[str, Any]) -> None:
    if not ws.closed:
        await ws.send_json(frame)


class GatewayServer:
    """aiohttp application serving ``/ws`` and ``/health``."""

    def __init__(
        self,
        honeypot: Honeypot,
        *,
        host: str = "0.0.0.0",  # nosec B104 - honeypot must be reachable
        port: int = 18789,
        heartbeat_seconds: float = 30.0,
    ) -> None:
        self._honeypot = honeypot
        self._host = host
        self._port = port
        self._heartbeat_seconds = heartbeat_seconds
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        """Create and configure the aiohttp application."""
        app = web.Application()
        app.router.add_get("/ws", self.handle_ws)
        app.router.add_get("/health", self.handle_health)
        self._app = app
        return app

    async def start(self) -> None:
        """Start the server."""
        if self._app is None:
            self.create_app()

        if self._app is None:  # pragma: no cover
            raise RuntimeError("create_app() must be called first")

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

        log.info("gateway_started", host=self._host, port=self._port)

    async def stop(self) -> None:
        """Stop the server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            log.info("gateway_stopped")

    async def handle_health(self, request: web.Request) -> web.Response:
        """GET /health"""
        return web.json_response({"status": "healthy", "version": __version__})

    async def handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        """GET /ws: one honeypot session per connection."""
        identity = client_identity(request)
        ws = web.WebSocketResponse(heartbeat=self._heartbeat_seconds)

        for credential in presented_credentials(request):
            self._honeypot.check_credential(credential, identity=identity, context="websocket_auth")

        try:
            session = self._honeypot.open_session(
                identity,
                user_agent=request.headers.get("User-Agent"),
                headers=dict(request.headers),
                metadata={"origin": request.headers.get("Origin"), "transport": "websocket"},
            )
        except AdmissionRejectedError as e:
            await ws.prepare(request)
            await ws.close(code=WSCloseCode.TRY_AGAIN_LATER, message=b"Try again later")
            log.info("ws_connection_rejected", identity=identity, reason=e.decision.reason)
            return ws

        await ws.prepare(request)
        await _send(
            ws,
            {
                "type": "connected",
                "session_id": session.id,
                "model": self._honeypot.responder.model_name,
                "capabilities": CAPABILITIES,
            },
        )

        last_reply_at: float | None = None
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    frame = parse_frame(msg.data)
                elif msg.type == WSMsgType.BINARY:
                    frame = parse_frame(msg.data.decode("utf-8", errors="replace"))
                elif msg.type == WSMsgType.ERROR:
                    log.warning("ws_error", session_id=session.id, error=str(ws.exception()))
                    break
                else:
                    continue

                response_time_ms = None
                if last_reply_at is not None:
                    response_time_ms = (time.monotonic() - last_reply_at) * 1000

                try:
                    replied = await self._dispatch(ws, session.id, frame, response_time_ms)
                except SessionNotFoundError:
                    log.info("ws_session_expired", session_id=session.id)
                    await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Session expired")
                    break
                except Exception:
                    log.exception("ws_message_failed", session_id=session.id)
                    await _send(ws, {"type": "error", "message": "Failed to process message"})
                    continue

                if replied:
                    last_reply_at = time.monotonic()
        finally:
            self._honeypot.close_session(session.id, reason=f"close_code={ws.close_code}")

        return ws

    async def _dispatch(
        self,
        ws: web.WebSocketResponse,
        session_id: str,
        frame: dict[str, Any],
        response_time_ms: float | None,
    ) -> bool:
        """Handle one frame; returns True if a reply was sent."""
        frame_type = frame.get("type")
        responder = self._honeypot.responder

        match frame_type:
            case "chat":
                content = frame.get("content")
                # Detection is CPU-bound; keep it off the event loop
                outcome = await asyncio.to_thread(
                    self._honeypot.handle_message,
                    session_id,
                    content,
                    response_time_ms=response_time_ms,
                )
                await _send(ws, {"type": "typing", "session_id": session_id})
                if frame.get("stream", True) is False:
                    await asyncio.sleep(responder.delay_for(content))
                    await _send(ws, {"type": "chat_response", "content": outcome.reply})
                else:
                    await self._stream_reply(ws, outcome.reply)
                return True
            case "tool_call":
                result = self._honeypot.handle_tool_call(
                    session_id, frame.get("tool_name"), frame.get("arguments")
                )
                await asyncio.sleep(responder.tool_delay())
                await _send(ws, result)
                return True
            case "system":
                result = await asyncio.to_thread(
                    self._honeypot.handle_system_message, session_id, frame.get("content")
                )
                await _send(ws, result)
                return True
            case "pong":
                return False
            case _:
                log.warning(
                    "ws_unknown_message_type", session_id=session_id, message_type=frame_type
                )
                return False

    async def _stream_reply(self, ws: web.WebSocketResponse, reply: str) -> None:
        pending: str | None = None
        async for chunk in self._honeypot.responder.stream(reply):
            if pending is not None:
                await _send(ws, {"type": "chat_chunk", "content": pending, "done": False})
            pending = chunk
        await _send(ws, {"type": "chat_chunk", "content": pending or "", "done": True})
