from __future__ import annotations

"""
Async JSON-RPC client over one WebSocket connection.

- Built on `websockets` (asyncio client).
- Responses are matched to requests by `id`; subscription notifications are
  routed to the handler registered for their subscription id.
- Connects once. When the socket drops, every in-flight request fails with
  NetworkConnectionError and close listeners are told, so a session can end
  its event streams instead of hanging.

Example:
    import asyncio
    from zkv_attest.rpc.ws import WsClient

    async def main():
        async with WsClient("ws://127.0.0.1:9944") as ws:
            print(await ws.request("system_health"))

    asyncio.run(main())
"""

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import (ConnectionClosed, InvalidStatus,
                                   WebSocketException)

from ..errors import (AuthenticationError, JsonRpcCode, NetworkConnectionError,
                      RpcError, from_jsonrpc_error)
from ..version import USER_AGENT

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[list, dict, None]
OnEvent = Callable[[JSON], None]
OnClose = Callable[[Exception], None]
OnError = Callable[[Exception], None]

logger = logging.getLogger(__name__)

# Per-subscription cap on notifications received before the handler exists
_MAX_EARLY_NOTIFICATIONS = 256


def _transport_error(message: str, **kw: Any) -> RpcError:
    return RpcError(code=JsonRpcCode.TRANSPORT_ERROR, message=message, **kw)


def _as_params(params: Params) -> Union[list, dict]:
    if params is None:
        return []
    if isinstance(params, (list, dict)):
        return params
    return [params]


@dataclass
class WsClient:
    url: str
    headers: Optional[Mapping[str, str]] = None
    connect_timeout: float = 15.0
    request_timeout: float = 30.0
    ping_interval: Optional[float] = 20.0
    _ids: Iterator[int] = field(init=False, default_factory=lambda: count(1))
    _ws: Optional[ClientConnection] = field(init=False, default=None)
    _reader: Optional[asyncio.Task] = field(init=False, default=None)
    _inflight: Dict[int, asyncio.Future] = field(init=False, default_factory=dict)
    _handlers: Dict[str, OnEvent] = field(init=False, default_factory=dict)
    _error_handlers: Dict[str, OnError] = field(init=False, default_factory=dict)
    _early: Dict[str, List[JSON]] = field(init=False, default_factory=dict)
    _close_listeners: List[OnClose] = field(init=False, default_factory=list)
    _closing: bool = field(init=False, default=False)

    async def __aenter__(self) -> "WsClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._closing

    async def connect(self) -> None:
        """
        Open the socket and start reading.

        A 401/403 handshake answer is an AuthenticationError; any other
        failure, including `connect_timeout` expiring, is a
        NetworkConnectionError.
        """
        self._closing = False
        headers = {"User-Agent": USER_AGENT, **dict(self.headers or {})}
        try:
            opening = ws_connect(
                self.url,
                additional_headers=headers,
                ping_interval=self.ping_interval,
                open_timeout=None,
            )
            self._ws = await asyncio.wait_for(opening, timeout=self.connect_timeout)
        except InvalidStatus as e:
            status = e.response.status_code
            if status in (401, 403):
                raise AuthenticationError(f"endpoint refused connection (HTTP {status})") from e
            raise NetworkConnectionError(f"WebSocket handshake failed (HTTP {status})") from e
        except asyncio.TimeoutError as e:
            raise NetworkConnectionError(
                f"timed out connecting to {self.url} after {self.connect_timeout:.1f}s"
            ) from e
        except (OSError, ValueError, WebSocketException) as e:
            raise NetworkConnectionError(f"cannot connect to {self.url}: {e}") from e

        logger.debug("connected to %s", self.url)
        self._reader = asyncio.create_task(self._read_forever(), name="WsClient.reader")

    async def close(self) -> None:
        """Stop reading, close the socket and fail whatever is still waiting."""
        if self._closing and self._ws is None:
            return
        self._closing = True
        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except ConnectionClosed:
                logger.debug("socket to %s was already closed", self.url)
        self._shutdown(_transport_error("WS closed"))

    def add_close_listener(self, listener: OnClose) -> None:
        """Register `listener(exc)`, called once when the connection ends."""
        self._close_listeners.append(listener)

    async def request(self, method: str, params: Params = None) -> JSON:
        """Call `method` and return its `result`; errors raise RpcError."""
        ws = self._ws
        if ws is None or self._closing:
            raise _transport_error("WS not connected", method=method)

        req_id = next(self._ids)
        frame = json.dumps(
            {"jsonrpc": "2.0", "id": req_id, "method": method, "params": _as_params(params)},
            separators=(",", ":"),
        )
        reply: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[req_id] = reply
        try:
            try:
                await asyncio.wait_for(ws.send(frame), timeout=self.request_timeout)
            except (ConnectionClosed, asyncio.TimeoutError, OSError) as e:
                raise _transport_error("WS send failed", data=str(e), method=method) from e
            try:
                return await asyncio.wait_for(reply, timeout=self.request_timeout)
            except asyncio.TimeoutError as e:
                raise _transport_error(
                    f"no response within {self.request_timeout:.1f}s",
                    method=method,
                    request_id=req_id,
                ) from e
            except RpcError as e:
                if e.method is None:
                    e.method = method
                raise
        finally:
            self._inflight.pop(req_id, None)

    async def subscribe(
        self,
        method: str,
        params: Params = None,
        *,
        on_event: OnEvent,
        on_error: OnError,
    ) -> str:
        """
        Call a subscribing `method` and route its notifications to `on_event`.

        The result is the subscription id (bare, or as `{"subscription": id}`).
        Notifications look like
          {"jsonrpc":"2.0","method":"<name>","params":{"subscription":"<id>","result":<event>}}
        and any that arrived before the result are delivered first, in order.

        If `on_event` raises, the subscription is dropped (later notifications
        for it are discarded) and `on_error(exc)` is called, so the owner
        learns that its event flow has stopped.
        """
        res = await self.request(method, params)
        sub_id = str(res["subscription"] if isinstance(res, dict) and "subscription" in res else res)
        self._handlers[sub_id] = on_event
        self._error_handlers[sub_id] = on_error
        for event in self._early.pop(sub_id, []):
            if not self._deliver(sub_id, on_event, event):
                break
        return sub_id

    def _deliver(self, sub_id: str, handler: OnEvent, event: JSON) -> bool:
        try:
            handler(event)
        except Exception as e:
            logger.exception("handler for subscription %s raised; dropping it", sub_id)
            self._handlers.pop(sub_id, None)
            self._early.pop(sub_id, None)
            on_error = self._error_handlers.pop(sub_id, None)
            if on_error is not None:
                on_error(e)
            return False
        return True

    def _shutdown(self, exc: Exception) -> None:
        waiting = list(self._inflight.values())
        self._inflight.clear()
        for reply in waiting:
            if not reply.done():
                reply.set_exception(exc)
        listeners, self._close_listeners = self._close_listeners, []
        for listener in listeners:
            try:
                listener(exc)
            except Exception:
                logger.exception("close listener raised")

    def _on_response(self, msg: dict) -> None:
        rid = msg.get("id")
        if isinstance(rid, str) and rid.isdigit():
            rid = int(rid)
        reply = self._inflight.get(rid) if isinstance(rid, int) else None
        if reply is None or reply.done():
            logger.debug("response for unknown request %r dropped", rid)
            return
        if msg.get("error") is not None:
            reply.set_exception(from_jsonrpc_error(msg["error"], request_id=rid))
        else:
            reply.set_result(msg.get("result"))

    def _on_notification(self, msg: dict) -> None:
        params = msg.get("params")
        if not isinstance(params, dict) or "subscription" not in params:
            logger.debug("notification %s has no subscription id", msg.get("method"))
            return
        sub_id = str(params["subscription"])
        handler = self._handlers.get(sub_id)
        if handler is not None:
            self._deliver(sub_id, handler, params.get("result"))
            return
        parked = self._early.setdefault(sub_id, [])
        if len(parked) < _MAX_EARLY_NOTIFICATIONS:
            parked.append(params.get("result"))

    async def _read_forever(self) -> None:
        ws = self._ws
        if ws is None:
            return
        while True:
            try:
                raw = await ws.recv()
            except ConnectionClosed as e:
                if not self._closing:
                    logger.warning("connection to %s closed: %s", self.url, e)
                    self._shutdown(NetworkConnectionError(f"connection to {self.url} lost: {e}"))
                return
            try:
                msg = json.loads(raw)
            except (TypeError, ValueError):
                logger.debug("non-JSON frame ignored")
                continue
            if not isinstance(msg, dict):
                continue
            if "method" in msg:
                self._on_notification(msg)
            elif "id" in msg:
                self._on_response(msg)


__all__ = ["WsClient", "JSON", "Params", "OnEvent", "OnClose", "OnError"]
