"""WebSocket push route."""

from fastapi import APIRouter, WebSocket, status
from starlette.websockets import WebSocketState

from ...app import Application
from ...auth import parse_bearer
from ...errors import AuthorizationError
from ...logging_config import get_logger
from ...session import ConnectionSession

logger = get_logger(__name__)


class WebSocketTransport:
    """ITransport over a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._ws = websocket
        self._broken = False

    async def accept(self) -> None:
        await self._ws.accept()

    async def receive_text(self) -> str | None:
        while True:
            message = await self._ws.receive()
            if message["type"] == "websocket.disconnect":
                self._broken = True
                return None
            text = message.get("text")
            if text is not None:
                return text
            # binary frames are ignored

    async def send_text(self, data: str) -> None:
        try:
            await self._ws.send_text(data)
        except Exception:
            self._broken = True
            raise

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        if self._broken:
            return
        if (
            self._ws.application_state == WebSocketState.CONNECTED
            and self._ws.client_state == WebSocketState.CONNECTED
        ):
            await self._ws.close(code)


def create_realtime_router(app: Application) -> APIRouter:
    """Create realtime router."""
    router = APIRouter(tags=["realtime"])

    @router.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: str | None = None) -> None:
        """Live push connection. Credential via Authorization header or ?token=."""
        try:
            header = websocket.headers.get("authorization")
            credential = parse_bearer(header) if header else token
            user = app.authenticator.authenticate(credential)
        except AuthorizationError as e:
            logger.warning("WebSocket rejected: %s", e.message)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        session = ConnectionSession(
            user=user,
            transport=WebSocketTransport(websocket),
            registry=app.registry,
            pipeline=app.pipeline,
        )
        await session.run()

    return router
