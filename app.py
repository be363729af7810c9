from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from starlette.websockets import WebSocketState
from routers.rooms import rooms_router
from backend import RoomStore
from registry import Connection, ConnectionRegistry
from signaling import SignalingRouter
from schemas.rooms import ClientConfigResponse, IceServer
from constants import CORS_ORIGINS, ICE_SERVERS, LOG_FILE, LOG_LEVEL, MAX_MESSAGE_BYTES
from logging_config import get_logger, setup_logging
import asyncio

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


async def pump_outbox(connection: Connection):
    """Drain a connection's outbound buffer onto its websocket until it fails or is cancelled."""
    while True:
        frame = await connection.outbox.get()
        if connection.closed:
            continue
        try:
            await connection.channel.send_text(frame)
        except Exception as e:
            # Transport is gone; the receive loop runs the disconnect cleanup
            logger.debug(f"Send to connection {connection.id} failed: {e}")
            connection.closed = True
            return


async def websocket_endpoint(websocket: WebSocket):
    """Signaling socket. One JSON object per frame, handled in arrival order."""
    registry: ConnectionRegistry = websocket.app.state.registry
    signaling: SignalingRouter = websocket.app.state.signaling

    await websocket.accept()
    connection_id = registry.register(websocket)
    connection = registry.get(connection_id)
    writer = asyncio.create_task(pump_outbox(connection))

    message_count = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break

            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            message_count += 1

            size = len(data.encode("utf-8")) if isinstance(data, str) else len(data)
            if size > MAX_MESSAGE_BYTES:
                logger.warning(f"Dropping {size} byte frame from connection {connection_id} (limit {MAX_MESSAGE_BYTES})")
                continue

            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            signaling.handle_frame(connection_id, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # Cleanup on disconnect; undelivered frames are dropped
        signaling.handle_disconnect(connection_id)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass

        if websocket.client_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")


def create_app() -> FastAPI:
    registry = ConnectionRegistry()
    room_store = RoomStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Signaling server ready")
        yield
        logger.info("Shutting down signaling server")
        await registry.close_all()

    app = FastAPI(title="WebRTC signaling relay", lifespan=lifespan)

    # Configure CORS so external status pages can poll the projection routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.room_store = room_store
    app.state.signaling = SignalingRouter(registry, room_store)

    app.include_router(rooms_router)
    app.add_api_websocket_route("/", websocket_endpoint)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    @app.get("/config", response_model=ClientConfigResponse)
    async def serve_config():
        """ICE servers for browsers to build their peer connections with."""
        return ClientConfigResponse(iceServers=[IceServer(urls=url) for url in ICE_SERVERS])

    @app.get("/health")
    async def health():
        return {"status": "ok", "connections": len(registry), "rooms": len(room_store)}

    logger.info("FastAPI application initialized")
    return app


app = create_app()
