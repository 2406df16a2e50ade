import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from config import DEFAULT_CONTACT_EMAIL, FRONTEND_URL, SEQUENCE_GAP_MS, COUNTDOWN_SECONDS
from processing.controller import BlinkController
from processing.notifier import LogNotificationSender
from processing.scheduler import AsyncioScheduler
from schemas.messages import ClientMessage, ErrorResponse

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("Starting BlinkControl...")
    app.state.sender = LogNotificationSender()
    app.state.sessions = set()
    print(f"Sequence gap {SEQUENCE_GAP_MS}ms, emergency countdown {COUNTDOWN_SECONDS}s. Server ready.")
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok", "sessions": len(app.state.sessions)}


@app.websocket("/ws/control")
async def control_session(websocket: WebSocket):
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    prefill = websocket.query_params.get("email") or DEFAULT_CONTACT_EMAIL
    controller = BlinkController(
        AsyncioScheduler(),
        websocket.app.state.sender,
        publish=outbox.put_nowait,
        prefill_destination=prefill,
    )
    sessions = websocket.app.state.sessions
    sessions.add(controller)
    message_count = 0

    logger.info(f"WS control session started (prefill={'yes' if prefill else 'no'})")
    controller.publish_state()

    async def reader():
        """Apply client messages in arrival order."""
        nonlocal message_count
        try:
            while True:
                message = await websocket.receive()

                if message.get("type") == "websocket.disconnect":
                    break

                text = message.get("text")
                if text is None:
                    continue

                try:
                    client_message = ClientMessage.model_validate_json(text)
                except ValidationError as e:
                    logger.info(f"WS invalid message: {e.error_count()} error(s)")
                    outbox.put_nowait(ErrorResponse(message=f"Invalid message: {text[:100]}").model_dump())
                    continue

                message_count += 1
                controller.handle(client_message)

        except (WebSocketDisconnect, RuntimeError):
            pass

    async def writer():
        """Push queued state/sequence messages to the client."""
        try:
            while True:
                payload = await outbox.get()
                try:
                    await websocket.send_json(payload)
                except (WebSocketDisconnect, RuntimeError):
                    break

        except asyncio.CancelledError:
            pass

    try:
        reader_task = asyncio.create_task(reader())
        writer_task = asyncio.create_task(writer())

        # Disconnect ends the reader, a failed send ends the writer; either one closes the session
        _, pending = await asyncio.wait(
            {reader_task, writer_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"WS control session ended: {type(e).__name__}: {e}")
    finally:
        logger.info(f"WS cleanup: handled {message_count} messages, cancelling timers")
        controller.close()
        sessions.discard(controller)
