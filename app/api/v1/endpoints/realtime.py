# app/api/v1/endpoints/realtime.py
"""
Websocket relay for refetch notifications.

Browsers subscribe to a topic ('slots', 'tickets') and receive a small JSON
message whenever the engine publishes on it. Publishing can happen on the
scheduler thread, so messages are handed to the event loop thread-safely.
"""
import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.core.pubsub import SLOTS_TOPIC, TICKETS_TOPIC

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_TOPICS = {SLOTS_TOPIC, TICKETS_TOPIC}


@router.websocket("/ws")
async def topic_socket(websocket: WebSocket, topic: str = Query(SLOTS_TOPIC)):
    if topic not in ALLOWED_TOPICS:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    topics = websocket.app.state.topics
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def forward(published_topic, message):
        loop.call_soon_threadsafe(queue.put_nowait, {"topic": published_topic, **message})

    token = topics.subscribe(topic, forward)
    receiver = asyncio.create_task(websocket.receive_text())
    try:
        while True:
            sender = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                sender.cancel()
                # Raises WebSocketDisconnect when the client went away
                receiver.result()
                receiver = asyncio.create_task(websocket.receive_text())
                continue
            await websocket.send_json(sender.result())
    except WebSocketDisconnect:
        logger.debug(f"Websocket on topic '{topic}' disconnected")
    finally:
        receiver.cancel()
        topics.unsubscribe(token)
