"""
WebSocket Endpoint：即時推播

Client -> Server（JSON）：
    {"type": "team:reconnect", "token": "..."}
    {"type": "team:subscribe", "token": "..."}
    {"type": "team:bid", "token": "..."}
    {"type": "admin:subscribe", "password": "..."}
    {"type": "display:subscribe"}

Server -> Client（JSON）：
    {"event": "team:state" | "admin:state" | "display:state", "payload": {...}}
    {"event": "error:team" | "error", "payload": {"code": "...", "message": "..."}}

業務錯誤不會關閉連線，只推一個 error 事件。
AuctionService 是同步的（SQLAlchemy），在 threadpool 裡執行；
推播從 worker thread 透過 call_soon_threadsafe 丟進這條連線自己的 queue。
"""
import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from database import get_settings
from core.exceptions import AuctionException

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


class QueueSubscriber:
    """把推播轉進 asyncio.Queue，可以從任何執行緒呼叫 push()"""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()

    def push(self, event: str, payload: dict) -> None:
        self.loop.call_soon_threadsafe(
            self.queue.put_nowait, {"event": event, "payload": payload}
        )


def _error(code: str, message: str) -> dict:
    return {"code": code, "message": message}


def handle_message(auction, session_factory, subscriber: QueueSubscriber, message: dict) -> None:
    """處理一則 client 訊息（在 worker thread 執行）"""
    msg_type = message.get("type")
    db = session_factory()
    try:
        if msg_type in ("team:reconnect", "team:subscribe"):
            token = message.get("token")
            try:
                view = auction.reconnect(db, token, subscriber)
            except AuctionException as e:
                subscriber.push("error:team", _error(e.code, str(e)))
                return
            subscriber.push("team:state", {"token": token, **view.model_dump(mode="json")})

        elif msg_type == "team:bid":
            token = message.get("token")
            try:
                view = auction.attempt_bid(db, token)
            except AuctionException as e:
                subscriber.push("error:team", _error(e.code, str(e)))
                return
            subscriber.push("team:state", {"token": token, **view.model_dump(mode="json")})

        elif msg_type == "admin:subscribe":
            if message.get("password") != get_settings().admin_password:
                subscriber.push("error", _error("unauthorized", "Unauthorized"))
                return
            auction.registry.subscribe_admin(subscriber)
            subscriber.push("admin:state", auction.admin_view(db).model_dump(mode="json"))

        elif msg_type == "display:subscribe":
            auction.registry.subscribe_display(subscriber)
            subscriber.push("display:state", auction.display_view(db).model_dump(mode="json"))

        else:
            subscriber.push("error", _error("unknown_message", f"Unknown message type: {msg_type}"))
    finally:
        db.close()


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    while True:
        message = await subscriber.queue.get()
        await websocket.send_json(message)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    auction = websocket.app.state.auction
    session_factory = websocket.app.state.session_factory
    subscriber = QueueSubscriber(asyncio.get_running_loop())
    sender = asyncio.create_task(_pump(websocket, subscriber))

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                subscriber.push("error", _error("bad_message", "Message must be JSON"))
                continue
            if not isinstance(message, dict):
                subscriber.push("error", _error("bad_message", "Message must be a JSON object"))
                continue

            try:
                await run_in_threadpool(handle_message, auction, session_factory, subscriber, message)
            except Exception as e:
                logger.error(f"Failed to handle websocket message {message.get('type')}: {e}", exc_info=True)
                subscriber.push("error", _error("internal_error", "Internal error"))

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        auction.registry.unsubscribe(subscriber)
        sender.cancel()
