import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from cutflow.database import engine
from cutflow.models.order import Order
from cutflow.realtime.hub import Subscriber, order_room, user_room
from cutflow.services.order_service import has_applied, is_participant
from cutflow.utils.token import user_from_token

logger = logging.getLogger(__name__)

router = APIRouter()


def _authenticate(token: Optional[str]):
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")

    with Session(engine) as session:
        user = user_from_token(token, session)
        session.expunge(user)
        return user


def _can_join(user, order_id: int) -> bool:
    with Session(engine) as session:
        order = session.get(Order, order_id)
        if not order:
            return False
        return is_participant(order, user) or has_applied(session, order.id, user.id)


def _bearer_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token

    auth = websocket.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:]
    return None


async def _pump(websocket: WebSocket, subscriber: Subscriber):
    while True:
        message = await subscriber.receive()
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Stopped pushing to closed socket: %r", exc)
            return


async def _stop_sender(sender: asyncio.Task):
    sender.cancel()
    with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
        await sender


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    Clients authenticate with ``?token=`` or a bearer header and are joined
    to their own room. ``{"event": "join_order", "order_id": n}`` joins an
    order room the user takes part in.
    """
    try:
        user = await run_in_threadpool(_authenticate, _bearer_token(websocket, token))
    except HTTPException:
        await websocket.close(code=1008)
        return

    await websocket.accept()

    hub = websocket.app.state.hub
    subscriber = Subscriber()
    hub.subscribe(subscriber, user_room(user.id))
    sender = asyncio.create_task(_pump(websocket, subscriber))

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Invalid JSON"}})
                continue

            event = message.get("event") if isinstance(message, dict) else None
            order_id = message.get("order_id") if isinstance(message, dict) else None

            if event == "join_order" and isinstance(order_id, int):
                if await run_in_threadpool(_can_join, user, order_id):
                    hub.subscribe(subscriber, order_room(order_id))
                    await websocket.send_json({"event": "joined_order", "data": {"order_id": order_id}})
                else:
                    await websocket.send_json(
                        {"event": "error", "data": {"message": "Cannot join this order"}}
                    )
            elif event == "leave_order" and isinstance(order_id, int):
                hub.unsubscribe(subscriber, order_room(order_id))
            else:
                await websocket.send_json({"event": "error", "data": {"message": "Unknown event"}})
    except WebSocketDisconnect:
        logger.debug("WebSocket closed for user %s", user.id)
    finally:
        hub.unsubscribe(subscriber)
        await _stop_sender(sender)
