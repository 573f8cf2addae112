"""
Push: device token registration and the send-push-for-notification function.

The function endpoint is called by database webhooks/other services as well as browsers,
so it answers pre-flight itself and every response carries the same permissive CORS headers.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import current_user_id
from app.core.errors import NotificationError, error_response
from app.db.session import get_db
from app.services.push import send_push_for_notification
from app.services.push_token_service import register_push_token, unregister_push_token

router = APIRouter()
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}
SEND_PUSH_PATH = "/functions/send-push-for-notification"


# --- Device registration ---


class RegisterPushBody(BaseModel):
    expo_push_token: str = Field(..., min_length=1, max_length=256, description="ExponentPushToken[...] from the app")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push(
    body: RegisterPushBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    """
    Register a device for push notifications. Call from the mobile app after sign-in.
    Idempotent: the same (user, token) pair is upserted (updated_at refreshed).
    """
    created = register_push_token(db, user_id, body.expo_push_token, body.platform)
    return {"ok": True, "message": "Token registered" if created else "Token already registered"}


class UnregisterPushBody(BaseModel):
    expo_push_token: str = Field(..., min_length=1, max_length=256)


@router.delete("/push/register")
def unregister_push(
    body: UnregisterPushBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(current_user_id),
):
    """Remove a device token (sign-out on that device)."""
    removed = unregister_push_token(db, user_id, body.expo_push_token)
    return {"ok": True, "removed": removed}


# --- Fan-out function ---


@router.options(SEND_PUSH_PATH)
def send_push_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@router.post(SEND_PUSH_PATH)
async def send_push(request: Request, db: Session = Depends(get_db)):
    """
    Body: {"notification_id": "<uuid>"}. Safe to retry with the same id (pushes may repeat).
    200 {"skipped"} | {"sent": 0, "message"} | {"sent", "tokens"}; 400, 404, 502, 500 {"error"}.
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        body = {}
    notification_id = body.get("notification_id") if isinstance(body, dict) else None
    try:
        # Blocking DB + gateway work; keep it off the event loop
        result = await run_in_threadpool(send_push_for_notification, db, notification_id)
    except NotificationError as e:
        return error_response(e, headers=CORS_HEADERS)
    except Exception as e:
        logger.exception("send-push-for-notification error: %s", e)
        return error_response(e, headers=CORS_HEADERS)
    return JSONResponse(result, headers=CORS_HEADERS)
