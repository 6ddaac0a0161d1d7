from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from bars.deps import SessionUser, get_dispatcher, require_tenant
from bars.services.push import NotificationDispatcher

router = APIRouter(prefix="/{tenant_id}/push", tags=["push"])


class SubscribeIn(BaseModel):
    subscription: Optional[dict] = None
    userId: Optional[str] = None


class SendIn(BaseModel):
    userId: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[dict] = None


@router.post("/subscribe")
def subscribe(
    tenant_id: str,
    body: SubscribeIn,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    s: SessionUser = Depends(require_tenant),
):
    created = dispatcher.subscribe(tenant_id, body.userId, body.subscription)
    return {"success": True, "created": created}


@router.post("/send")
def send(
    tenant_id: str,
    body: SendIn,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    s: SessionUser = Depends(require_tenant),
):
    payload = {
        "title": body.title or "Bars",
        "body": body.body or "Notification",
        "data": body.data or {},
        "tag": "bars-push",
    }
    sent = dispatcher.send(tenant_id, body.userId, payload)
    return {"success": True, "sent": sent}
