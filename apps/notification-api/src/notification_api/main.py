"""
Notification API

FastAPI app of the notification service.

Responsibilities:
- Direct-call bridge (POST /rpc/notification/PublishEvent): accept direct-path
  events and hand them to the router over notification/events
- Dashboard feed for caregivers and family members
- Device token registration for push
- Health and Prometheus metrics
"""

import logging

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from basecore.db import create_tables, get_db
from basecore.logging import setup_logging
from basecore.settings import get_settings
from messaging_core.transport import RedisPubSubTransport
from notifications_core.bridge import bridge_router, transport_intake
from notifications_core.persistence import NotificationBase, RecipientDirectory

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Notification API",
    description="Direct-call bridge and dashboard feed of the notification service",
    version="1.0.0",
)
app.include_router(bridge_router)


class DeviceTokenIn(BaseModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    token: str = Field(..., min_length=1)
    platform: str | None = None


class FeedEntry(BaseModel):
    id: str
    type: str
    title: str
    body: str
    read: bool
    created_at: str = Field(..., alias="createdAt")

    model_config = {"populate_by_name": True}


@app.on_event("startup")
async def startup():
    """Connect the intake transport and make sure tables exist."""
    settings = get_settings()
    try:
        create_tables(NotificationBase)
        transport = RedisPubSubTransport(settings.REDIS_URL)
        await transport.connect()
        app.state.transport = transport
        app.state.intake = transport_intake(transport, settings.NOTIFICATION_TOPIC)
        logger.info("Notification API started")
    except Exception as e:
        logger.error(f"Failed to initialize notification API: {e}")
        raise


@app.on_event("shutdown")
async def shutdown():
    transport = getattr(app.state, "transport", None)
    if transport is not None:
        await transport.close()


@app.get("/health")
async def health():
    """Health check endpoint."""
    transport = getattr(app.state, "transport", None)
    return {
        "status": "healthy",
        "service": "notification-api",
        "intake_connected": bool(transport and transport.is_connected),
    }


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/notifications/{recipient_id}", response_model=list[FeedEntry], response_model_by_alias=True)
def list_notifications(
    recipient_id: str,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Dashboard feed of a recipient, newest first."""
    records = RecipientDirectory(db).recent_notifications(recipient_id, limit=limit)
    return [
        FeedEntry(
            id=r.id,
            type=r.event_type,
            title=r.title,
            body=r.body,
            read=recipient_id in (r.read_by or []),
            created_at=r.created_at.isoformat(),
        )
        for r in records
    ]


@app.post("/notifications/{notification_id}/read")
def mark_read(notification_id: str, reader_id: str = Query(..., alias="readerId"), db: Session = Depends(get_db)):
    if not RecipientDirectory(db).mark_read(notification_id, reader_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    return {"ok": True}


@app.post("/devices", status_code=201)
def register_device(body: DeviceTokenIn, db: Session = Depends(get_db)):
    """Register (or reactivate) a push token."""
    device = RecipientDirectory(db).register_device_token(body.user_id, body.token, body.platform)
    db.commit()
    logger.info(f"Registered device token for {body.user_id}", extra={"platform": body.platform})
    return {"id": device.id}


def main():
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().NOTIFICATION_API_PORT)


if __name__ == "__main__":
    main()
