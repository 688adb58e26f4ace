"""Recipient-side notification endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from reportdesk.core.auth import RequestUserContext, get_current_user_context
from reportdesk.core.clock import Clock, get_clock
from reportdesk.db.dependencies import get_db_session
from reportdesk.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _service(db: Session, clock: Clock) -> NotificationService:
    return NotificationService(db, clock=clock)


@router.get("")
def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    result = service.list_notifications(recipient_id=context.user_id, page=page, limit=limit)
    return {
        "items": [service.serialize(notification) for notification in result.items],
        "meta": {
            "total": result.total,
            "page": result.page,
            "limit": result.limit,
            "total_pages": result.total_pages,
        },
    }


@router.get("/unread-count")
def unread_count(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, int]:
    return {"count": _service(db, clock).unread_count(recipient_id=context.user_id)}


@router.post("/read-all")
def mark_all_notifications_read(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, int]:
    return {"updated": _service(db, clock).mark_all_as_read(recipient_id=context.user_id)}


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> dict[str, object]:
    service = _service(db, clock)
    notification = service.mark_as_read(notification_id=notification_id, recipient_id=context.user_id)
    return service.serialize(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> Response:
    _service(db, clock).delete_notification(notification_id=notification_id, recipient_id=context.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
