from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.app import app, notification_handler
from src.models import Category, Priority, SourceKind, Viewer
from src.utils import (
    NotificationHandler,
    NotificationLoadError,
    NotificationUpdateError,
    Token,
    TokenHandler,
)
from src.utils.notification_pipeline import filter_view, group_by_category
from src.utils.permissions import parse_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/notifications", tags=["Notifications"])
security = HTTPBearer()


def get_notification_handler() -> NotificationHandler:
    return notification_handler


def get_token_handler() -> TokenHandler:
    return TokenHandler(app.state.jwt_secret)


def get_user_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Token:
    token = get_token_handler().validate_token(credentials.credentials)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return token


def get_viewer(token: Token = Depends(get_user_token)) -> Viewer:
    role = parse_role(token.role)
    if role is None:
        logger.warning(f"🚫 Unknown role {token.role!r} for viewer {token.sub}")
        raise HTTPException(status_code=403, detail="Role is not allowed to view notifications")
    return Viewer(id=token.sub, role=role)


@router.get("")
async def list_notifications(
    source_kind: Optional[SourceKind] = None,
    category: Optional[Category] = None,
    priority: Optional[Priority] = None,
    search: Optional[str] = None,
    show_read: bool = True,
    viewer: Viewer = Depends(get_viewer),
    handler: NotificationHandler = Depends(get_notification_handler),
):
    """Load the viewer's notification feed, optionally narrowed by the filter bar."""
    try:
        feed = await handler.load(viewer)
    except NotificationLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))

    visible = filter_view(
        feed.notifications,
        source_kind=source_kind,
        category=category,
        priority=priority,
        search=search,
        show_read=show_read,
    )
    groups = [
        {
            "category": group_category.value,
            "total": len(items),
            "unread": sum(1 for n in items if not n.is_read),
            "ids": [n.id for n in items],
        }
        for group_category, items in group_by_category(visible).items()
    ]
    return JSONResponse({
        "message": "success",
        "notifications": [n.model_dump(mode="json") for n in visible],
        "summary": feed.summary.model_dump(mode="json"),
        "groups": groups,
        "failed_sources": feed.failed_sources,
    })


@router.post("/read-all")
async def mark_all_notifications_read(
    viewer: Viewer = Depends(get_viewer),
    handler: NotificationHandler = Depends(get_notification_handler),
):
    try:
        updated = await handler.mark_all_read(viewer)
    except NotificationLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except NotificationUpdateError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if updated == 0:
        return JSONResponse({"message": "No unread notifications to mark", "updated": 0})
    return JSONResponse({"message": "All notifications marked as read", "updated": updated})


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    source_kind: Optional[SourceKind] = None,
    viewer: Viewer = Depends(get_viewer),
    handler: NotificationHandler = Depends(get_notification_handler),
):
    try:
        found = await handler.mark_read(viewer, notification_id, source_kind)
    except NotificationLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except NotificationUpdateError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    return JSONResponse({"message": "Notification marked as read"})


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    source_kind: Optional[SourceKind] = None,
    viewer: Viewer = Depends(get_viewer),
    handler: NotificationHandler = Depends(get_notification_handler),
):
    try:
        found = await handler.delete(viewer, notification_id, source_kind)
    except NotificationLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except NotificationUpdateError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    return JSONResponse({"message": "Notification deleted"})


app.include_router(router)
