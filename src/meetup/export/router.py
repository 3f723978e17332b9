"""Participant list export endpoint."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.dependencies import CurrentUser, get_current_user
from meetup.dependencies import get_db
from meetup.export.service import export_registrations

router = APIRouter(prefix="/api/v1", tags=["Export"])


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the RFC 5987 UTF-8 name."""
    ascii_name = filename.encode("ascii", "replace").decode().replace("?", "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/events/{event_id}/registrations/export")
async def export_event_registrations(
    event_id: int,
    fmt: str = Query("xlsx", alias="format", pattern="^(xlsx|excel|pdf)$"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    content, content_type, filename = await export_registrations(db, event_id, user.id, fmt)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )
