"""Event catalog router: /api/v1/events, /categories and /organizers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.dependencies import CurrentUser, get_current_user, require_roles
from meetup.catalog import service
from meetup.catalog.schemas import (
    CategoryResponse,
    CreatedResponse,
    EventCreate,
    EventDetail,
    EventListItem,
    EventPage,
    OrganizerResponse,
    StatusResponse,
    TicketTypeResponse,
)
from meetup.catalog.service import EventView
from meetup.config import Settings
from meetup.db.models import ROLE_ORGANIZER
from meetup.dependencies import get_app_settings, get_db, get_email_dispatcher
from meetup.email.dispatcher import EmailDispatcher
from meetup.errors import NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Catalog"])


def parse_id_list(raw: str | None) -> list[int]:
    """Parse ``1,2,x,3`` into ``[1, 2, 3]``; unparsable parts are ignored."""
    if not raw:
        return []
    ids: list[int] = []
    for part in raw.split(","):
        try:
            ids.append(int(part.strip()))
        except ValueError:
            continue
    return ids


def to_list_item(view: EventView) -> EventListItem:
    e = view.event
    return EventListItem(
        id=e.id,
        organizer_id=e.organizer_id,
        organizer_name=view.organizer_name,
        title=e.title,
        description=e.description,
        start_at=e.start_at,
        end_at=e.end_at,
        location=e.location,
        is_online=e.is_online,
        status=e.status,
        created_at=e.created_at,
        category_ids=view.category_ids,
    )


def to_detail(view: EventView) -> EventDetail:
    return EventDetail(
        **to_list_item(view).model_dump(),
        is_public=view.event.is_public,
        ticket_types=[
            TicketTypeResponse(
                id=t.id,
                name=t.name,
                price=float(t.price),
                capacity=t.capacity,
                registered_count=t.registered_count,
                available=max(0, t.capacity - t.registered_count),
            )
            for t in view.ticket_types
        ],
        image_ids=view.image_ids,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.post("/events", response_model=CreatedResponse, status_code=201)
async def create_event(
    body: EventCreate,
    user: CurrentUser = Depends(require_roles(ROLE_ORGANIZER)),
    db: AsyncSession = Depends(get_db),
) -> CreatedResponse:
    event_id = await service.create_event(db, user.id, body)
    return CreatedResponse(id=event_id)


@router.get("/events", response_model=EventPage)
async def list_events(
    cursor: str | None = Query(None),
    limit: int | None = Query(None),
    category_ids: str | None = Query(None, alias="categoryIds"),
    sort_by: str | None = Query(None, alias="sortBy"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> EventPage:
    """Public catalog, cursor-paginated."""
    views, next_cursor = await service.list_events(
        db,
        cursor=cursor,
        limit=limit,
        category_ids=parse_id_list(category_ids),
        sort_by=sort_by,
        default_limit=settings.events_page_default_limit,
    )
    return EventPage(items=[to_list_item(v) for v in views], next_cursor=next_cursor)


@router.get("/events/{event_id}", response_model=EventDetail)
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)) -> EventDetail:
    return to_detail(await service.get_event(db, event_id))


@router.post("/events/{event_id}/cancel", response_model=StatusResponse)
async def cancel_event(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> StatusResponse:
    await service.cancel_event(db, dispatcher, event_id, user.id)
    return StatusResponse(status="cancelled")


@router.post("/events/{event_id}/images", response_model=CreatedResponse, status_code=201)
async def upload_event_image(
    event_id: int,
    image: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CreatedResponse:
    content = await image.read()
    image_id = await service.add_event_image(
        db, event_id, user.id, content, image.content_type, image.filename
    )
    return CreatedResponse(id=image_id)


@router.get("/events/{event_id}/images/{image_id}")
async def get_event_image(event_id: int, image_id: int, db: AsyncSession = Depends(get_db)) -> Response:
    image = await service.get_event_image(db, event_id, image_id)
    return Response(content=image.content, media_type=image.content_type)


# ---------------------------------------------------------------------------
# Categories and organizers
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> list[CategoryResponse]:
    return [CategoryResponse(id=c.id, name=c.name) for c in await service.list_categories(db)]


@router.get("/organizers/{organizer_id}", response_model=OrganizerResponse)
async def get_organizer(organizer_id: int, db: AsyncSession = Depends(get_db)) -> OrganizerResponse:
    profile = await service.get_organizer(db, organizer_id)
    return OrganizerResponse(
        id=profile.user_id,
        name=profile.name,
        description=profile.description,
        has_avatar=profile.avatar_content_type is not None,
    )


@router.get("/organizers/{organizer_id}/events", response_model=list[EventListItem])
async def list_organizer_events(organizer_id: int, db: AsyncSession = Depends(get_db)) -> list[EventListItem]:
    return [to_list_item(v) for v in await service.list_organizer_events(db, organizer_id)]


@router.get("/organizers/{organizer_id}/avatar")
async def get_organizer_avatar(organizer_id: int, db: AsyncSession = Depends(get_db)) -> Response:
    profile = await service.get_organizer(db, organizer_id, with_avatar=True)
    if not profile.avatar_content:
        msg = "Avatar not found"
        raise NotFoundError(msg)
    return Response(
        content=profile.avatar_content,
        media_type=profile.avatar_content_type or "application/octet-stream",
    )
