"""Current user router: /api/v1/me/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.dependencies import CurrentUser, get_current_user, require_roles
from meetup.catalog.router import to_list_item
from meetup.catalog.schemas import EventListItem, StatusResponse
from meetup.catalog.service import list_own_events, set_organizer_avatar
from meetup.db.models import ROLE_ORGANIZER
from meetup.dependencies import get_db
from meetup.errors import NotFoundError
from meetup.registrations.schemas import MyRegistrationResponse
from meetup.registrations.service import get_participant_profile, list_my_registrations
from meetup.users.schemas import MeResponse, ParticipantProfileResponse

router = APIRouter(prefix="/api/v1/me", tags=["Me"])


@router.get("", response_model=MeResponse)
async def get_me(user: CurrentUser = Depends(get_current_user)) -> MeResponse:
    """Identity as carried by the token."""
    return MeResponse(id=user.id, email=user.email, roles=sorted(user.roles))


@router.get("/profile", response_model=ParticipantProfileResponse)
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ParticipantProfileResponse:
    profile = await get_participant_profile(db, user.id)
    if profile is None:
        msg = "Participant profile not found"
        raise NotFoundError(msg)
    return ParticipantProfileResponse(
        first_name=profile.first_name,
        last_name=profile.last_name,
        middle_name=profile.middle_name,
        email=profile.email,
        phone=profile.phone,
    )


@router.get("/registrations", response_model=list[MyRegistrationResponse])
async def get_my_registrations(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MyRegistrationResponse]:
    rows = await list_my_registrations(db, user.id, user.email)
    return [
        MyRegistrationResponse(
            id=r.id,
            event_id=event.id,
            event_title=event.title,
            event_start_at=event.start_at,
            event_status=event.status,
            ticket_type_name=ticket_name,
            status=r.status,
            checked_in_at=r.checked_in_at,
            created_at=r.created_at,
        )
        for r, event, ticket_name in rows
    ]


@router.get("/events", response_model=list[EventListItem])
async def get_my_events(
    user: CurrentUser = Depends(require_roles(ROLE_ORGANIZER)),
    db: AsyncSession = Depends(get_db),
) -> list[EventListItem]:
    """Organizer cabinet: every own event regardless of status or visibility."""
    return [to_list_item(v) for v in await list_own_events(db, user.id)]


@router.put("/avatar", response_model=StatusResponse)
async def upload_avatar(
    avatar: UploadFile = File(...),
    user: CurrentUser = Depends(require_roles(ROLE_ORGANIZER)),
    db: AsyncSession = Depends(get_db),
) -> StatusResponse:
    content = await avatar.read()
    await set_organizer_avatar(db, user.id, content, avatar.content_type)
    return StatusResponse(status="updated")
