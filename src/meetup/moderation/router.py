"""Admin router: /api/v1/admin/* endpoints, admin role required."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.dependencies import require_roles
from meetup.catalog.schemas import CreatedResponse
from meetup.db.models import ROLE_ADMIN
from meetup.dependencies import get_db, get_email_dispatcher
from meetup.email.dispatcher import EmailDispatcher
from meetup.errors import InvalidStateError, NotFoundError
from meetup.moderation import service
from meetup.moderation.schemas import (
    AdminCategoryResponse,
    AdminEventResponse,
    AdminUserResponse,
    CategoryCreate,
    CategoryUpdate,
    ModerationResponse,
)
from meetup.moderation.service import ModerationOutcome

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Admin"],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)


def _respond(outcome: ModerationOutcome, target: str, target_id: int, status: str) -> ModerationResponse:
    if outcome is ModerationOutcome.NOT_FOUND:
        msg = f"{target.capitalize()} not found"
        raise NotFoundError(msg)
    if outcome is ModerationOutcome.INVALID_STATE:
        msg = f"{target.capitalize()} cannot be {status} from its current state"
        raise InvalidStateError(msg)
    return ModerationResponse(id=target_id, status=status)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("/events", response_model=list[AdminEventResponse])
async def list_events(db: AsyncSession = Depends(get_db)) -> list[AdminEventResponse]:
    return [
        AdminEventResponse(
            id=e.id,
            title=e.title,
            organizer_id=e.organizer_id,
            organizer_name=name,
            start_at=e.start_at,
            status=e.status,
            is_public=e.is_public,
        )
        for e, name in await service.list_events(db)
    ]


@router.get("/users", response_model=list[AdminUserResponse])
async def list_users(db: AsyncSession = Depends(get_db)) -> list[AdminUserResponse]:
    return [
        AdminUserResponse(
            id=u.id,
            email=u.email,
            is_blocked=u.is_blocked,
            roles=u.role_names,
            created_at=u.created_at,
        )
        for u in await service.list_users(db)
    ]


# ---------------------------------------------------------------------------
# Block / unblock
# ---------------------------------------------------------------------------


@router.patch("/events/{event_id}/block", response_model=ModerationResponse)
async def block_event(event_id: int, db: AsyncSession = Depends(get_db)) -> ModerationResponse:
    return _respond(await service.block_event(db, event_id), "event", event_id, "blocked")


@router.patch("/events/{event_id}/unblock", response_model=ModerationResponse)
async def unblock_event(event_id: int, db: AsyncSession = Depends(get_db)) -> ModerationResponse:
    return _respond(await service.unblock_event(db, event_id), "event", event_id, "active")


@router.patch("/organizers/{user_id}/block", response_model=ModerationResponse)
async def block_organizer(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> ModerationResponse:
    return _respond(await service.block_organizer(db, dispatcher, user_id), "organizer", user_id, "blocked")


@router.patch("/organizers/{user_id}/unblock", response_model=ModerationResponse)
async def unblock_organizer(user_id: int, db: AsyncSession = Depends(get_db)) -> ModerationResponse:
    return _respond(await service.unblock_organizer(db, user_id), "organizer", user_id, "active")


@router.patch("/users/{user_id}/block", response_model=ModerationResponse)
async def block_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> ModerationResponse:
    return _respond(await service.block_user(db, dispatcher, user_id), "user", user_id, "blocked")


@router.patch("/users/{user_id}/unblock", response_model=ModerationResponse)
async def unblock_user(user_id: int, db: AsyncSession = Depends(get_db)) -> ModerationResponse:
    return _respond(await service.unblock_user(db, user_id), "user", user_id, "active")


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def _category(c: object) -> AdminCategoryResponse:
    return AdminCategoryResponse.model_validate(c, from_attributes=True)


@router.get("/categories", response_model=list[AdminCategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> list[AdminCategoryResponse]:
    return [_category(c) for c in await service.list_categories(db)]


@router.post("/categories", response_model=CreatedResponse, status_code=201)
async def create_category(body: CategoryCreate, db: AsyncSession = Depends(get_db)) -> CreatedResponse:
    return CreatedResponse(id=await service.create_category(db, body))


@router.patch("/categories/{category_id}", response_model=AdminCategoryResponse)
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
) -> AdminCategoryResponse:
    return _category(await service.update_category(db, category_id, body))
