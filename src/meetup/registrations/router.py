"""Registration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meetup.auth.dependencies import CurrentUser, get_current_user, get_optional_user
from meetup.catalog.schemas import StatusResponse
from meetup.dependencies import get_db, get_email_dispatcher
from meetup.email.dispatcher import EmailDispatcher
from meetup.registrations import service
from meetup.registrations.schemas import (
    CheckInResponse,
    RegistrationCreate,
    RegistrationCreated,
    RegistrationResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Registrations"])


@router.post("/events/{event_id}/registrations", response_model=RegistrationCreated, status_code=201)
async def create_registration(
    event_id: int,
    body: RegistrationCreate,
    user: CurrentUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> RegistrationCreated:
    """Register for an event, signed in or anonymously."""
    registration_id = await service.create_registration(
        db,
        dispatcher,
        event_id,
        body,
        user_id=user.id if user else None,
    )
    return RegistrationCreated(id=registration_id)


@router.get("/events/{event_id}/registrations", response_model=list[RegistrationResponse])
async def list_event_registrations(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[RegistrationResponse]:
    """Participant list of an event, for its organizer."""
    rows = await service.list_event_registrations(db, event_id, user.id)
    return [
        RegistrationResponse(
            id=r.id,
            ticket_type_id=r.ticket_type_id,
            ticket_type_name=ticket_name,
            user_id=r.user_id,
            email=r.email,
            first_name=r.first_name,
            last_name=r.last_name,
            middle_name=r.middle_name,
            phone=r.phone,
            status=r.status,
            checked_in_at=r.checked_in_at,
            created_at=r.created_at,
        )
        for r, ticket_name in rows
    ]


@router.delete("/registrations/{registration_id}", response_model=StatusResponse)
async def cancel_registration(
    registration_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> StatusResponse:
    await service.cancel_registration(db, dispatcher, registration_id, user)
    return StatusResponse(status="cancelled")


@router.patch("/registrations/{registration_id}/check-in", response_model=CheckInResponse)
async def check_in(
    registration_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CheckInResponse:
    registration = await service.check_in(db, registration_id, user.id)
    return CheckInResponse(
        id=registration.id,
        status=registration.status,
        checked_in_at=registration.checked_in_at,
    )
