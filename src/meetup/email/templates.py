"""
Plain-text email templates.

Each template function returns (subject, text_body). Times are rendered in
UTC since the recipients' zones are unknown.
"""

from __future__ import annotations

from datetime import datetime

APP_NAME = "Meetup Reservation"


def _when(start_at: datetime) -> str:
    return start_at.strftime("%d.%m.%Y %H:%M") + " (UTC)"


def _where(location: str | None) -> str:
    return location if location else "Online"


def registration_confirmation(
    participant_name: str,
    event_title: str,
    start_at: datetime,
    location: str | None,
) -> tuple[str, str]:
    """Sent to the participant right after a successful registration."""
    subject = f"Registration confirmed: {event_title}"
    body = f"""\
Hello, {participant_name}!

You have successfully registered for "{event_title}".

Date and time: {_when(start_at)}
Location: {_where(location)}

See you there!
{APP_NAME}
"""
    return subject, body


def reminder_24h(
    participant_name: str,
    event_title: str,
    start_at: datetime,
    location: str | None,
) -> tuple[str, str]:
    subject = f"Reminder: {event_title} is tomorrow"
    body = f"""\
Hello, {participant_name}!

A reminder that "{event_title}" takes place tomorrow.

Date and time: {_when(start_at)}
Location: {_where(location)}

See you soon!
{APP_NAME}
"""
    return subject, body


def reminder_1h(
    participant_name: str,
    event_title: str,
    start_at: datetime,
    location: str | None,
) -> tuple[str, str]:
    subject = f"Starting in 1 hour: {event_title}"
    body = f"""\
Hello, {participant_name}!

"{event_title}" starts in one hour.

Date and time: {_when(start_at)}
Location: {_where(location)}

See you soon!
{APP_NAME}
"""
    return subject, body


def event_cancelled(participant_name: str, event_title: str, start_at: datetime) -> tuple[str, str]:
    """Sent to every current registrant when an event is cancelled."""
    subject = f"Event cancelled: {event_title}"
    body = f"""\
Hello, {participant_name}!

Unfortunately "{event_title}", scheduled for {_when(start_at)}, has been cancelled.

We apologise for the inconvenience.
{APP_NAME}
"""
    return subject, body


def registration_cancelled(
    organizer_name: str,
    participant_name: str,
    participant_email: str,
    event_title: str,
    start_at: datetime,
) -> tuple[str, str]:
    """Sent to the organizer when a registration is withdrawn by anyone but them."""
    subject = f"Registration cancelled: {event_title}"
    body = f"""\
Hello, {organizer_name}!

{participant_name} ({participant_email}) cancelled their registration for "{event_title}" ({_when(start_at)}).

{APP_NAME}
"""
    return subject, body
