"""Keyset pagination for the public event listing.

Cursor encodes the last row's (sort value, id) as URL-safe base64 JSON. The
next page starts strictly after that pair in the active sort direction, so
pages never overlap on a static dataset.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import Select, and_, or_

from meetup.db.models import Event
from meetup.errors import InvalidInputError

MAX_PAGE_SIZE = 100


class EventSort(str, Enum):
    START_AT = "start_at"  # ascending
    CREATED_AT = "created_at"  # newest first

    @classmethod
    def parse(cls, value: str | None) -> EventSort:
        """Accept camelCase or snake_case; anything unknown falls back to start time."""
        if value and value.strip().lower() in ("createdat", "created_at"):
            return cls.CREATED_AT
        return cls.START_AT


@dataclass(frozen=True)
class Cursor:
    value: datetime
    id: int


def clamp_limit(limit: int | None, default: int = 20) -> int:
    if limit is None:
        limit = default
    return max(1, min(limit, MAX_PAGE_SIZE))


def encode_cursor(value: datetime, row_id: int) -> str:
    """Encode a cursor from the last row of a page."""
    payload = {"v": value.isoformat(), "id": row_id}
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_cursor(cursor: str) -> Cursor:
    """Decode a cursor produced by ``encode_cursor``.

    Raises:
        InvalidInputError: If the cursor is malformed.
    """
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode()))
        value = datetime.fromisoformat(data["v"])
        row_id = int(data["id"])
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        msg = "Invalid cursor"
        raise InvalidInputError(msg) from e
    return Cursor(value=value, id=row_id)


def sort_value(event: Event, sort: EventSort) -> datetime:
    return event.created_at if sort is EventSort.CREATED_AT else event.start_at


def apply_sort_and_cursor(query: Select, sort: EventSort, cursor: str | None) -> Select:  # type: ignore[type-arg]
    """Order the event query and, given a cursor, keep only rows after it."""
    if sort is EventSort.CREATED_AT:
        query = query.order_by(Event.created_at.desc(), Event.id.desc())
    else:
        query = query.order_by(Event.start_at.asc(), Event.id.asc())

    if cursor is None:
        return query

    decoded = decode_cursor(cursor)
    if sort is EventSort.CREATED_AT:
        return query.where(
            or_(
                Event.created_at < decoded.value,
                and_(Event.created_at == decoded.value, Event.id < decoded.id),
            )
        )
    return query.where(
        or_(
            Event.start_at > decoded.value,
            and_(Event.start_at == decoded.value, Event.id > decoded.id),
        )
    )
