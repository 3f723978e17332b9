"""
Participant list export.

``render_xlsx`` and ``render_pdf`` are pure functions over prepared rows;
``export_registrations`` adds the ownership check and picks the renderer.
"""

from __future__ import annotations

import html
import io
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import openpyxl
import structlog
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from meetup.db.models import REGISTRATION_CHECKED_IN
from meetup.errors import InvalidInputError
from meetup.registrations.service import get_owned_event, list_event_registrations

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

COLUMNS = ("Last name", "First name", "Middle name", "Email", "Phone", "Checked in")

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_CONTENT_TYPE = "application/pdf"

_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f<>:"/\\|?*]')


@dataclass(frozen=True)
class ExportRow:
    last_name: str
    first_name: str
    middle_name: str
    email: str
    phone: str
    checked_in: bool

    def cells(self) -> tuple[str, ...]:
        return (
            self.last_name,
            self.first_name,
            self.middle_name,
            self.email,
            self.phone,
            "Yes" if self.checked_in else "No",
        )


def safe_filename(title: str, default: str = "event") -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", title).strip(" .")
    return cleaned or default


def render_xlsx(title: str, rows: Sequence[ExportRow]) -> bytes:
    """Single-sheet workbook with a bold header row."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Participants"

    sheet.append(list(COLUMNS))
    header_font = Font(bold=True)
    for cell in sheet[1]:
        cell.font = header_font

    for row in rows:
        sheet.append(list(row.cells()))

    # Auto-adjust column widths
    for index, header in enumerate(COLUMNS, start=1):
        longest = max([len(header), *(len(r.cells()[index - 1]) for r in rows)])
        sheet.column_dimensions[get_column_letter(index)].width = min(longest + 2, 50)

    workbook.properties.title = title
    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def _pdf_html(title: str, rows: Sequence[ExportRow]) -> str:
    header = "".join(f"<th>{html.escape(c)}</th>" for c in COLUMNS)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(c)}</td>" for c in row.cells()) + "</tr>" for row in rows
    )
    return f"""\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
  @page {{ size: A4 landscape; margin: 1.5cm; }}
  body {{ font-family: sans-serif; font-size: 10pt; }}
  h1 {{ font-size: 14pt; margin-bottom: 10pt; }}
  table {{ border-collapse: collapse; width: 100%; }}
  th, td {{ border: 1px solid #444; padding: 3pt 5pt; text-align: left; }}
  th {{ background: #eee; }}
  thead {{ display: table-header-group; }}
</style>
</head>
<body>
<h1>{html.escape(title)}</h1>
<table><thead><tr>{header}</tr></thead><tbody>{body}</tbody></table>
</body>
</html>"""


def render_pdf(title: str, rows: Sequence[ExportRow]) -> bytes:
    """Landscape table rendered by weasyprint; the header repeats on every page."""
    # weasyprint pulls in pango/cairo at import time, so only load it when needed.
    from weasyprint import HTML

    return HTML(string=_pdf_html(title, rows)).write_pdf()


async def export_registrations(
    db: AsyncSession,
    event_id: int,
    organizer_id: int,
    fmt: str,
) -> tuple[bytes, str, str]:
    """
    Export the live registrations of an owned event.

    Returns:
        Tuple of (content, content_type, filename).

    Raises:
        NotFoundError: The caller does not organize the event.
        InvalidInputError: Unsupported format.
    """
    fmt = fmt.lower()
    if fmt not in ("xlsx", "excel", "pdf"):
        msg = f"Unsupported export format: {fmt}"
        raise InvalidInputError(msg)

    event = await get_owned_event(db, event_id, organizer_id)
    registrations = await list_event_registrations(db, event_id, organizer_id, include_cancelled=False)
    rows = [
        ExportRow(
            last_name=r.last_name,
            first_name=r.first_name,
            middle_name=r.middle_name or "",
            email=r.email,
            phone=r.phone or "",
            checked_in=r.status == REGISTRATION_CHECKED_IN,
        )
        for r, _ticket_name in registrations
    ]

    base_name = safe_filename(event.title)
    if fmt == "pdf":
        content, content_type, filename = render_pdf(event.title, rows), PDF_CONTENT_TYPE, f"{base_name}.pdf"
    else:
        content, content_type, filename = render_xlsx(event.title, rows), XLSX_CONTENT_TYPE, f"{base_name}.xlsx"

    logger.info("registrations_exported", event_id=event_id, format=fmt, rows=len(rows))
    return content, content_type, filename
