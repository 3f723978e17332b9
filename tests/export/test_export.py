"""Tests for participant list export."""

import io

import openpyxl
import pytest
import pytest_asyncio

from meetup.db.models import ROLE_ORGANIZER
from meetup.export.router import content_disposition
from meetup.export.service import COLUMNS, XLSX_CONTENT_TYPE, ExportRow, _pdf_html, safe_filename


@pytest_asyncio.fixture
async def populated_event(client, organizer, make_event, register):
    event = await make_event(organizer, title="Workshop")
    await register(event.id, event.ticket_type_id, "zed@example.com", first_name="Zed", last_name="Young")
    kept = await register(
        event.id, event.ticket_type_id, "amy@example.com", first_name="Amy", last_name="Adams", middle_name="B."
    )
    gone = await register(event.id, event.ticket_type_id, "gone@example.com", last_name="Gone")
    await client.patch(f"/api/v1/registrations/{kept.json()['id']}/check-in", headers=organizer.headers)
    await client.delete(f"/api/v1/registrations/{gone.json()['id']}", headers=organizer.headers)
    return event


def _sheet_rows(content: bytes) -> list[tuple]:
    workbook = openpyxl.load_workbook(io.BytesIO(content))
    sheet = workbook["Participants"]
    return [tuple(cell if cell is not None else "" for cell in row) for row in sheet.iter_rows(values_only=True)]


class TestXlsxExport:
    async def test_live_registrations_only(self, client, organizer, populated_event):
        response = await client.get(
            f"/api/v1/events/{populated_event.id}/registrations/export", headers=organizer.headers
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_CONTENT_TYPE
        assert 'filename="Workshop.xlsx"' in response.headers["content-disposition"]

        rows = _sheet_rows(response.content)
        assert rows[0] == COLUMNS
        assert rows[1:] == [
            ("Adams", "Amy", "B.", "amy@example.com", "", "Yes"),
            ("Young", "Zed", "", "zed@example.com", "", "No"),
        ]

    async def test_excel_alias(self, client, organizer, populated_event):
        response = await client.get(
            f"/api/v1/events/{populated_event.id}/registrations/export",
            params={"format": "excel"},
            headers=organizer.headers,
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_CONTENT_TYPE

    async def test_empty_event_exports_header_only(self, client, organizer, make_event):
        event = await make_event(organizer)
        response = await client.get(f"/api/v1/events/{event.id}/registrations/export", headers=organizer.headers)
        assert _sheet_rows(response.content) == [COLUMNS]

    async def test_cancelled_event_still_exportable(self, client, organizer, populated_event):
        await client.post(f"/api/v1/events/{populated_event.id}/cancel", headers=organizer.headers)
        response = await client.get(
            f"/api/v1/events/{populated_event.id}/registrations/export", headers=organizer.headers
        )
        assert response.status_code == 200


class TestExportAccess:
    async def test_foreign_organizer(self, client, make_user, populated_event):
        other = await make_user("other@example.com", ROLE_ORGANIZER)
        response = await client.get(
            f"/api/v1/events/{populated_event.id}/registrations/export", headers=other.headers
        )
        assert response.status_code == 404

    async def test_requires_authentication(self, client, populated_event):
        response = await client.get(f"/api/v1/events/{populated_event.id}/registrations/export")
        assert response.status_code == 401

    @pytest.mark.parametrize("fmt", ["csv", "PDF ", "docx"])
    async def test_unsupported_format(self, client, organizer, populated_event, fmt):
        response = await client.get(
            f"/api/v1/events/{populated_event.id}/registrations/export",
            params={"format": fmt},
            headers=organizer.headers,
        )
        assert response.status_code == 422
        assert response.json()["reason"] == "validation_error"


async def test_pdf_export(client, organizer, populated_event):
    try:
        import weasyprint  # noqa: F401
    except (ImportError, OSError):
        pytest.skip("weasyprint system libraries not available")

    response = await client.get(
        f"/api/v1/events/{populated_event.id}/registrations/export",
        params={"format": "pdf"},
        headers=organizer.headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert 'filename="Workshop.pdf"' in response.headers["content-disposition"]


class TestHelpers:
    def test_pdf_markup_escapes_values(self):
        row = ExportRow("<b>Evil</b>", "A&B", "", "x@example.com", "", False)
        markup = _pdf_html("Q&A <night>", [row])
        assert "&lt;b&gt;Evil&lt;/b&gt;" in markup
        assert "A&amp;B" in markup
        assert "<h1>Q&amp;A &lt;night&gt;</h1>" in markup

    @pytest.mark.parametrize(
        ("title", "expected"),
        [("Meetup: 2026/05", "Meetup_ 2026_05"), ("  ...  ", "event"), ("Plain", "Plain")],
    )
    def test_safe_filename(self, title, expected):
        assert safe_filename(title) == expected

    def test_content_disposition_keeps_unicode_name(self):
        header = content_disposition("Встреча.xlsx")
        assert header.startswith('attachment; filename="_______.xlsx"')
        assert "filename*=UTF-8''%D0%92%D1%81%D1%82%D1%80%D0%B5%D1%87%D0%B0.xlsx" in header
