"""
Quote document tests: PDF bytes, content-addressed locations and the
printed-field snapshot.
"""

from types import SimpleNamespace
from datetime import datetime

import pytest

from printquote.errors import RenderingError
from printquote.pdf_generator import (
    PdfRenderer,
    _fmt,
    _safe,
    company_document_data,
    generate_quote_pdf,
    quote_document_data,
    render_fingerprint,
    uri_to_path,
)


def _quote(**overrides):
    item = SimpleNamespace(name="Desk organiser", quantity=2, unit_value=225.6, total_value=451.2)
    data = dict(
        code="20261019.001",
        client_name="Ana Souza",
        status="draft",
        created_at=datetime(2026, 10, 19, 9, 30),
        planned_start=None,
        planned_delivery=datetime(2026, 10, 30),
        payment_terms="50% upfront",
        delivery_address="Rua Augusta, 100",
        project_summary="Two desk organisers",
        notes="Matte finish — no logo",
        items=[item],
        project_type="scan",
        project_fee=200.0,
        selected_fees=[SimpleNamespace(name="Rush", amount=50.0)],
        discount=10.0,
        subtotal=701.2,
        total=691.2,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


COMPANY = {"name": "Vortex Projetos", "document": "12.345.678/0001-90", "email": "hello@vortex.example"}


def test_fmt_brazilian_currency():
    assert _fmt(1234.5) == "R$ 1.234,50"
    assert _fmt(None) == "R$ 0,00"


def test_safe_replaces_non_latin1():
    assert _safe("a — b") == "a  -  b"
    assert _safe(None) == ""


def test_generate_quote_pdf_returns_pdf_bytes():
    data = quote_document_data(_quote())
    pdf = generate_quote_pdf(data, company_document_data(COMPANY))
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_document_data_excludes_status():
    assert "status" not in quote_document_data(_quote())


def test_fingerprint_ignores_status_changes():
    a = quote_document_data(_quote(status="draft"))
    b = quote_document_data(_quote(status="accepted"))
    company = company_document_data(COMPANY)
    assert render_fingerprint(a, company) == render_fingerprint(b, company)


def test_fingerprint_tracks_company_profile():
    data = quote_document_data(_quote())
    assert render_fingerprint(data, company_document_data(COMPANY)) != render_fingerprint(
        data, company_document_data({**COMPANY, "phone": "+55 11 5555-0000"})
    )


def test_missing_company_profile_uses_configured_name():
    assert company_document_data(None) == {"name": "Vortex Projetos"}


def test_renderer_is_deterministic(tmp_path):
    renderer = PdfRenderer(str(tmp_path))
    first = renderer.render(_quote(), COMPANY)
    second = renderer.render(_quote(), COMPANY)
    assert first == second
    assert first.file_name == "quote-20261019.001.pdf"
    assert first.uri.startswith("file://")
    assert list(tmp_path.glob("*/quote-20261019.001.pdf"))


def test_renderer_moves_when_total_changes(tmp_path):
    renderer = PdfRenderer(str(tmp_path))
    assert renderer.render(_quote(), COMPANY).uri != renderer.render(_quote(total=500.0), COMPANY).uri


def test_renderer_wraps_failures(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    with pytest.raises(RenderingError):
        PdfRenderer(str(blocker)).render(_quote(), COMPANY)


def test_discard_removes_file_and_empty_directory(tmp_path):
    renderer = PdfRenderer(str(tmp_path))
    document = renderer.render(_quote(), COMPANY)
    path = uri_to_path(document.uri)

    assert renderer.discard(document.uri) is True
    assert not path.exists()
    assert not path.parent.exists()
    assert renderer.discard(document.uri) is False


def test_discard_leaves_files_outside_output_dir(tmp_path):
    outside = tmp_path / "elsewhere.pdf"
    outside.write_bytes(b"%PDF")
    renderer = PdfRenderer(str(tmp_path / "artifacts"))

    assert renderer.discard(outside.as_uri()) is False
    assert outside.exists()
    assert renderer.discard(None) is False
