import base64
import io
import re
from datetime import datetime, timezone

import pytest
from PIL import Image
from pypdf import PdfReader

from insign.services import pdf_service
from tests.helpers import make_pdf


def _png_data_url(size=(60, 20)):
    buf = io.BytesIO()
    Image.new("RGBA", size, (0, 0, 0, 255)).save(buf, format="PNG")
    return pdf_service.PNG_DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def test_extract_text_plain_and_binary():
    assert pdf_service.extract_text(b"  hello world \n", "text/plain") == "hello world"
    assert pdf_service.extract_text(b"   ", "text/plain") is None
    assert pdf_service.extract_text(b"\x89PNG", "image/png") is None
    assert pdf_service.extract_text(b"data", None) is None


def test_extract_text_from_pdf():
    text = pdf_service.extract_text(make_pdf(pages=2, text="Master agreement"), pdf_service.PDF_MIME_TYPE)
    assert "Master agreement page 1" in text
    assert "Master agreement page 2" in text


def test_extract_text_from_broken_pdf_returns_none():
    assert pdf_service.extract_text(b"not a pdf at all", pdf_service.PDF_MIME_TYPE) is None


def test_audit_id_format():
    audit_id = pdf_service.generate_audit_id()
    assert re.fullmatch(r"AUD-[0-9A-Z]+-[0-9A-Z]{6}", audit_id)
    assert audit_id != pdf_service.generate_audit_id()


def test_footer_text():
    assert pdf_service.footer_text("AUD-1-ABCDEF", 0, 3) == "Document ID: AUD-1-ABCDEF | Page 1 of 3"


def test_decode_png_accepts_data_url_and_rejects_garbage():
    image = pdf_service.decode_png(_png_data_url())
    assert image is not None
    assert image.size == (60, 20)
    assert pdf_service.decode_png("data:image/png;base64,@@@@") is None
    assert pdf_service.decode_png(base64.b64encode(b"plain text").decode()) is None


def test_seal_pdf_stamps_every_page():
    source = make_pdf(pages=2)
    stamps = [
        pdf_service.SignatureStamp(
            page_number=1, x=72, y=100, width=200, height=50,
            field_type="signature", signature_type="drawn", data=_png_data_url(),
            signed_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
        ),
        pdf_service.SignatureStamp(
            page_number=2, x=72, y=200, width=150, height=30,
            field_type="text", signature_type="typed", data="Jane Doe",
        ),
        pdf_service.SignatureStamp(
            page_number=9, x=0, y=0, width=10, height=10,
            field_type="signature", signature_type="typed", data="ignored",
        ),
    ]
    sealed = pdf_service.seal_pdf(source, stamps, "AUD-TEST-ABC123")

    reader = PdfReader(io.BytesIO(sealed))
    assert len(reader.pages) == 2
    first = reader.pages[0].extract_text()
    second = reader.pages[1].extract_text()
    assert "Document ID: AUD-TEST-ABC123 | Page 1 of 2" in first
    assert "Page 2 of 2" in second
    assert "Jane Doe" in second


def test_seal_pdf_rejects_non_pdf():
    with pytest.raises(pdf_service.PdfSealError):
        pdf_service.seal_pdf(b"plain text", [], "AUD-X-000000")


def test_checkbox_stamp_text():
    stamp = pdf_service.SignatureStamp(1, 0, 0, 10, 10, "checkbox", "typed", "true")
    assert pdf_service._stamp_text(stamp) == "X"
    stamp.data = "false"
    assert pdf_service._stamp_text(stamp) == ""


def test_signed_caption_only_under_tall_fields():
    signed_at = datetime(2025, 3, 4, tzinfo=timezone.utc)
    stamps = [
        pdf_service.SignatureStamp(
            page_number=1, x=72, y=100, width=200, height=50,
            field_type="signature", signature_type="typed", data="Jane Doe", signed_at=signed_at,
        ),
        pdf_service.SignatureStamp(
            page_number=2, x=72, y=100, width=200, height=30,
            field_type="signature", signature_type="typed", data="John Roe", signed_at=signed_at,
        ),
    ]
    reader = PdfReader(io.BytesIO(pdf_service.seal_pdf(make_pdf(pages=2), stamps, "AUD-TEST-CAP001")))
    assert "Signed: Mar 04, 2025" in reader.pages[0].extract_text()
    assert "Signed:" not in reader.pages[1].extract_text()
