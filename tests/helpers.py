"""Shared helpers for the test suite."""
import io

DEFAULT_PASSWORD = "Str0ng!Passw0rd"


def auth_headers(user):
    """Identity-proxy headers resolved by get_current_user_context."""
    return {"x-auth-request-email": user.email}


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def make_pdf(pages=1, text="Service agreement"):
    """A small real PDF built with reportlab."""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for index in range(pages):
        c.drawString(72, 720, f"{text} page {index + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()
