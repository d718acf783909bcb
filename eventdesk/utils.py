import io
import re
import uuid

import qrcode

TOKEN_LENGTH = 12

_SLUG_INVALID = re.compile(r"[^a-z0-9 -]")
_SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def generate_slug(name: str) -> str:
    """'My Event! 2024' → 'my-event-2024'."""
    slug = _SLUG_INVALID.sub("", name.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def is_valid_slug(slug: str) -> bool:
    return bool(_SLUG_PATTERN.match(slug))


def generate_token() -> str:
    # Uniqueness comes from uuid4; the unique index on tickets.token catches the rest
    return uuid.uuid4().hex[:TOKEN_LENGTH].upper()


def registration_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/register?token={token}"


def make_qr_png_bytes(payload: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
