from __future__ import annotations

import io
import json
import secrets
from typing import Optional, Tuple

import qrcode

from ..core.constants import CHECK_IN_TOKEN_BYTES
from ..core.exceptions import ValidationError
from .model import AttendanceSession


def new_check_in_token() -> str:
    return secrets.token_urlsafe(CHECK_IN_TOKEN_BYTES)


def build_check_in_payload(session: AttendanceSession) -> str:
    """What the QR code encodes: enough for a student device to call check-in."""

    return json.dumps(
        {
            "session_id": session.session_id,
            "class_id": session.class_id,
            "token": session.check_in_token,
        },
        separators=(",", ":"),
    )


def parse_check_in_payload(raw: str) -> Tuple[int, Optional[str]]:
    """Decode scanned QR text into (session_id, token)."""

    try:
        data = json.loads(raw)
        return int(data["session_id"]), data.get("token")
    except (TypeError, ValueError, KeyError):
        raise ValidationError("Invalid QR code format")


def render_qr_png(payload: str) -> io.BytesIO:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return buf
