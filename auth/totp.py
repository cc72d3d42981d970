"""
auth/totp.py -- TOTP (RFC 6238) secrets, enrollment URIs and code verification.

Compatible with Google Authenticator, Authy and any standard TOTP app:
30-second steps, 6 digits, HMAC-SHA1.

Tolerance windows are counted in steps either side of "now":
  LOGIN_WINDOW      = 2  (+/- 60 s) -- login with 2FA enabled
  ENROLLMENT_WINDOW = 1  (+/- 30 s) -- confirming a freshly scanned secret

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

import base64
import re
from datetime import datetime
from io import BytesIO
from typing import Optional

import pyotp
import qrcode

from auth.models import TotpEnrollment

LOGIN_WINDOW = 2
ENROLLMENT_WINDOW = 1

# 32 base32 characters = 160 bits = 20 random bytes.
SECRET_LENGTH = 32
DIGITS = 6
STEP_SECONDS = 30

_CODE_RE = re.compile(r"[0-9]{6}")


def generate_secret(label: str, issuer: str) -> TotpEnrollment:
    """Create a fresh shared secret and everything an authenticator app needs.

    Args:
        label:  Account name shown in the app (the user's email).
        issuer: Issuer name shown in the app.

    Returns:
        TotpEnrollment with the base32 secret (for manual entry), the
        otpauth:// provisioning URI, and a PNG QR code of that URI as a
        data URL.
    """
    secret = pyotp.random_base32(length=SECRET_LENGTH)
    uri = pyotp.TOTP(secret, digits=DIGITS, interval=STEP_SECONDS).provisioning_uri(
        name=label, issuer_name=issuer
    )
    return TotpEnrollment(secret=secret, enrollment_uri=uri, qr_code=_qr_data_url(uri))


def verify(secret: str, code: str, tolerance_steps: int = LOGIN_WINDOW, for_time: Optional[datetime] = None) -> bool:
    """Return True if code matches the secret within +/- tolerance_steps.

    Anything that is not exactly six ASCII digits is rejected up front.
    A malformed secret is treated as a mismatch.
    """
    if not code or not _CODE_RE.fullmatch(code):
        return False
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=STEP_SECONDS)
    try:
        return totp.verify(code, for_time=for_time, valid_window=tolerance_steps)
    except (TypeError, ValueError):
        # binascii.Error (bad base32) is a ValueError subclass
        return False


def current_code(secret: str, for_time: Optional[datetime] = None) -> str:
    """Return the code an authenticator would display at for_time (default now)."""
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=STEP_SECONDS)
    if for_time is None:
        return totp.now()
    return totp.at(for_time)


def _qr_data_url(uri: str) -> str:
    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"
