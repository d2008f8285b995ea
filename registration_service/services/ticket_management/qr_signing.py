"""
JWT-based QR code signing for tickets.

The QR code carries an HS256 token holding enough to show who the ticket
belongs to without a database round trip:

  tn:   ticket number (TK-<tracking>-<holder>)
  trk:  tracking number of the owning registration
  name: holder name for display on the scanner UI
  eid:  event the ticket is valid for
  iat:  issued-at timestamp
  v:    QR format version

The token is not an authority. Check-in always re-reads the stored ticket
and decides from the database.
"""

import jwt
import logging
from datetime import datetime, timezone
from typing import Optional

from registration_service.core.config import settings

logger = logging.getLogger(__name__)

QR_FORMAT_VERSION = 2


def sign_ticket_qr(
    ticket_number: str,
    tracking_number: str,
    holder_name: str,
    event_id: Optional[str] = None,
) -> str:
    """Generate the HS256-signed JWT embedded in a ticket's QR code."""
    now = datetime.now(timezone.utc)
    payload = {
        "tn": ticket_number,
        "trk": tracking_number,
        "name": holder_name,
        "eid": event_id or settings.EVENT_ID,
        "iat": int(now.timestamp()),
        "v": QR_FORMAT_VERSION,
    }
    return jwt.encode(payload, settings.QR_SIGNING_SECRET, algorithm="HS256")


def verify_ticket_qr(token: str) -> Optional[dict]:
    """Return the decoded claims, or None if the signature does not check out."""
    try:
        return jwt.decode(token, settings.QR_SIGNING_SECRET, algorithms=["HS256"])
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected QR token: {e}")
        return None


def is_jwt_qr(data: str) -> bool:
    """JWTs have exactly two dots and never contain spaces."""
    return data.count(".") == 2 and " " not in data.strip()
