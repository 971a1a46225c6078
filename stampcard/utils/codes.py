import json
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

COUPON_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REDEMPTION_CODE_RE = re.compile(r"^\d{6}$")


def generate_coupon_code() -> str:
    """Eight unambiguous characters split in two groups, e.g. `AB3D-7XQ9`."""
    chars = [secrets.choice(COUPON_ALPHABET) for _ in range(8)]
    return "".join(chars[:4]) + "-" + "".join(chars[4:])


def generate_redemption_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def get_expiry_date(days_from_now: int = 30, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=days_from_now)


def stamp_qr_payload(customer_id: str) -> str:
    """Data encoded in the QR code a customer shows at the counter."""
    return json.dumps({"type": "stamp", "customerId": customer_id})


class CustomerCode:
    """
    Parsed staff input: either a redemption code typed by hand or the
    payload of a scanned customer QR code.
    """

    def __init__(self, redemption_code: Optional[str] = None, customer_id: Optional[str] = None):
        self.redemption_code = redemption_code
        self.customer_id = customer_id

    @classmethod
    def parse(cls, raw: str) -> "CustomerCode":
        value = raw.strip()
        if REDEMPTION_CODE_RE.match(value):
            return cls(redemption_code=value)

        try:
            data = json.loads(value)
        except ValueError as exc:
            raise ValueError("Enter a 6-digit code or scan the customer's QR code") from exc

        if not isinstance(data, dict) or data.get("type") != "stamp" or not data.get("customerId"):
            raise ValueError("Invalid QR code")
        return cls(customer_id=str(data["customerId"]))


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "restaurant"
