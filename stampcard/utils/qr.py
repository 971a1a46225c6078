import logging
import re
from urllib.parse import urlencode

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)


class QRCodeError(Exception):
    pass


def get_restaurant_signup_url(restaurant_slug: str) -> str:
    base_url = get_settings().PUBLIC_BASE_URL.rstrip("/")
    return f"{base_url}/?{urlencode({'restaurant': restaurant_slug})}"


def generate_qr_code_url(restaurant_slug: str) -> str:
    settings = get_settings()
    query = urlencode({"size": settings.QR_CODE_SIZE, "data": get_restaurant_signup_url(restaurant_slug)})
    return f"{settings.QR_SERVICE_URL}?{query}"


def qr_code_filename(restaurant_name: str) -> str:
    return re.sub(r"\s+", "-", restaurant_name.strip()) + "-QR-Code.png"


async def download_qr_code(restaurant_slug: str) -> bytes:
    """
    Fetches the PNG for a restaurant's signup QR code from the QR service.
    """
    url = generate_qr_code_url(restaurant_slug)
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("QR code download failed for %s: %s", restaurant_slug, exc)
        raise QRCodeError("QR code could not be downloaded") from exc
    return response.content
