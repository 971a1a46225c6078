import json
import re
from datetime import datetime, timezone

import pytest

from stampcard.utils.codes import (
    COUPON_ALPHABET,
    CustomerCode,
    generate_coupon_code,
    generate_redemption_code,
    get_expiry_date,
    slugify,
    stamp_qr_payload,
)
from stampcard.utils.qr import generate_qr_code_url, get_restaurant_signup_url, qr_code_filename


def test_coupon_code_shape():
    for _ in range(50):
        code = generate_coupon_code()
        assert re.match(r"^[A-Z2-9]{4}-[A-Z2-9]{4}$", code)
        assert all(ch in COUPON_ALPHABET for ch in code.replace("-", ""))


def test_coupon_alphabet_skips_ambiguous_characters():
    for ch in "01IO":
        assert ch not in COUPON_ALPHABET


def test_redemption_code_is_six_digits():
    for _ in range(50):
        assert re.match(r"^\d{6}$", generate_redemption_code())


def test_expiry_date():
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    assert get_expiry_date(30, now=now) == datetime(2026, 11, 16, 12, 0, tzinfo=timezone.utc)


class TestCustomerCode:
    def test_redemption_code(self):
        parsed = CustomerCode.parse(" 123456 ")
        assert parsed.redemption_code == "123456"
        assert parsed.customer_id is None

    def test_qr_payload(self):
        parsed = CustomerCode.parse(stamp_qr_payload("c-42"))
        assert parsed.customer_id == "c-42"
        assert parsed.redemption_code is None

    @pytest.mark.parametrize(
        "raw",
        [
            "12345",
            "hello",
            json.dumps({"type": "coupon", "customerId": "c-1"}),
            json.dumps({"type": "stamp"}),
            json.dumps(["stamp"]),
        ],
    )
    def test_rejects_everything_else(self, raw):
        with pytest.raises(ValueError):
            CustomerCode.parse(raw)


def test_slugify():
    assert slugify("Zum Goldenen Anker") == "zum-goldenen-anker"
    assert slugify("  Pizza & Pasta!! ") == "pizza-pasta"
    assert slugify("???") == "restaurant"


def test_signup_and_qr_urls():
    assert get_restaurant_signup_url("zum-anker") == "http://localhost:5173/?restaurant=zum-anker"

    url = generate_qr_code_url("zum-anker")
    assert url.startswith("https://api.qrserver.com/v1/create-qr-code/?size=400x400&data=")
    assert "http%3A%2F%2Flocalhost%3A5173%2F%3Frestaurant%3Dzum-anker" in url


def test_qr_code_filename():
    assert qr_code_filename("Zum  Goldenen Anker") == "Zum-Goldenen-Anker-QR-Code.png"
