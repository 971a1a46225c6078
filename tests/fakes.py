"""In-memory stand-ins for the Supabase auth provider and account directory."""

import asyncio
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from stampcard.auth_provider import (
    SIGNED_IN,
    SIGNED_OUT,
    AuthProviderError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
)
from stampcard.directory import DirectoryError
from stampcard.schemas.auth import AuthSession


class FakeAuthProvider:
    def __init__(self):
        self.session: Optional[AuthSession] = None
        self.accounts: dict[str, tuple[str, str]] = {}
        self.listeners: list = []
        self.sign_out_calls = 0
        self.session_error = False

    def register(self, email: str, password: str = "secret123", user_id: Optional[str] = None) -> str:
        user_id = user_id or uuid4().hex
        self.accounts[email] = (password, user_id)
        return user_id

    def login_as(self, user_id: str, email: str = "someone@example.com") -> AuthSession:
        self.session = AuthSession(user_id=user_id, email=email, access_token="token")
        return self.session

    def emit(self, event: str, session: Optional[AuthSession]) -> None:
        for listener in list(self.listeners):
            listener(event, session)

    async def get_current_session(self) -> Optional[AuthSession]:
        if self.session_error:
            raise AuthProviderError("auth backend unavailable")
        return self.session

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentialsError("Invalid e-mail or password")
        session = self.login_as(account[1], email)
        self.emit(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, attributes: dict[str, Any]) -> AuthSession:
        if email in self.accounts:
            raise EmailAlreadyRegisteredError("This e-mail is already registered, please log in")
        user_id = self.register(email, password)
        session = self.login_as(user_id, email)
        self.emit(SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.session = None
        self.emit(SIGNED_OUT, None)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)


class FakeDirectory:
    def __init__(self):
        self.restaurants: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.coupons: list[dict] = []
        self.stamp_programs: list[dict] = []
        self.stamp_cards: list[dict] = []
        self.stamps: list[dict] = []
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0
        self.failing: set[str] = set()
        self.stamp_result: dict = {"success": True, "message": "Stamp added", "reward_issued": False}

    async def _enter(self, name: str, arg: str = "") -> None:
        self.calls.append((name, arg))
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.failing:
            raise DirectoryError(f"{name} failed")

    # Seeding helpers

    def add_restaurant(self, user_id: str, name: str = "Trattoria Roma", slug: str = "trattoria-roma") -> dict:
        row = {
            "id": f"r-{len(self.restaurants) + 1}",
            "name": name,
            "slug": slug,
            "location": "Berlin",
            "owner_name": "Luca",
            "email": "luca@example.com",
            "phone": None,
            "auth_id": user_id,
            "is_active": True,
        }
        self.restaurants[user_id] = row
        return row

    def add_customer(self, user_id: str, restaurant_id: str = "r-1", name: str = "Maria Schmidt",
                     redemption_code: str = "123456") -> dict:
        row = {
            "id": f"c-{len(self.customers) + 1}",
            "name": name,
            "email": "maria@example.com",
            "phone": "+49 151 12345678",
            "restaurant_id": restaurant_id,
            "user_id": user_id,
            "redemption_code": redemption_code,
            "created_at": "2026-10-01T10:00:00+00:00",
        }
        self.customers[user_id] = row
        return row

    # Account lookups

    async def find_restaurant_by_principal(self, user_id: str, columns: str = "id") -> Optional[dict]:
        await self._enter("find_restaurant_by_principal", user_id)
        return self.restaurants.get(user_id)

    async def find_customer_by_principal(self, user_id: str, columns: str = "id") -> Optional[dict]:
        await self._enter("find_customer_by_principal", user_id)
        return self.customers.get(user_id)

    # Signup

    async def list_active_restaurants(self) -> list[dict]:
        await self._enter("list_active_restaurants")
        rows = [r for r in self.restaurants.values() if r["is_active"]]
        return sorted(rows, key=lambda r: r["name"])

    async def create_customer(self, row: dict) -> dict:
        await self._enter("create_customer", row["user_id"])
        row = {**row, "id": f"c-{len(self.customers) + 1}"}
        self.customers[row["user_id"]] = row
        return row

    async def create_coupon(self, row: dict) -> dict:
        await self._enter("create_coupon", row["code"])
        self.coupons.append(row)
        return row

    async def find_active_stamp_program(self, restaurant_id: str) -> Optional[dict]:
        await self._enter("find_active_stamp_program", restaurant_id)
        for program in self.stamp_programs:
            if program["restaurant_id"] == restaurant_id and program["is_active"]:
                return program
        return None

    async def create_stamp_card(self, customer_id: str, program_id: str) -> dict:
        await self._enter("create_stamp_card", customer_id)
        card = {
            "id": f"card-{len(self.stamp_cards) + 1}",
            "customer_id": customer_id,
            "program_id": program_id,
            "current_stamps": 0,
            "total_stamps_earned": 0,
            "status": "active",
        }
        self.stamp_cards.append(card)
        return card

    async def create_restaurant(self, row: dict) -> dict:
        await self._enter("create_restaurant", row["auth_id"])
        row = {**row, "id": f"r-{len(self.restaurants) + 1}"}
        self.restaurants[row["auth_id"]] = row
        return row

    async def create_stamp_program(self, row: dict) -> dict:
        await self._enter("create_stamp_program", row["restaurant_id"])
        row = {**row, "id": f"p-{len(self.stamp_programs) + 1}"}
        self.stamp_programs.append(row)
        return row

    # Customer dashboard

    async def list_coupons(self, customer_id: str) -> list[dict]:
        await self._enter("list_coupons", customer_id)
        return [c for c in self.coupons if c.get("customer_id") == customer_id]

    async def list_active_stamp_cards(self, customer_id: str) -> list[dict]:
        await self._enter("list_active_stamp_cards", customer_id)
        return [c for c in self.stamp_cards if c["customer_id"] == customer_id and c["status"] == "active"]

    async def list_recent_stamps(self, customer_id: str, limit: int = 20) -> list[dict]:
        await self._enter("list_recent_stamps", customer_id)
        return [s for s in self.stamps if s["customer_id"] == customer_id][:limit]

    # Restaurant dashboard

    async def list_customers(self, restaurant_id: str) -> list[dict]:
        await self._enter("list_customers", restaurant_id)
        return [c for c in self.customers.values() if c["restaurant_id"] == restaurant_id]

    async def count_stamps(self, restaurant_id: str, customer_id: Optional[str] = None) -> int:
        await self._enter("count_stamps", restaurant_id)
        return sum(
            1
            for s in self.stamps
            if s["restaurant_id"] == restaurant_id and (customer_id is None or s["customer_id"] == customer_id)
        )

    async def count_coupons(self, restaurant_id: str, redeemed_only: bool = False) -> int:
        await self._enter("count_coupons", restaurant_id)
        return sum(
            1
            for c in self.coupons
            if c.get("restaurant_id") == restaurant_id and (not redeemed_only or c.get("is_redeemed"))
        )

    async def find_customer_by_redemption_code(self, code: str, restaurant_id: str) -> Optional[dict]:
        await self._enter("find_customer_by_redemption_code", code)
        for customer in self.customers.values():
            if customer["redemption_code"] == code and customer["restaurant_id"] == restaurant_id:
                return customer
        return None

    async def find_customer_by_id(self, customer_id: str) -> Optional[dict]:
        await self._enter("find_customer_by_id", customer_id)
        for customer in self.customers.values():
            if customer["id"] == customer_id:
                return customer
        return None

    async def add_stamp(self, customer_id: str, restaurant_auth_id: str, notes: Optional[str]) -> dict:
        await self._enter("add_stamp", customer_id)
        return self.stamp_result

    async def find_coupon(self, code: str, restaurant_id: str) -> Optional[dict]:
        await self._enter("find_coupon", code)
        for coupon in self.coupons:
            if coupon["code"] == code and coupon.get("restaurant_id") == restaurant_id:
                return coupon
        return None

    async def redeem_coupon(self, code: str, restaurant_id: str, redeemed_at: datetime) -> bool:
        await self._enter("redeem_coupon", code)
        for coupon in self.coupons:
            if (
                coupon["code"] == code
                and coupon.get("restaurant_id") == restaurant_id
                and not coupon.get("is_redeemed")
            ):
                coupon["is_redeemed"] = True
                coupon["redeemed_at"] = redeemed_at.isoformat()
                return True
        return False
