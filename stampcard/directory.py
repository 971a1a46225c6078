import logging
from datetime import datetime
from typing import Any, Optional, Protocol

from supabase import AsyncClient

logger = logging.getLogger(__name__)

COUPON_DETAIL_COLUMNS = (
    "code, discount_type, discount_value, expires_at, is_redeemed, redeemed_at, "
    "customer:customers(name, email)"
)
STAMP_CARD_COLUMNS = (
    "id, current_stamps, total_stamps_earned, status, "
    "program:stamp_programs(name, description, stamps_required, reward_value)"
)


class DirectoryError(Exception):
    pass


def _embed_one(row: dict, key: str) -> dict:
    # PostgREST returns a to-one embed as a list when it cannot infer the relation
    value = row.get(key)
    if isinstance(value, list):
        return {**row, key: value[0] if value else None}
    return row


class AccountDirectory(Protocol):
    """The two lookups the session router relies on."""

    async def find_restaurant_by_principal(self, user_id: str) -> Optional[dict]: ...

    async def find_customer_by_principal(self, user_id: str) -> Optional[dict]: ...


class SupabaseAccountDirectory:
    """
    Account directory and loyalty data access over the Supabase tables
    `restaurants`, `customers`, `coupons`, `stamp_programs`, `stamp_cards`
    and `stamps`.
    """

    def __init__(self, client: AsyncClient):
        self._client = client

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except Exception as exc:
            raise DirectoryError(f"{action} failed: {exc}") from exc

    async def _first(self, query, action: str) -> Optional[dict]:
        response = await self._execute(query.limit(1), action)
        if response.data and len(response.data) > 0:
            return response.data[0]
        return None

    async def _insert(self, table: str, row: dict) -> dict:
        response = await self._execute(self._client.table(table).insert(row), f"insert into {table}")
        if not response.data:
            raise DirectoryError(f"insert into {table} returned no row")
        return response.data[0]

    # Account lookups

    async def find_restaurant_by_principal(self, user_id: str, columns: str = "id") -> Optional[dict]:
        query = self._client.table("restaurants").select(columns).eq("auth_id", user_id)
        return await self._first(query, "restaurant lookup")

    async def find_customer_by_principal(self, user_id: str, columns: str = "id") -> Optional[dict]:
        query = self._client.table("customers").select(columns).eq("user_id", user_id)
        return await self._first(query, "customer lookup")

    # Signup

    async def list_active_restaurants(self) -> list[dict]:
        query = (
            self._client.table("restaurants")
            .select("id, name, slug, location")
            .eq("is_active", True)
            .order("name")
        )
        response = await self._execute(query, "restaurant listing")
        return response.data or []

    async def create_customer(self, row: dict) -> dict:
        return await self._insert("customers", row)

    async def create_coupon(self, row: dict) -> dict:
        return await self._insert("coupons", row)

    async def find_active_stamp_program(self, restaurant_id: str) -> Optional[dict]:
        query = (
            self._client.table("stamp_programs")
            .select("id")
            .eq("restaurant_id", restaurant_id)
            .eq("is_active", True)
        )
        return await self._first(query, "stamp program lookup")

    async def create_stamp_card(self, customer_id: str, program_id: str) -> dict:
        return await self._insert(
            "stamp_cards",
            {
                "customer_id": customer_id,
                "program_id": program_id,
                "current_stamps": 0,
                "total_stamps_earned": 0,
                "status": "active",
            },
        )

    async def create_restaurant(self, row: dict) -> dict:
        return await self._insert("restaurants", row)

    async def create_stamp_program(self, row: dict) -> dict:
        return await self._insert("stamp_programs", row)

    # Customer dashboard

    async def list_coupons(self, customer_id: str) -> list[dict]:
        query = (
            self._client.table("coupons")
            .select("*")
            .eq("customer_id", customer_id)
            .order("created_at", desc=True)
        )
        response = await self._execute(query, "coupon listing")
        return response.data or []

    async def list_active_stamp_cards(self, customer_id: str) -> list[dict]:
        query = (
            self._client.table("stamp_cards")
            .select(STAMP_CARD_COLUMNS)
            .eq("customer_id", customer_id)
            .eq("status", "active")
        )
        response = await self._execute(query, "stamp card listing")
        return [_embed_one(card, "program") for card in response.data or []]

    async def list_recent_stamps(self, customer_id: str, limit: int = 20) -> list[dict]:
        query = (
            self._client.table("stamps")
            .select("id, created_at, added_by_email, notes")
            .eq("customer_id", customer_id)
            .order("created_at", desc=True)
            .limit(limit)
        )
        response = await self._execute(query, "stamp history")
        return response.data or []

    # Restaurant dashboard

    async def list_customers(self, restaurant_id: str) -> list[dict]:
        query = (
            self._client.table("customers")
            .select("*")
            .eq("restaurant_id", restaurant_id)
            .order("created_at", desc=True)
        )
        response = await self._execute(query, "customer listing")
        return response.data or []

    async def count_stamps(self, restaurant_id: str, customer_id: Optional[str] = None) -> int:
        query = self._client.table("stamps").select("id", count="exact").eq("restaurant_id", restaurant_id)
        if customer_id:
            query = query.eq("customer_id", customer_id)
        response = await self._execute(query, "stamp count")
        return response.count or 0

    async def count_coupons(self, restaurant_id: str, redeemed_only: bool = False) -> int:
        query = self._client.table("coupons").select("id", count="exact").eq("restaurant_id", restaurant_id)
        if redeemed_only:
            query = query.eq("is_redeemed", True)
        response = await self._execute(query, "coupon count")
        return response.count or 0

    async def find_customer_by_redemption_code(self, code: str, restaurant_id: str) -> Optional[dict]:
        query = (
            self._client.table("customers")
            .select("*")
            .eq("redemption_code", code)
            .eq("restaurant_id", restaurant_id)
        )
        return await self._first(query, "redemption code lookup")

    async def find_customer_by_id(self, customer_id: str) -> Optional[dict]:
        query = self._client.table("customers").select("*").eq("id", customer_id)
        return await self._first(query, "customer lookup")

    async def add_stamp(self, customer_id: str, restaurant_auth_id: str, notes: Optional[str]) -> dict[str, Any]:
        """
        Adds one stamp through the `add_stamp_to_customer` procedure, which
        also issues the reward coupon when the card is full.
        """
        query = self._client.rpc(
            "add_stamp_to_customer",
            {
                "p_customer_id": customer_id,
                "p_restaurant_auth_id": restaurant_auth_id,
                "p_notes": notes or None,
            },
        )
        response = await self._execute(query, "add_stamp_to_customer")
        return response.data or {}

    async def find_coupon(self, code: str, restaurant_id: str) -> Optional[dict]:
        query = (
            self._client.table("coupons")
            .select(COUPON_DETAIL_COLUMNS)
            .eq("code", code)
            .eq("restaurant_id", restaurant_id)
        )
        coupon = await self._first(query, "coupon lookup")
        return _embed_one(coupon, "customer") if coupon is not None else None

    async def redeem_coupon(self, code: str, restaurant_id: str, redeemed_at: datetime) -> bool:
        """Marks the coupon redeemed. Returns False when it already was."""
        query = (
            self._client.table("coupons")
            .update({"is_redeemed": True, "redeemed_at": redeemed_at.isoformat()})
            .eq("code", code)
            .eq("restaurant_id", restaurant_id)
            .eq("is_redeemed", False)
        )
        response = await self._execute(query, "coupon redemption")
        return bool(response.data)
