from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class RestaurantOption(BaseModel):
    id: str
    name: str
    slug: str
    location: Optional[str] = None


class RestaurantChoices(BaseModel):
    restaurants: list[RestaurantOption]
    selected_id: Optional[str] = None


class Restaurant(RestaurantOption):
    owner_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    auth_id: Optional[str] = None
    is_active: bool = True


class Coupon(BaseModel):
    id: Optional[str] = None
    code: str
    discount_type: str
    discount_value: float
    expires_at: datetime
    is_redeemed: bool = False
    redeemed_at: Optional[datetime] = None


class StampProgram(BaseModel):
    name: str
    description: Optional[str] = None
    stamps_required: int
    reward_value: str


class StampCard(BaseModel):
    id: str
    current_stamps: int = 0
    total_stamps_earned: int = 0
    status: str
    program: Optional[StampProgram] = None


class StampTransaction(BaseModel):
    id: str
    created_at: datetime
    added_by_email: Optional[str] = None
    notes: Optional[str] = None


class CustomerProfile(BaseModel):
    id: str
    name: str
    redemption_code: str = ""
    stamp_qr_payload: str


class CustomerDashboard(BaseModel):
    customer: CustomerProfile
    coupons: list[Coupon]
    stamp_cards: list[StampCard]
    stamp_history: list[StampTransaction]


class CustomerSummary(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    stamp_count: int = 0


class RestaurantStats(BaseModel):
    total_customers: int = 0
    total_stamps: int = 0
    total_coupons: int = 0
    redeemed_coupons: int = 0


class RestaurantDashboard(BaseModel):
    restaurant: Restaurant
    customers: list[CustomerSummary]
    stats: RestaurantStats
    signup_url: str
    qr_code_url: str


class CustomerLookupPayload(BaseModel):
    code: str = Field(..., min_length=1, description="6-digit redemption code or scanned QR data")


class StampPayload(BaseModel):
    customer_id: str
    notes: Optional[str] = None


class StampResult(BaseModel):
    success: bool
    message: Optional[str] = None
    reward_issued: bool = False
    coupon_code: Optional[str] = None
    reward_value: Optional[str] = None


class CouponCodePayload(BaseModel):
    code: str = Field(..., min_length=1)


class CouponOwner(BaseModel):
    name: str
    email: Optional[str] = None


class CouponDetails(BaseModel):
    code: str
    discount_type: str
    discount_value: float
    expires_at: datetime
    is_redeemed: bool
    redeemed_at: Optional[datetime] = None
    customer: Optional[CouponOwner] = None


class RedeemResult(BaseModel):
    code: str
    redeemed_at: datetime
