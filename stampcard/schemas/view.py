from enum import Enum
from typing import Optional
from pydantic import BaseModel


class ViewState(str, Enum):
    SIGNUP = "signup"
    LOGIN = "login"
    SUCCESS = "success"
    CUSTOMER_DASHBOARD = "customer-dashboard"
    RESTAURANT_SIGNUP = "restaurant-signup"
    RESTAURANT_LOGIN = "restaurant-login"
    RESTAURANT_DASHBOARD = "restaurant-dashboard"


class NavigationHint(str, Enum):
    """Recognized values of the `view` query parameter."""

    LOGIN = "login"
    RESTAURANT_SIGNUP = "restaurant-signup"
    RESTAURANT_LOGIN = "restaurant-login"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["NavigationHint"]:
        """Unknown or missing values mean the default signup path."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_restaurant(self) -> bool:
        return self in (NavigationHint.RESTAURANT_SIGNUP, NavigationHint.RESTAURANT_LOGIN)


class PendingCoupon(BaseModel):
    code: str
    customer_name: str

    @property
    def first_name(self) -> str:
        parts = self.customer_name.split()
        return parts[0] if parts else ""


class PendingCouponOut(BaseModel):
    code: str
    first_name: str


class ViewOut(BaseModel):
    view: ViewState
    loading: bool
    coupon: Optional[PendingCouponOut] = None
