from pydantic import BaseModel, EmailStr, Field


class AuthSession(BaseModel):
    user_id: str
    email: EmailStr | None = None
    access_token: str = ""


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class SignupPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=200)
    phone: str
    restaurant_id: str


class RestaurantSignupPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    restaurant_name: str = Field(..., min_length=1, max_length=200)
    owner_name: str
    location: str
    phone: str | None = None
