from pydantic import BaseModel, EmailStr, Field
from typing import Optional


class AdminLogin(BaseModel):
    email: EmailStr
    password: str


class SendOtp(BaseModel):
    mobile: str


class VerifyOtp(BaseModel):
    mobile: str
    otp: str = Field(..., min_length=6, max_length=6)
    name: Optional[str] = None


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    commission: Optional[float] = Field(None, ge=0, le=100)
    status: str = "pending"   # pending | approved | rejected | suspended


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    commission: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[str] = None
    is_active: Optional[bool] = None


class LinkVendorUser(BaseModel):
    mobile: str
    name: Optional[str] = None


class LedgerPayment(BaseModel):
    # added to the running paid total
    paid: float = 0
    notes: Optional[str] = ""
