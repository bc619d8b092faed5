from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class OrderCreate(BaseModel):
    address_id: Optional[str] = None
    payment_method: str = "cod"   # cod | online | wallet
    notes: Optional[str] = None


class ReturnRequestCreate(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class StatusUpdate(BaseModel):
    status: str
    awb_number: Optional[str] = None
    notes: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    payment_status: str
    transaction_id: Optional[str] = None


class OrderUpdate(BaseModel):
    awb_number: Optional[str] = None
    admin_notes: Optional[str] = None
    shipping_address_id: Optional[str] = None


class AssignVendor(BaseModel):
    # null unassigns the order
    vendor_id: Optional[str] = None


class ReturnDecision(BaseModel):
    admin_notes: Optional[str] = None


class RazorpayVerifyPayload(BaseModel):
    order_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class OrderItem(BaseModel):
    product_id: str
    name: str
    brand: Optional[str] = None
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)
    image: Optional[str] = None


class ReturnRequest(BaseModel):
    type: Optional[str] = None   # pending | accepted | denied | completed
    reason: Optional[str] = None
    requested_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    admin_notes: Optional[str] = None
    refund_status: Optional[str] = None
    refund_transaction_id: Optional[str] = None
