from pydantic import BaseModel, Field
from typing import Literal, Optional

AddressType = Literal["home", "work", "other"]


class AddressCreate(BaseModel):
    type: AddressType = "home"
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str
    address1: str = Field(..., min_length=1)
    address2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postcode: str = Field(..., min_length=1)
    country: str = "India"
    is_default: bool = False


class AddressUpdate(BaseModel):
    type: Optional[AddressType] = None
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None
    address1: Optional[str] = Field(None, min_length=1)
    address2: Optional[str] = None
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    postcode: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    is_default: Optional[bool] = None
