"""Pydantic schemas for guest checkout"""
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from snapmatch.models.purchase import PurchaseItemType

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(max_length=320)
    product_type: Literal["single", "all"] = Field(alias="productType")
    photo_id: Optional[str] = Field(default=None, alias="photoId", min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = v.strip()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address")
        return v

    @model_validator(mode="after")
    def require_photo_for_single(self):
        if self.product_type == "single" and not self.photo_id:
            raise ValueError("photoId is required for single-photo checkout.")
        return self

    @property
    def item_type(self) -> PurchaseItemType:
        if self.product_type == "single":
            return PurchaseItemType.SINGLE_PHOTO
        return PurchaseItemType.ALL_PHOTOS
