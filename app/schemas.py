from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)


class ProductSchema(BaseModel):
    id: str
    name: str
    price: float
    stock: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductResponse(BaseModel):
    success: bool = True
    data: ProductSchema


class ProductListResponse(BaseModel):
    success: bool = True
    data: list[ProductSchema]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class RecentlyViewedResponse(BaseModel):
    success: bool = True
    viewed: list[ProductSchema]


class DigestResponse(BaseModel):
    success: bool = True
    message: list[str]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    retryable: bool = False
