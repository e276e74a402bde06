from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional


class ItineraryDay(BaseModel):
    day: int
    title: str
    description: str = ""


class TourImageIn(BaseModel):
    # snake_case keys match what the upload endpoint returns
    public_id: str = ""
    secure_url: str
    alt_text: Optional[str] = None


class TourCreate(BaseModel):
    title: str = Field(min_length=1)
    slug: Optional[str] = None
    locationCountry: str = Field(min_length=1)
    locationCity: str = Field(min_length=1)
    category: str
    durationDays: int = Field(gt=0)
    basePrice: Decimal = Field(gt=0)
    discountPrice: Optional[Decimal] = Field(default=None, ge=0)
    maxGroupSize: int = Field(default=20, gt=0)
    description: str = Field(min_length=1)
    highlights: List[str] = []
    itinerary: List[ItineraryDay] = []
    isPublished: bool = False
    seoTitle: Optional[str] = None
    seoDescription: Optional[str] = None
    images: List[TourImageIn] = []


class TourUpdate(BaseModel):
    # Omitted fields keep their stored value; discountPrice=null clears the discount.
    title: Optional[str] = None
    slug: Optional[str] = None
    locationCountry: Optional[str] = None
    locationCity: Optional[str] = None
    category: Optional[str] = None
    durationDays: Optional[int] = Field(default=None, gt=0)
    basePrice: Optional[Decimal] = Field(default=None, gt=0)
    discountPrice: Optional[Decimal] = Field(default=None, ge=0)
    maxGroupSize: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None
    highlights: Optional[List[str]] = None
    itinerary: Optional[List[ItineraryDay]] = None
    isPublished: Optional[bool] = None
    seoTitle: Optional[str] = None
    seoDescription: Optional[str] = None
    images: Optional[List[TourImageIn]] = None
