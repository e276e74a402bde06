from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    tourId: str
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)


class ReviewModeration(BaseModel):
    isApproved: bool
