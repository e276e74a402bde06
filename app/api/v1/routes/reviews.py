from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.api.deps import get_current_user
from app.core.errors import ok
from app.models.user import User
from app.schemas.review import ReviewCreate
from app.services import review_service

router = APIRouter(tags=["reviews"])


@router.post("/reviews", status_code=201)
def create_review(body: ReviewCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    review = review_service.create_review(db, body, me)
    return ok(review_service.review_to_dict(review, me), message="Review submitted for approval")
