from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import ok
from app.schemas.site import ContactCreate, RecaptchaVerifyRequest, ChatRequest
from app.services import chat_service, recaptcha_service, site_service

router = APIRouter(tags=["site"])


@router.post("/contact", status_code=201)
def submit_contact(body: ContactCreate, db: Session = Depends(get_db)):
    msg = site_service.submit_contact(db, body)
    return ok(msg.to_dict(), message="Thank you for your message. We will get back to you soon!")


@router.get("/recaptcha/config")
def recaptcha_config(db: Session = Depends(get_db)):
    return ok({"siteKey": recaptcha_service.site_key(db)})


@router.post("/recaptcha/verify")
def recaptcha_verify(body: RecaptchaVerifyRequest, db: Session = Depends(get_db)):
    result = recaptcha_service.verify(db, body.token)
    return ok({"score": result.score, "action": result.action})


@router.get("/content/{key}")
def get_content(key: str, db: Session = Depends(get_db)):
    return ok(site_service.get_content(db, key).to_dict())


@router.post("/chat")
def chat(body: ChatRequest, db: Session = Depends(get_db)):
    history = [t.model_dump() for t in body.conversationHistory]
    return ok(response=chat_service.ask(db, body.message, history))


@router.get("/chat")
def chat_status():
    return ok(message="Chat API is working. Use POST to send messages.")
