from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ContactCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str
    recaptchaToken: Optional[str] = None


class ContactStatusUpdate(BaseModel):
    status: str


class RecaptchaVerifyRequest(BaseModel):
    token: str = ""


class ContentUpsert(BaseModel):
    key: str = Field(min_length=1)
    content: Any


class SettingsUpdate(BaseModel):
    settings: Dict[str, Any]


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    conversationHistory: List[ChatTurn] = []


class UserAdminUpdate(BaseModel):
    role: Optional[str] = None
    isActive: Optional[bool] = None
