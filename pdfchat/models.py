# pdfchat/models.py
from pydantic import BaseModel, Field, root_validator, validator
from typing import List, Optional


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    session_id: str
    filename: Optional[str] = None
    chunks_created: int
    message: str = "PDF uploaded and indexed"


class AskRequest(BaseModel):
    """Question about the document behind a session."""
    session_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1, max_length=4000)

    @root_validator(pre=True)
    def accept_message_alias(cls, values):
        """Older clients send the question as `message`."""
        if isinstance(values, dict) and "question" not in values and "message" in values:
            values = dict(values)
            values["question"] = values.pop("message")
        return values

    @validator('question')
    def validate_question(cls, v):
        """Ensure question is not just whitespace."""
        if not v.strip():
            raise ValueError("Question cannot be empty or only whitespace")
        return v

    @validator('session_id')
    def validate_session_id(cls, v):
        """Ensure session_id is not just whitespace."""
        if not v.strip():
            raise ValueError("Session ID cannot be empty")
        return v.strip()


class AskResponse(BaseModel):
    """Answer with the citation pages of the retrieved context, in rank order."""
    session_id: str
    text: str
    citations: List[int]


class SessionInfo(BaseModel):
    session_id: str
    filename: Optional[str] = None
    chunks_count: int
    pages_count: int
    age_seconds: float
    idle_seconds: float


class DeleteSessionResponse(BaseModel):
    session_id: str
    message: str
    success: bool


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    active_sessions: Optional[int] = None


class ErrorResponse(BaseModel):
    detail: str
    error_type: str
    retryable: bool = False
    request_id: Optional[str] = None
