import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# =========================
# ERRORS
# =========================
class ErrorResponse(BaseModel):
    error: str


# =========================
# CHAPTER SCHEMAS
# =========================
class ChapterUpload(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    # chapters.chapter_no is a 32-bit INTEGER
    chapter_no: int = Field(..., alias="chapterNo", gt=0, le=2**31 - 1)
    content: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ChapterUploadResponse(BaseModel):
    id: uuid.UUID


class ChapterEdit(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = Field(default=None, min_length=1)


class ChapterRead(BaseModel):
    chapter_no: int = Field(..., serialization_alias="chapterNo")
    title: str
    content: str

    model_config = ConfigDict(from_attributes=True)


# =========================
# LIBRARY / NOTIFICATION SCHEMAS
# =========================
class LibraryRead(BaseModel):
    books: List[uuid.UUID]


class NotificationRead(BaseModel):
    id: int
    book_id: uuid.UUID = Field(..., serialization_alias="bookId")
    message: str
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)


# =========================
# QUEUE ENVELOPE (book.chapter_uploaded)
# =========================
class ChapterUploadedEnvelope(BaseModel):
    """Body of a ``book.chapter_uploaded`` message. ``Message`` is the final notification text."""

    BookID: uuid.UUID
    Message: str = Field(..., min_length=1)


# =========================
# LIVE PUSH FRAMES (/api/v1/ws)
# =========================
class ChapterUploadedPayload(BaseModel):
    BookId: str
    Message: str


class LiveFrame(BaseModel):
    Type: int
    Payload: Dict[str, Any] = Field(default_factory=dict)
