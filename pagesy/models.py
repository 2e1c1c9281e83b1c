import uuid

from fastapi_users.db import SQLAlchemyBaseUserTableUUID
from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, func,
    UniqueConstraint, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


# ---------------------------
# USER MODEL
# ---------------------------
class User(SQLAlchemyBaseUserTableUUID, Base):
    """fastapi-users account. ``is_superuser`` is the ADMIN role; a banned user is inactive."""

    __tablename__ = "users"

    display_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    books = relationship("Book", back_populates="author", passive_deletes=True)


# ---------------------------
# BOOKS & CHAPTERS
# ---------------------------
class Book(Base):
    __tablename__ = "books"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    author_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    approved = Column(Boolean, default=False, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    subscription = Column(Boolean, default=False, nullable=False)  # eligible for paid subscriptions
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("User", back_populates="books")
    chapters = relationship(
        "Chapter",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Chapter.chapter_no",
    )

    def __repr__(self):
        return f"<Book {self.name}>"


class Chapter(Base):
    __tablename__ = "chapters"
    __table_args__ = (
        UniqueConstraint("book_id", "chapter_no", name="uq_chapters_book_chapter_no"),
        CheckConstraint("chapter_no > 0", name="ck_chapters_chapter_no_positive"),
    )

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    book_id = Column(GUID, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_no = Column(Integer, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    book = relationship("Book", back_populates="chapters")


# ---------------------------
# LIBRARY (who gets notified for which book)
# ---------------------------
class LibraryEntry(Base):
    __tablename__ = "library"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_library_user_book"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(GUID, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RecentRead(Base):
    __tablename__ = "recent_reads"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_recent_reads_user_book"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_id = Column(GUID, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    chapter_no = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ---------------------------
# NOTIFICATIONS
# ---------------------------
class Notification(Base):
    """One row per (subscriber, chapter release). The unique triple makes worker redelivery a no-op."""

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", "message", name="uq_notifications_user_book_message"),
        Index("ix_notifications_user_id_id", "user_id", "id"),
    )

    id = Column(Integer, primary_key=True)  # insertion order
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_id = Column(GUID, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
