import uuid

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

FILE_STATUSES = ("pending", "processing", "completed", "error")


def new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255))
    provider = Column(String(50))          # local, google
    google_id = Column(String(255))
    avatar = Column(String(500))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Zoom connection, filled by the OAuth callback
    zoom_access_token = Column(Text)
    zoom_refresh_token = Column(Text)
    zoom_expires_at = Column(DateTime(timezone=True))
    zoom_scope = Column(String(500))
    zoom_profile = Column(JSON)
    zoom_connected_at = Column(DateTime(timezone=True))

    files = relationship("FileRecord", back_populates="owner")


class FileRecord(Base):
    __tablename__ = "files"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    filename = Column(String(255))
    status = Column(String(50), default="pending", index=True)   # pending, processing, completed, error
    transcript_id = Column(String(255))
    transcript = Column(Text)
    error = Column(Text)
    reset_reason = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="files")
