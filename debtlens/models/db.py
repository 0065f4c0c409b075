"""
SQLAlchemy ORM models.

Tables: users, user_sessions, repositories, scans, file_analyses
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Text, JSON, Index, text
)
from sqlalchemy.orm import relationship

from debtlens.utils.db import Base


class ScanStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


ACTIVE_SCAN_STATUSES = (ScanStatus.pending.value, ScanStatus.processing.value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now)


class UserSession(Base):
    __tablename__ = "user_sessions"

    token = Column(String, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_now)


class Repository(Base):
    __tablename__ = "repositories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    owner = Column(String, nullable=False)
    name = Column(String, nullable=False)
    default_branch = Column(String, default="main")
    description = Column(Text, nullable=True)
    last_scanned_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now)

    scans = relationship("Scan", back_populates="repository", cascade="all, delete-orphan")


class Scan(Base):
    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, index=True)
    repo_id = Column(Integer, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default=ScanStatus.pending.value)
    overall_score = Column(Integer, nullable=True)
    technical_debt_score = Column(Integer, nullable=True)
    security_score = Column(Integer, nullable=True)
    documentation_score = Column(Integer, nullable=True)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now)

    repository = relationship("Repository", back_populates="scans")
    files = relationship("FileAnalysis", back_populates="scan", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_scan_repo", "repo_id"),
        # At most one pending/processing scan per repository
        Index(
            "uq_scan_repo_active",
            "repo_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'processing')"),
            postgresql_where=text("status IN ('pending', 'processing')"),
        ),
    )


class FileAnalysis(Base):
    __tablename__ = "file_analyses"

    id = Column(Integer, primary_key=True, index=True)
    scan_id = Column(Integer, ForeignKey("scans.id", ondelete="CASCADE"), nullable=False)
    file_path = Column(Text, nullable=False)
    language = Column(String, nullable=True)
    technical_debt_score = Column(Integer, nullable=True)
    security_score = Column(Integer, nullable=True)
    documentation_score = Column(Integer, nullable=True)
    issues = Column(JSON, nullable=False, default=list)
    original_code = Column(Text, nullable=True)
    refactored_code = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now)

    scan = relationship("Scan", back_populates="files")

    __table_args__ = (
        Index("ix_file_analysis_scan", "scan_id"),
    )
