"""
Persistence for repositories, scans and file analyses.

Every method opens its own session and commits before returning, so a
background scan and the request handlers never share a session.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete, desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from debtlens.models.analysis import AnalysisResult
from debtlens.models.db import (
    Repository, Scan, FileAnalysis, ScanStatus, ACTIVE_SCAN_STATUSES,
)

logger = logging.getLogger("storage")


@dataclass
class ScanScores:
    overall: int
    technical: int
    security: int
    doc: int


class Storage:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # ── Repositories ─────────────────────────────────

    async def create_repository(
        self,
        user_id: int,
        url: str,
        owner: str,
        name: str,
        default_branch: str = "main",
        description: Optional[str] = None,
    ) -> Repository:
        repo = Repository(
            user_id=user_id,
            url=url,
            owner=owner,
            name=name,
            default_branch=default_branch,
            description=description,
        )
        async with self.session_factory() as session:
            session.add(repo)
            await session.commit()
            await session.refresh(repo)
        return repo

    async def get_repository(self, repo_id: int) -> Optional[Repository]:
        async with self.session_factory() as session:
            return await session.get(Repository, repo_id)

    async def list_repositories(self, user_id: int) -> List[Repository]:
        stmt = (
            select(Repository)
            .where(Repository.user_id == user_id)
            .order_by(desc(Repository.created_at), desc(Repository.id))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def delete_repository(self, repo_id: int) -> None:
        """Delete a repository together with its scans and their file analyses."""
        scan_ids = select(Scan.id).where(Scan.repo_id == repo_id)
        async with self.session_factory() as session:
            await session.execute(delete(FileAnalysis).where(FileAnalysis.scan_id.in_(scan_ids)))
            await session.execute(delete(Scan).where(Scan.repo_id == repo_id))
            await session.execute(delete(Repository).where(Repository.id == repo_id))
            await session.commit()

    async def mark_repository_scanned(self, repo_id: int) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(Repository)
                .where(Repository.id == repo_id)
                .values(last_scanned_at=datetime.now(timezone.utc))
            )
            await session.commit()

    # ── Scans ────────────────────────────────────────

    async def get_active_scan(self, repo_id: int) -> Optional[Scan]:
        stmt = select(Scan).where(
            Scan.repo_id == repo_id,
            Scan.status.in_(ACTIVE_SCAN_STATUSES),
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def create_scan(self, repo_id: int, summary: str = "Initializing scan...") -> Optional[Scan]:
        """
        Insert a `processing` scan. Returns None when the repository already has
        a pending/processing scan, whether seen up front or caught by the
        unique index on a racing insert.
        """
        if await self.get_active_scan(repo_id) is not None:
            return None

        scan = Scan(
            repo_id=repo_id,
            status=ScanStatus.processing.value,
            summary=summary,
        )
        async with self.session_factory() as session:
            session.add(scan)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(f"Concurrent scan insert rejected for repo {repo_id}")
                return None
            await session.refresh(scan)
        return scan

    async def get_scan(self, scan_id: int) -> Optional[Scan]:
        async with self.session_factory() as session:
            return await session.get(Scan, scan_id)

    async def list_scans(self, repo_id: int) -> List[Scan]:
        stmt = (
            select(Scan)
            .where(Scan.repo_id == repo_id)
            .order_by(desc(Scan.created_at), desc(Scan.id))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_scan_status(
        self,
        scan_id: int,
        status: ScanStatus,
        summary: Optional[str] = None,
        scores: Optional[ScanScores] = None,
    ) -> Optional[Scan]:
        async with self.session_factory() as session:
            scan = await session.get(Scan, scan_id)
            if scan is None:
                # Repository (and its scans) deleted while the scan was running
                logger.warning(f"Scan {scan_id} vanished before status update to {status.value}")
                return None

            scan.status = status.value
            if summary:
                scan.summary = summary
            if scores:
                scan.overall_score = scores.overall
                scan.technical_debt_score = scores.technical
                scan.security_score = scores.security
                scan.documentation_score = scores.doc
            await session.commit()
            await session.refresh(scan)
            return scan

    # ── File analyses ────────────────────────────────

    async def create_file_analysis(
        self,
        scan_id: int,
        file_path: str,
        language: Optional[str],
        analysis: AnalysisResult,
        original_code: str,
    ) -> FileAnalysis:
        row = FileAnalysis(
            scan_id=scan_id,
            file_path=file_path,
            language=language,
            technical_debt_score=analysis.technical_debt_score,
            security_score=analysis.security_score,
            documentation_score=analysis.documentation_score,
            issues=[issue.model_dump(exclude_none=True) for issue in analysis.issues],
            original_code=original_code,
            refactored_code=analysis.refactored_code,
        )
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def list_file_analyses(self, scan_id: int) -> List[FileAnalysis]:
        """Ordered by technical_debt_score, descending."""
        stmt = (
            select(FileAnalysis)
            .where(FileAnalysis.scan_id == scan_id)
            .order_by(desc(FileAnalysis.technical_debt_score), FileAnalysis.id)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
