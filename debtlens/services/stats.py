from typing import Optional

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from debtlens.models.api import StatsOut
from debtlens.models.db import Repository, Scan, FileAnalysis, ScanStatus


def _rounded(value) -> Optional[int]:
    if value is None:
        return None
    return int(float(value) + 0.5)


class StatsService:
    @staticmethod
    async def get_summary(db: AsyncSession, user_id: int) -> StatsOut:
        """Dashboard totals across the caller's repositories."""
        repo_ids = select(Repository.id).where(Repository.user_id == user_id)

        # 1. Repository count
        total_repos = await db.scalar(
            select(func.count(Repository.id)).where(Repository.user_id == user_id)
        )

        # 2. Scan counts + averages over completed scans
        completed = Scan.status == ScanStatus.completed.value
        agg_query = select(
            func.count(Scan.id).label("total"),
            func.sum(case((completed, 1), else_=0)).label("completed"),
            func.sum(case((Scan.status == ScanStatus.failed.value, 1), else_=0)).label("failed"),
            func.avg(case((completed, Scan.overall_score))).label("overall"),
            func.avg(case((completed, Scan.technical_debt_score))).label("technical"),
            func.avg(case((completed, Scan.security_score))).label("security"),
            func.avg(case((completed, Scan.documentation_score))).label("doc"),
        ).where(Scan.repo_id.in_(repo_ids))

        result = await db.execute(agg_query)
        agg = result.first()

        # 3. Files analyzed
        files_analyzed = await db.scalar(
            select(func.count(FileAnalysis.id))
            .join(Scan, FileAnalysis.scan_id == Scan.id)
            .where(Scan.repo_id.in_(repo_ids))
        )

        return StatsOut(
            total_repos=total_repos or 0,
            total_scans=agg.total or 0,
            completed_scans=agg.completed or 0,
            failed_scans=agg.failed or 0,
            files_analyzed=files_analyzed or 0,
            average_overall_score=_rounded(agg.overall),
            average_technical_debt_score=_rounded(agg.technical),
            average_security_score=_rounded(agg.security),
            average_documentation_score=_rounded(agg.doc),
        )
