"""
Scan orchestration.

start_scan() creates the `processing` row and returns immediately; the rest
of the pipeline (tree fetch → content fetch → analysis → persistence →
aggregation) runs on a detached task until the scan is `completed` or
`failed`. There is no cancel: every scan reaches a terminal state.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Set

from debtlens.adapters.github import GitHubClient, TreeItem
from debtlens.models.db import Repository, Scan, ScanStatus
from debtlens.services.analyzer import AnalysisService
from debtlens.services.batch import run_bounded
from debtlens.services.storage import Storage, ScanScores

logger = logging.getLogger("scanner")

NO_FILES_SUMMARY = "No relevant code files found."


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class ScoreTotals:
    technical: int = 0
    security: int = 0
    doc: int = 0

    def averages(self, file_count: int) -> ScanScores:
        technical = round_half_up(self.technical / file_count)
        security = round_half_up(self.security / file_count)
        doc = round_half_up(self.doc / file_count)
        overall = round_half_up((technical + security + doc) / 3)
        return ScanScores(overall=overall, technical=technical, security=security, doc=doc)


class ScannerService:
    def __init__(
        self,
        storage: Storage,
        source: GitHubClient,
        analyzer: AnalysisService,
        max_files: int = 5,
        concurrency: int = 2,
    ):
        self.storage = storage
        self.source = source
        self.analyzer = analyzer
        self.max_files = max_files
        self.concurrency = concurrency
        # Strong refs so running scans are not garbage collected
        self._tasks: Set[asyncio.Task] = set()

    async def start_scan(self, repo: Repository) -> Optional[Scan]:
        """
        Create a `processing` scan and schedule the pipeline.
        Returns None if the repository already has a scan in flight.
        """
        scan = await self.storage.create_scan(repo.id)
        if scan is None:
            logger.info(f"Repo {repo.id} already has a scan in progress")
            return None

        task = asyncio.create_task(self._process_scan(scan.id, repo))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return scan

    async def drain(self) -> None:
        """Wait for every in-flight scan to reach a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def active_scans(self) -> int:
        return len(self._tasks)

    async def _process_scan(self, scan_id: int, repo: Repository) -> None:
        try:
            branch = repo.default_branch or "main"
            logger.info(f"[scan {scan_id}] Starting scan for {repo.owner}/{repo.name}@{branch}")

            # 1. Fetch files
            tree = await self.source.fetch_repo_tree(repo.owner, repo.name, branch)
            if not tree:
                logger.warning(f"[scan {scan_id}] No code files in {repo.owner}/{repo.name}")
                await self.storage.update_scan_status(scan_id, ScanStatus.failed, NO_FILES_SUMMARY)
                return

            files = tree[: self.max_files]
            totals = ScoreTotals()

            # 2. Analyze batch
            async def _analyze_file(item: TreeItem) -> None:
                content = await self.source.fetch_file_content(item.url)
                analysis = await self.analyzer.analyze(content, item.path)

                totals.technical += analysis.technical_debt_score
                totals.security += analysis.security_score
                totals.doc += analysis.documentation_score

                await self.storage.create_file_analysis(
                    scan_id=scan_id,
                    file_path=item.path,
                    language=item.language,
                    analysis=analysis,
                    original_code=content,
                )
                logger.info(f"[scan {scan_id}] Analyzed {item.path}")

            outcomes = await run_bounded(files, _analyze_file, self.concurrency)
            errors: List[BaseException] = [o for o in outcomes if isinstance(o, BaseException)]
            if errors:
                raise errors[0]

            # 3. Aggregate & finish
            scores = totals.averages(len(files))
            await self.storage.update_scan_status(
                scan_id,
                ScanStatus.completed,
                f"Analyzed {len(files)} files successfully.",
                scores,
            )
            await self.storage.mark_repository_scanned(repo.id)
            logger.info(f"[scan {scan_id}] Completed with overall score {scores.overall}")

        except Exception as e:
            logger.error(f"[scan {scan_id}] Scan failed: {e}")
            try:
                await self.storage.update_scan_status(scan_id, ScanStatus.failed, str(e) or type(e).__name__)
            except Exception:
                logger.exception(f"[scan {scan_id}] Could not record failure; scan left in processing")
