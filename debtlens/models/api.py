from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from debtlens.models.analysis import Issue

GITHUB_URL_PATTERN = r"^https://github\.com/[\w-]+/[\w.-]+$"


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python, readable from ORM rows."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ─── Auth ───────────────────────────────────────────────

class RegisterRequest(ApiModel):
    email: str = ""
    password: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class LoginRequest(ApiModel):
    email: str = ""
    password: str = ""

class UserOut(ApiModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


# ─── Repositories ───────────────────────────────────────

class CreateRepoRequest(BaseModel):
    url: str = Field(
        ...,
        pattern=GITHUB_URL_PATTERN,
        description="Public GitHub repository URL, e.g. https://github.com/owner/name",
    )

class RepositoryOut(ApiModel):
    id: int
    user_id: int
    url: str
    owner: str
    name: str
    default_branch: Optional[str] = "main"
    description: Optional[str] = None
    last_scanned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# ─── Scans ──────────────────────────────────────────────

class ScanOut(ApiModel):
    id: int
    repo_id: int
    status: str
    overall_score: Optional[int] = None
    technical_debt_score: Optional[int] = None
    security_score: Optional[int] = None
    documentation_score: Optional[int] = None
    summary: Optional[str] = None
    created_at: Optional[datetime] = None

class FileAnalysisOut(ApiModel):
    id: int
    scan_id: int
    file_path: str
    language: Optional[str] = None
    technical_debt_score: Optional[int] = None
    security_score: Optional[int] = None
    documentation_score: Optional[int] = None
    issues: List[Issue] = []
    original_code: Optional[str] = None
    refactored_code: Optional[str] = None
    created_at: Optional[datetime] = None

class ScanDetail(ApiModel):
    scan: ScanOut
    files: List[FileAnalysisOut]


# ─── Stats ──────────────────────────────────────────────

class StatsOut(ApiModel):
    total_repos: int
    total_scans: int
    completed_scans: int
    failed_scans: int
    files_analyzed: int
    average_overall_score: Optional[int] = None
    average_technical_debt_score: Optional[int] = None
    average_security_score: Optional[int] = None
    average_documentation_score: Optional[int] = None
