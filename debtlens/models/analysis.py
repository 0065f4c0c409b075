"""
Pydantic shapes for a single file's AI analysis.

The model's JSON reply is validated against AnalysisResult before anything
downstream trusts it. Both models are strict: a quoted number or a boolean
where an integer belongs is a shape mismatch, not something to coerce.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

IssueType = Literal["debt", "security", "doc"]
Severity = Literal["low", "medium", "high"]


class Issue(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    type: IssueType
    severity: Severity
    line: Optional[int] = None
    description: str
    suggestion: Optional[str] = None


class AnalysisResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)

    technical_debt_score: int = Field(..., ge=0, le=100)
    security_score: int = Field(..., ge=0, le=100)
    documentation_score: int = Field(..., ge=0, le=100)
    issues: List[Issue] = Field(...)
    refactored_code: Optional[str] = None
