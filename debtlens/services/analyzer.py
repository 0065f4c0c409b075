"""
Per-file AI analysis.

One prompt per file, one model call, defensive parsing. analyze() never
raises: any failure becomes a zero-score result carrying a single
high-severity issue, so one bad file cannot sink a whole scan.
"""

import logging
import re

from debtlens.adapters.base import BaseModelAdapter
from debtlens.models.analysis import AnalysisResult, Issue

logger = logging.getLogger("analyzer")

PROMPT_TEMPLATE = """You are an expert Senior Software Engineer and Security Auditor.
Analyze the following code file ("{filename}") for:
1. Technical Debt (complexity, code smells, bad practices)
2. Security Vulnerabilities (injection, exposed secrets, unsafe patterns)
3. Documentation Quality (comments, clarity)

Provide a JSON response with the following structure:
{{
  "technicalDebtScore": 0-100 (higher is better/cleaner),
  "securityScore": 0-100 (higher is safer),
  "documentationScore": 0-100 (higher is better),
  "issues": [
    {{ "type": "debt"|"security"|"doc", "severity": "low"|"medium"|"high", "line": <number>, "description": "<text>", "suggestion": "<text>" }}
  ],
  "refactoredCode": "<string with the full refactored code>"
}}

Report at most {max_issues} issues, most important first.
Only return the JSON object. Do not wrap in markdown code blocks.

CODE TO ANALYZE:
{code}
"""

FALLBACK_SUGGESTION = "Verify the model API key and provider configuration."

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ``` or ```json fence, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def fallback_result(reason: str) -> AnalysisResult:
    return AnalysisResult(
        technical_debt_score=0,
        security_score=0,
        documentation_score=0,
        issues=[
            Issue(
                type="debt",
                severity="high",
                description=f"AI analysis failed: {reason}",
                suggestion=FALLBACK_SUGGESTION,
            )
        ],
    )


class AnalysisService:
    def __init__(
        self,
        adapter: BaseModelAdapter,
        max_chars: int = 15000,
        max_issues: int = 10,
        max_tokens: int = 4096,
    ):
        self.adapter = adapter
        self.max_chars = max_chars
        self.max_issues = max_issues
        self.max_tokens = max_tokens

    def build_prompt(self, code: str, filename: str) -> str:
        return PROMPT_TEMPLATE.format(
            filename=filename,
            code=code[: self.max_chars],
            max_issues=self.max_issues,
        )

    def parse_response(self, text: str) -> AnalysisResult:
        """Parse and validate the model's reply. Raises on anything off-shape."""
        # Strict JSON validation: non-objects, missing fields and wrong types all raise
        result = AnalysisResult.model_validate_json(strip_code_fences(text), strict=True)
        if len(result.issues) > self.max_issues:
            result.issues = result.issues[: self.max_issues]
        return result

    async def analyze(self, code: str, filename: str) -> AnalysisResult:
        try:
            reply = await self.adapter.generate(
                prompt=self.build_prompt(code, filename),
                max_tokens=self.max_tokens,
            )
            logger.info(
                f"Analyzed {filename} with {reply.get('provider')}/{reply.get('model')} "
                f"({reply.get('tokens_used', 0)} tokens)"
            )
            text = reply.get("response")
            if not isinstance(text, str):
                raise ValueError("model returned no text")
            return self.parse_response(text)
        except ValueError as e:
            # pydantic's ValidationError (including invalid JSON) lands here too
            logger.error(f"AI analysis returned an unusable reply for {filename}: {e}")
            return fallback_result("unusable model response")
        except Exception as e:
            logger.error(f"AI analysis failed for {filename}: {e}")
            return fallback_result(type(e).__name__)
