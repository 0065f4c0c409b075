"""
Self-contained HTML report for one scan.
"""

from html import escape
from typing import List

from debtlens.models.db import Repository, Scan, FileAnalysis


def _score(value) -> str:
    return "–" if value is None else str(value)


def _issue_rows(issues: List[dict]) -> str:
    if not issues:
        return "<p class=\"muted\">No issues reported.</p>"
    rows = []
    for issue in issues:
        line = issue.get("line")
        rows.append(
            "<tr>"
            f"<td>{escape(str(issue.get('type', '')))}</td>"
            f"<td class=\"sev-{escape(str(issue.get('severity', '')))}\">{escape(str(issue.get('severity', '')))}</td>"
            f"<td>{'' if line is None else escape(str(line))}</td>"
            f"<td>{escape(str(issue.get('description', '')))}</td>"
            f"<td>{escape(str(issue.get('suggestion') or ''))}</td>"
            "</tr>"
        )
    return (
        "<table><thead><tr><th>Type</th><th>Severity</th><th>Line</th>"
        "<th>Description</th><th>Suggestion</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )


def report_filename(repo: Repository, scan: Scan) -> str:
    return f"debtlens-report-{repo.owner}-{repo.name}-scan-{scan.id}.html"


def render_scan_report(repo: Repository, scan: Scan, files: List[FileAnalysis]) -> str:
    sections = []
    for f in files:
        refactor = ""
        if f.refactored_code:
            refactor = f"<details><summary>Suggested refactor</summary><pre>{escape(f.refactored_code)}</pre></details>"
        sections.append(
            "<section>"
            f"<h3>{escape(f.file_path)} <small>{escape(f.language or '')}</small></h3>"
            f"<p>Debt {_score(f.technical_debt_score)} · Security {_score(f.security_score)} · "
            f"Docs {_score(f.documentation_score)}</p>"
            f"{_issue_rows(f.issues or [])}"
            f"{refactor}"
            "</section>"
        )

    title = f"{repo.owner}/{repo.name} · scan #{scan.id}"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{escape(title)}</title>
<style>
body {{ font-family: system-ui, sans-serif; margin: 2rem auto; max-width: 960px; color: #1f2933; }}
table {{ border-collapse: collapse; width: 100%; margin: .5rem 0 1rem; }}
th, td {{ border: 1px solid #d9e2ec; padding: .35rem .5rem; text-align: left; vertical-align: top; }}
pre {{ background: #f5f7fa; padding: 1rem; overflow-x: auto; }}
.sev-high {{ color: #c62828; }} .sev-medium {{ color: #ef6c00; }} .sev-low {{ color: #2e7d32; }}
.muted {{ color: #829ab1; }}
</style>
</head>
<body>
<h1>{escape(title)}</h1>
<p><a href="{escape(repo.url)}">{escape(repo.url)}</a></p>
<h2>Overall {_score(scan.overall_score)}</h2>
<p>Technical debt {_score(scan.technical_debt_score)} · Security {_score(scan.security_score)} · Documentation {_score(scan.documentation_score)}</p>
<p>Status: {escape(scan.status)} · {escape(scan.summary or '')}</p>
{''.join(sections)}
</body>
</html>
"""
