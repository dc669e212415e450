"""Prompt for the per-file reviewer model."""

import logging
from typing import List, Optional

from common.github_models import PRFile
from reviewer.models.review_schemas import Finding

logger = logging.getLogger(__name__)

REVIEW_PROMPT = """\
You are a senior code reviewer. Review the following code change and provide constructive feedback.

File: {file_path}{chunk_note}
Status: {status}
Additions: {additions}
Deletions: {deletions}

Static Analysis Results:
{analysis_summary}

Code ({code_label}):
```
{code}
```

Please provide code review comments focusing on:
1. Code quality and best practices
2. Potential bugs or issues
3. Performance improvements
4. Security concerns
5. Documentation needs

Format your response as a JSON array of comment objects. Each comment should have:
- file: string (the file path)
- line: number (optional, line number if applicable{line_note})
- body: string (the comment text)
- severity: string (optional, one of: "blocker", "warning", "suggestion")
- category: string (optional, one of: "security", "performance", "documentation", "best-practices", "code-quality")

Example format:
[
  {{
    "file": "{file_path}",
    "line": 10,
    "body": "Consider adding error handling here",
    "severity": "warning",
    "category": "code-quality"
  }}
]

IMPORTANT: Respond ONLY with valid JSON. Do not include explanations, markdown code blocks, \
or any other text. If you cannot produce valid JSON, respond with: {{"error": "failed"}}.\
"""


def summarize_findings(findings: List[Finding], limit: int) -> str:
    """One line per finding, capped at ``limit`` entries."""
    if len(findings) > limit:
        logger.warning(
            "Limiting static analysis results from %d to %d to keep prompt manageable",
            len(findings),
            limit,
        )
    lines = [
        f"- Line {f.line}: [{f.severity}] {f.message} ({f.rule or f.tool})"
        for f in findings[:limit]
    ]
    return "\n".join(lines) or "No issues found"


def build_review_prompt(
    file_path: str,
    code: str,
    file_change: PRFile,
    findings: List[Finding],
    *,
    max_findings: int = 50,
    chunk_number: Optional[int] = None,
    total_chunks: Optional[int] = None,
) -> str:
    """
    Assemble the prompt for one file, or for one chunk of a large file.

    Chunk prompts ask for line numbers relative to the chunk (starting at 1);
    full-file prompts carry a context window whose changed lines already show
    their absolute line numbers.
    """
    is_chunk = bool(chunk_number and total_chunks)
    if is_chunk:
        chunk_note = (
            f"\n\nNOTE: This is chunk {chunk_number} of {total_chunks} from a large file. "
            "Review this portion of the code in context. Line numbers in your response "
            "should be relative to this chunk (starting from 1)."
        )
        code_label = "chunk content"
        line_note = " - relative to this chunk starting from line 1"
    else:
        chunk_note = ""
        code_label = "showing only changed sections with context"
        line_note = ""

    return REVIEW_PROMPT.format(
        file_path=file_path,
        chunk_note=chunk_note,
        status=file_change.status.value,
        additions=file_change.additions,
        deletions=file_change.deletions,
        analysis_summary=summarize_findings(findings, max_findings),
        code_label=code_label,
        code=code,
        line_note=line_note,
    )
