"""Rule-based review comments built from static-analysis findings."""

from typing import Dict, List, Optional

from reviewer.models.review_schemas import Category, Finding, ReviewComment, Severity

MAX_COMMENT_LENGTH = 63000

_SEVERITY_MAP: Dict[str, Severity] = {
    "error": "blocker",
    "warning": "warning",
    "info": "suggestion",
}

_SEVERITY_RANK = {"info": 0, "warning": 1, "error": 2}

_SEVERITY_LABELS = {
    "blocker": "🔴 **Blocker**",
    "warning": "🟡 **Warning**",
    "suggestion": "🔵 **Suggestion**",
}

_CATEGORY_BADGES = {
    "security": "🔒 Security",
    "performance": "⚡ Performance",
    "documentation": "📝 Documentation",
    "best-practices": "✨ Best Practices",
    "code-quality": "🧹 Code Quality",
}

_CATEGORY_KEYWORDS = [
    ("security", ("security", "xss", "injection", "unsafe", "eval", "secret")),
    ("performance", ("performance", "perf", "slow", "memory", "leak")),
    ("documentation", ("doc", "comment", "jsdoc", "docstring")),
    ("best-practices", ("prefer", "no-var", "eqeqeq", "best-practice")),
]


def infer_category(finding: Finding) -> Category:
    haystack = f"{finding.rule or ''} {finding.message}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return category
    return "code-quality"


def _truncate(body: str) -> str:
    if len(body) <= MAX_COMMENT_LENGTH:
        return body
    return body[: MAX_COMMENT_LENGTH - 3] + "..."


def render_finding(finding: Finding, severity: Severity, category: Category) -> str:
    parts = [f"**{finding.tool.upper()}**: {finding.message}"]
    if finding.rule:
        parts.append(f"Rule: `{finding.rule}`")
    parts.append(f"Severity: {_SEVERITY_LABELS[severity]}")
    parts.append(f"Category: {_CATEGORY_BADGES[category]}")
    if finding.fixable and finding.fix:
        parts.append(f"🔧 Auto-fix available: {finding.fix}")
    elif finding.suggestion:
        parts.append(f"💡 {finding.suggestion}")
    return _truncate("\n\n".join(parts).strip())


def findings_to_comments(
    findings: List[Finding],
    min_severity: str = "warning",
    include_info: bool = False,
    file_path: Optional[str] = None,
) -> List[ReviewComment]:
    """
    Translate findings into review comments, dropping the ones below the threshold.

    Args:
        findings: Static-analysis results for one file
        min_severity: Lowest finding severity that still produces a comment
        include_info: Keep ``info`` findings regardless of ``min_severity``
        file_path: Overrides the finding's file path when given

    Returns:
        Comments in finding order; empty bodies are dropped.
    """
    threshold = _SEVERITY_RANK.get(min_severity, 1)
    comments: List[ReviewComment] = []

    for finding in findings:
        if finding.severity == "info" and not include_info:
            continue
        if finding.severity != "info" and _SEVERITY_RANK[finding.severity] < threshold:
            continue

        severity = _SEVERITY_MAP[finding.severity]
        category = infer_category(finding)
        body = render_finding(finding, severity, category)
        if not body:
            continue

        comments.append(
            ReviewComment(
                file=file_path or finding.file,
                line=finding.line if finding.line and finding.line > 0 else None,
                body=body,
                severity=severity,
                category=category,
                fix_suggestion=finding.suggestion,
                auto_fixable=finding.fixable,
            )
        )

    return comments
