from collections import OrderedDict
from typing import List

from reviewer.models.review_schemas import ReviewComment

SUMMARY_HEADER = "## Code Review Summary"

# ── Helpers ───────────────────────────────────────────────────────────────────

_SEV_LABEL = {
    "blocker":    "🔴 Blocker",
    "warning":    "🟡 Warning",
    "suggestion": "🔵 Suggestion",
}


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _group_by_file(comments: List[ReviewComment]) -> "OrderedDict[str, List[ReviewComment]]":
    """Group comments by file, keeping files in first-seen order."""
    by_file: "OrderedDict[str, List[ReviewComment]]" = OrderedDict()
    for comment in comments:
        by_file.setdefault(comment.file, []).append(comment)
    return by_file


def _render_file_section(file_path: str, file_comments: List[ReviewComment]) -> List[str]:
    lines = [f"### 📄 {file_path} ({_plural(len(file_comments), 'comment')})", ""]
    for comment in file_comments:
        if comment.line:
            lines.append(f"**Line {comment.line}:**")
        lines.append(comment.body)
        lines.append("")
    return lines


# ── Public API ────────────────────────────────────────────────────────────────

def build_aggregated_comment(comments: List[ReviewComment]) -> str:
    """Render every surviving comment into the single PR-level summary comment."""
    by_file = _group_by_file(comments)
    total_files = len(by_file)

    parts: List[str] = [SUMMARY_HEADER, ""]
    parts.append(
        f"Reviewed **{_plural(total_files, 'file')}** "
        f"with **{_plural(len(comments), 'comment')}**."
    )
    parts.append("")
    parts.append("---")
    parts.append("")

    for index, (file_path, file_comments) in enumerate(by_file.items()):
        parts.extend(_render_file_section(file_path, file_comments))
        if index < total_files - 1:
            parts.append("---")
            parts.append("")

    return "\n".join(parts).strip()


def build_no_issues_comment(file_count: int) -> str:
    """Summary body for a run in which every reviewed file came back clean."""
    if file_count <= 0:
        raise ValueError(
            f"build_no_issues_comment called with invalid file_count: {file_count}. "
            "It should only be called when there are files to review."
        )
    return (
        f"{SUMMARY_HEADER}\n\n"
        f"Reviewed {_plural(file_count, 'file')}.\n\n"
        "✅ No issues found. Great work!"
    )


def render_inline_comment(comment: ReviewComment) -> str:
    """Body of a line-anchored review comment."""
    lines = [f"_⚠️ {_SEV_LABEL.get(comment.severity, comment.severity.capitalize())}_", ""]
    lines.append(comment.body)
    if comment.fix_suggestion:
        lines.append("")
        lines.append(f"> **Suggestion**: {comment.fix_suggestion}")
    return "\n".join(lines)
