import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from common.github_models import DiffSide

logger = logging.getLogger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

NO_PATCH_REASON = "No patch provided"
NOT_IN_DIFF_REASON = "Line not found in diff patch"
UNCHANGED_REASON = (
    "Line is unchanged (context line). GitHub does not allow inline comments on unchanged lines."
)


class LineKind(str, Enum):
    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"


_PREFIX_KIND = {" ": LineKind.CONTEXT, "+": LineKind.ADDITION, "-": LineKind.DELETION}


@dataclass(frozen=True)
class DiffLine:
    kind: LineKind
    text: str


@dataclass(frozen=True)
class UnifiedDiffHunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: Tuple[DiffLine, ...] = field(default_factory=tuple)

    def covers(self, line_number: int, side: DiffSide) -> bool:
        """Whether the hunk header's declared range on *side* contains *line_number*."""
        if side == DiffSide.RIGHT:
            start, count = self.new_start, self.new_count
        else:
            start, count = self.old_start, self.old_count
        if count == 0:
            return False
        return start <= line_number <= start + count - 1


@dataclass(frozen=True)
class PositionResult:
    position: Optional[int]
    is_unchanged: bool = False
    is_added: bool = False
    reason: Optional[str] = None


def parse_patch(patch: Optional[str]) -> List[UnifiedDiffHunk]:
    """
    Parse a GitHub file patch into hunks.

    Args:
        patch: The ``patch`` field of a PR file (no ``diff --git`` / ``+++`` headers)

    Returns:
        Hunks in patch order. Lines before the first header, ``\\ No newline at
        end of file`` markers and blank separator lines are not part of any hunk.
    """
    hunks: List[UnifiedDiffHunk] = []
    if not patch:
        return hunks

    header: Optional[Tuple[int, int, int, int]] = None
    body: List[DiffLine] = []

    for raw in patch.split("\n"):
        match = _HUNK_HEADER.match(raw)
        if match:
            if header is not None:
                hunks.append(UnifiedDiffHunk(*header, lines=tuple(body)))
            # A missing count means a single line, per the unified diff format.
            header = (
                int(match.group(1)),
                int(match.group(2)) if match.group(2) is not None else 1,
                int(match.group(3)),
                int(match.group(4)) if match.group(4) is not None else 1,
            )
            body = []
            continue

        if header is None or not raw:
            continue

        kind = _PREFIX_KIND.get(raw[0])
        if kind is None:
            continue
        body.append(DiffLine(kind=kind, text=raw[1:]))

    if header is not None:
        hunks.append(UnifiedDiffHunk(*header, lines=tuple(body)))

    return hunks


def _position_in_hunk(
    hunk: UnifiedDiffHunk, target: int, side: DiffSide
) -> Optional[PositionResult]:
    old_line = hunk.old_start
    new_line = hunk.new_start

    for position, line in enumerate(hunk.lines, start=1):
        if side == DiffSide.RIGHT:
            if line.kind == LineKind.DELETION:
                old_line += 1
                continue
            if new_line == target:
                unchanged = line.kind == LineKind.CONTEXT
                return PositionResult(
                    position=position,
                    is_unchanged=unchanged,
                    is_added=line.kind == LineKind.ADDITION,
                    reason=UNCHANGED_REASON if unchanged else None,
                )
            new_line += 1
            if line.kind == LineKind.CONTEXT:
                old_line += 1
        else:
            if line.kind == LineKind.ADDITION:
                new_line += 1
                continue
            if old_line == target:
                unchanged = line.kind == LineKind.CONTEXT
                # The old file has no additions, so LEFT never reports is_added.
                return PositionResult(
                    position=position,
                    is_unchanged=unchanged,
                    is_added=False,
                    reason=UNCHANGED_REASON if unchanged else None,
                )
            old_line += 1
            if line.kind == LineKind.CONTEXT:
                new_line += 1

    return None


def map_line_to_position(
    patch: Optional[str],
    line_number: int,
    side: Union[DiffSide, str] = DiffSide.RIGHT,
) -> PositionResult:
    """
    Convert a file line number into GitHub's diff-relative comment position.

    The position counts every context, addition and deletion line of the hunk
    that contains the line, starting at 1 just below the ``@@`` header.
    Whether the line may carry an inline comment is left to the caller:
    only additions (RIGHT) and deletions (LEFT) qualify.

    Args:
        patch: File patch, possibly absent for binary or oversized files
        line_number: 1-indexed line number in the old (LEFT) or new (RIGHT) file
        side: "LEFT" or "RIGHT"

    Returns:
        PositionResult; ``position`` is None with a reason when the line is not reviewable.
    """
    if not patch:
        return PositionResult(position=None, reason=NO_PATCH_REASON)

    side = DiffSide(side)
    target = max(1, int(line_number))
    if target != line_number:
        logger.warning("Line number %s normalized to %s", line_number, target)

    for hunk in parse_patch(patch):
        if not hunk.covers(target, side):
            continue
        result = _position_in_hunk(hunk, target, side)
        if result is not None:
            return result

    return PositionResult(position=None, reason=NOT_IN_DIFF_REASON)


def changed_lines(patch: Optional[str]) -> List[int]:
    """
    Collect the new-file line numbers of every added line in a patch.

    Returns:
        Sorted line numbers; empty when the patch is absent.
    """
    result: List[int] = []
    for hunk in parse_patch(patch):
        new_line = hunk.new_start
        for line in hunk.lines:
            if line.kind == LineKind.ADDITION:
                result.append(new_line)
                new_line += 1
            elif line.kind == LineKind.CONTEXT:
                new_line += 1
    return sorted(result)
