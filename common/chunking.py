"""Line-aligned chunking and context windows for prompt construction."""

import logging
from dataclasses import dataclass
from typing import Iterable, List

logger = logging.getLogger(__name__)

FALLBACK_CONTEXT_LINES = 100
CHANGED_LINE_PREFIX = ">>> Line {line} (changed): "


@dataclass(frozen=True)
class FileChunk:
    content: str
    start_line: int
    end_line: int


def split_into_chunks(content: str, max_chunk_chars: int) -> List[FileChunk]:
    """
    Split file content into contiguous, line-aligned chunks.

    Each line costs its length plus one for the terminator. A chunk is closed
    when the next line would push it past ``max_chunk_chars``; a single line
    longer than the budget gets a chunk of its own rather than being cut.
    Joining the chunk contents with ``"\\n"`` gives back ``content`` exactly.
    """
    if max_chunk_chars <= 0:
        raise ValueError(f"max_chunk_chars must be positive, got {max_chunk_chars}")

    chunks: List[FileChunk] = []
    current: List[str] = []
    current_size = 0
    start_line = 1

    for line in content.split("\n"):
        line_size = len(line) + 1
        if current and current_size + line_size > max_chunk_chars:
            chunks.append(
                FileChunk(
                    content="\n".join(current),
                    start_line=start_line,
                    end_line=start_line + len(current) - 1,
                )
            )
            start_line += len(current)
            current = []
            current_size = 0

        current.append(line)
        current_size += line_size

    if current:
        chunks.append(
            FileChunk(
                content="\n".join(current),
                start_line=start_line,
                end_line=start_line + len(current) - 1,
            )
        )

    return chunks


def extract_context(content: str, changed_lines: Iterable[int], context_radius: int) -> str:
    """
    Render only the changed lines plus ``context_radius`` lines around each.

    Gaps between included lines become ``... [k lines omitted] ...`` markers
    and changed lines get a ``>>> Line N (changed): `` prefix. Without any
    changed lines the first 100 lines are returned verbatim.
    """
    all_lines = content.split("\n")
    changed = set(changed_lines)

    if not changed:
        return "\n".join(all_lines[:FALLBACK_CONTEXT_LINES])

    radius = max(0, context_radius)
    included = set()
    for line_number in changed:
        start = max(1, line_number - radius)
        end = min(len(all_lines), line_number + radius)
        included.update(range(start, end + 1))

    result: List[str] = []
    last_line = 0
    for line_number in sorted(included):
        if last_line and line_number > last_line + 1:
            result.append(f"... [{line_number - last_line - 1} lines omitted] ...")
        prefix = CHANGED_LINE_PREFIX.format(line=line_number) if line_number in changed else ""
        result.append(f"{prefix}{all_lines[line_number - 1]}")
        last_line = line_number

    return "\n".join(result)
