"""Per-file review: prompt the model, recover its comments, fall back to static findings."""

import logging
from typing import List, Optional

from common.chunking import FileChunk, extract_context, split_into_chunks
from common.diff_parser import changed_lines
from common.github_models import PRFile
from reviewer.config import ReviewerConfig, config
from reviewer.model_client import ModelCallError, ModelClient
from reviewer.models.review_schemas import Finding, ReviewComment
from reviewer.prompts import build_review_prompt
from reviewer.response_recovery import recover
from reviewer.static_comments import findings_to_comments

logger = logging.getLogger(__name__)


def _dedup_comments(comments: List[ReviewComment]) -> List[ReviewComment]:
    """Remove duplicate comments by (file, line, normalized body prefix)."""
    seen: set[tuple[str, Optional[int], str]] = set()
    deduped: List[ReviewComment] = []
    for comment in comments:
        # First 5 words of the lowercased body catch near-duplicate wording
        body_key = " ".join(comment.body.lower().split()[:5])
        key = (comment.file, comment.line, body_key)
        if key not in seen:
            seen.add(key)
            deduped.append(comment)
    return deduped


def _chunk_file_change(file_change: PRFile, chunk: FileChunk, total_chars: int) -> PRFile:
    # Additions/deletions are apportioned by the chunk's share of the file
    share = len(chunk.content) / total_chars if total_chars else 0
    return file_change.model_copy(
        update={
            "additions": round(file_change.additions * share),
            "deletions": round(file_change.deletions * share),
        }
    )


def _offset_lines(comments: List[ReviewComment], chunk: FileChunk) -> List[ReviewComment]:
    offset = chunk.start_line - 1
    if not offset:
        return comments
    return [
        c.model_copy(update={"line": c.line + offset}) if c.line is not None else c
        for c in comments
    ]


class FileReviewer:
    """Reviews one file at a time against the configured model."""

    def __init__(self, model_client: ModelClient, settings: ReviewerConfig = config):
        self.model_client = model_client
        self.settings = settings

    async def _ask_model(self, prompt: str, file_path: str) -> List[ReviewComment]:
        response = await self.model_client.generate(prompt)
        return recover(response.text, file_path, was_truncated=not response.done)

    async def _review_chunks(
        self,
        content: str,
        file_path: str,
        findings: List[Finding],
        file_change: PRFile,
    ) -> List[ReviewComment]:
        chunks = split_into_chunks(content, self.settings.chunk_size)
        logger.info(
            f"File {file_path} is large ({len(content)} chars); "
            f"split into {len(chunks)} chunk(s) of <= {self.settings.chunk_size} chars"
        )

        comments: List[ReviewComment] = []
        for index, chunk in enumerate(chunks, start=1):
            logger.info(
                f"  Processing chunk {index}/{len(chunks)} "
                f"({len(chunk.content)} chars, lines {chunk.start_line}-{chunk.end_line})"
            )
            chunk_findings = [
                f for f in findings
                if f.line is not None and chunk.start_line <= f.line <= chunk.end_line
            ]
            prompt = build_review_prompt(
                file_path,
                chunk.content,
                _chunk_file_change(file_change, chunk, len(content)),
                chunk_findings,
                max_findings=self.settings.max_static_findings_in_prompt,
                chunk_number=index,
                total_chunks=len(chunks),
            )
            try:
                chunk_comments = await self._ask_model(prompt, file_path)
            except ModelCallError as exc:
                # Other chunks are still worth reviewing
                logger.error(f"Error processing chunk {index}/{len(chunks)} of {file_path}: {exc}")
                continue
            comments.extend(_offset_lines(chunk_comments, chunk))

        logger.info(f"Collected {len(comments)} comment(s) from {len(chunks)} chunk(s)")
        return comments

    async def _review_whole(
        self,
        content: str,
        file_path: str,
        findings: List[Finding],
        file_change: PRFile,
    ) -> List[ReviewComment]:
        context = extract_context(content, changed_lines(file_change.patch), self.settings.context_lines)
        if content:
            reduction = (len(content) - len(context)) / len(content) * 100
            logger.info(
                f"Context extraction: {len(content)} -> {len(context)} chars "
                f"({reduction:.1f}% reduction) for {file_path}"
            )

        prompt = build_review_prompt(
            file_path,
            context,
            file_change,
            findings,
            max_findings=self.settings.max_static_findings_in_prompt,
        )
        try:
            return await self._ask_model(prompt, file_path)
        except ModelCallError as exc:
            logger.warning(f"Model call failed for {file_path} ({exc}); falling back to rule-based comments")
            return findings_to_comments(findings, min_severity="warning", include_info=False)

    async def review_file(
        self,
        content: str,
        file_path: str,
        findings: List[Finding],
        file_change: PRFile,
    ) -> List[ReviewComment]:
        """
        Produce review comments for one file.

        Files larger than the chunk budget are reviewed chunk by chunk and the
        chunk-relative line numbers are shifted back to file line numbers.
        Smaller files are reviewed through a context window around the changed
        lines. The result is deduplicated and capped at ``ai_max_comments``.
        """
        if len(content) > self.settings.chunk_size:
            comments = await self._review_chunks(content, file_path, findings, file_change)
        else:
            comments = await self._review_whole(content, file_path, findings, file_change)

        comments = _dedup_comments(comments)
        return comments[: self.settings.ai_max_comments]
