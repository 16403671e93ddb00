"""Summaries and tags for file cards.

The engine asks the configured language model to describe files in batches.
Whenever the model is unavailable or skips a file, a deterministic heuristic
derived from the path, name and extension fills in, so every card leaving the
engine carries a summary and at least one tag.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import textwrap
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence

from taxonomist.agents.language_model import JSONProgram, LanguageModelAgent
from taxonomist.agents.parsing import load_json_object, validate_items
from taxonomist.planner.models import FileCard
from taxonomist.workers import WorkerPool

from .models import CardDescription, ClassificationBatch

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
MAX_TAGS = 25
MAX_SUMMARY_CHARS = 200

_CATEGORY_BY_EXTENSION = {
    "pdf": "pdf",
    "doc": "document",
    "docx": "document",
    "odt": "document",
    "rtf": "document",
    "pages": "document",
    "txt": "text",
    "md": "text",
    "rst": "text",
    "log": "text",
    "csv": "spreadsheet",
    "tsv": "spreadsheet",
    "xls": "spreadsheet",
    "xlsx": "spreadsheet",
    "ods": "spreadsheet",
    "ppt": "presentation",
    "pptx": "presentation",
    "key": "presentation",
    "jpg": "image",
    "jpeg": "image",
    "png": "image",
    "gif": "image",
    "heic": "image",
    "webp": "image",
    "svg": "image",
    "mp3": "audio",
    "wav": "audio",
    "flac": "audio",
    "m4a": "audio",
    "ogg": "audio",
    "mp4": "video",
    "mov": "video",
    "mkv": "video",
    "avi": "video",
    "webm": "video",
    "zip": "archive",
    "tar": "archive",
    "gz": "archive",
    "7z": "archive",
    "rar": "archive",
    "py": "code",
    "js": "code",
    "ts": "code",
    "java": "code",
    "go": "code",
    "rs": "code",
    "c": "code",
    "cpp": "code",
    "html": "code",
    "json": "data",
    "xml": "data",
    "yaml": "data",
    "yml": "data",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NAME_SPLIT = re.compile(r"[-_\s]+")
_YEAR = re.compile(r"(?<!\d)(19[5-9]\d|20\d\d)(?!\d)")

CLASSIFICATION_INSTRUCTIONS = textwrap.dedent(
    """\
    Describe each file so it can be organised into virtual folders. You only see
    the file's location, name, extension and size. For every file return a concise
    summary (at most 200 characters) and 10-20 lower-case tags: topics from the
    path segments, parts of the file name, dates or years, and the kind of file.

    Respond with JSON shaped like:
    {"files": [{"fileId": "abc", "summary": "Invoice from ACME for March 2024",
                "tags": ["invoice", "acme", "2024", "pdf"]}]}
    JSON only, no markdown."""
)


def _clean_fragment(value: str) -> str:
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def category_for_extension(extension: str) -> str:
    """Return the coarse file category used as a tag, e.g. ``"image"``."""
    return _CATEGORY_BY_EXTENSION.get(extension.lower(), "file")


def heuristic_summary(card: FileCard) -> str:
    """Describe ``card`` by its file type, e.g. ``"PDF document"``."""
    extension = card.extension.upper()
    category = category_for_extension(card.extension)
    if category == "pdf":
        return "PDF document"
    if category in {"image", "audio", "video"}:
        return f"{category.title()} file ({extension})"
    if category in {"document", "spreadsheet", "presentation"}:
        return f"{extension} {category}"
    if extension:
        return f"{extension} file"
    return "File"


def heuristic_tags(card: FileCard, base_tags: Iterable[str] = ()) -> List[str]:
    """Derive tags from ``card``'s location and name, after ``base_tags``.

    Tags are lower-cased, de-duplicated in first-seen order and capped at
    :data:`MAX_TAGS`.
    """

    tags: Dict[str, None] = {}

    def add(tag: str) -> None:
        tag = tag.strip().lower()
        if tag:
            tags.setdefault(tag, None)

    for tag in base_tags:
        add(tag)
    if card.extension:
        add(card.extension)

    location = card.relative_path or card.name
    for segment in PurePosixPath(location.replace("\\", "/")).parts:
        cleaned = _clean_fragment(PurePosixPath(segment).stem)
        if 1 < len(cleaned) < 40:
            add(cleaned)

    for part in _NAME_SPLIT.split(PurePosixPath(card.name).stem):
        cleaned = _clean_fragment(part)
        if 1 < len(cleaned) < 40:
            add(cleaned)

    for year in _YEAR.findall(f"{location} {card.name}"):
        add(year)

    add(category_for_extension(card.extension))
    return list(tags)[:MAX_TAGS]


def describe_heuristically(card: FileCard) -> FileCard:
    """Return ``card`` with a heuristic summary and tags filled in."""
    return card.model_copy(
        update={
            "summary": card.summary or heuristic_summary(card),
            "tags": heuristic_tags(card, card.tags),
        }
    )


class ClassificationEngine(LanguageModelAgent):
    """Fill in summaries and tags for cards that lack them."""

    def __init__(
        self,
        program: Optional[JSONProgram] = None,
        *,
        pool: Optional[WorkerPool] = None,
        timeout_seconds: float = 180.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        super().__init__(program, pool=pool, timeout_seconds=timeout_seconds)
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._batch_size = batch_size

    async def classify(self, cards: Sequence[FileCard]) -> ClassificationBatch:
        """Describe every card in ``cards``.

        Cards that already carry a summary and tags pass through unchanged.

        Args:
            cards: Cards produced by ingestion.

        Returns:
            ClassificationBatch: Described cards in input order, plus the ids
            that were described heuristically.
        """

        pending = [card for card in cards if not (card.summary and card.tags)]
        batch = ClassificationBatch()
        if not pending:
            batch.cards = list(cards)
            return batch

        descriptions: Dict[str, CardDescription] = {}
        if self.available:
            chunks = [
                pending[start : start + self._batch_size]
                for start in range(0, len(pending), self._batch_size)
            ]
            LOGGER.info("Classifying %d files in %d batch(es)", len(pending), len(chunks))
            results = await asyncio.gather(
                *(
                    self._describe_batch(chunk, index + 1, len(chunks))
                    for index, chunk in enumerate(chunks)
                )
            )
            for result in results:
                descriptions.update(result)

        pending_ids = {card.file_id for card in pending}
        for card in cards:
            if card.file_id not in pending_ids:
                batch.cards.append(card)
                continue
            description = descriptions.get(card.file_id)
            if description is None:
                batch.cards.append(describe_heuristically(card))
                batch.heuristic_file_ids.append(card.file_id)
                continue
            summary = description.summary.strip()[:MAX_SUMMARY_CHARS] or heuristic_summary(card)
            batch.cards.append(
                card.model_copy(
                    update={
                        "summary": card.summary or summary,
                        "tags": heuristic_tags(card, [*card.tags, *description.tags]),
                    }
                )
            )

        if batch.heuristic_file_ids:
            LOGGER.info("Described %d files heuristically", len(batch.heuristic_file_ids))
        return batch

    async def _describe_batch(
        self, chunk: List[FileCard], index: int, total: int
    ) -> Dict[str, CardDescription]:
        label = f"classification batch {index}/{total}"
        payload = json.dumps(
            {
                "files": [
                    {
                        "fileId": card.file_id,
                        "relativePath": card.relative_path,
                        "name": card.name,
                        "extension": card.extension,
                        "size": card.size,
                    }
                    for card in chunk
                ]
            },
            indent=2,
            ensure_ascii=False,
        )
        response = await self._ask(CLASSIFICATION_INSTRUCTIONS, payload, label=label)
        if response.is_fallback:
            return {}
        data = load_json_object(response.value, label=label)
        if data is None:
            return {}
        requested = {card.file_id for card in chunk}
        return {
            item.file_id: item
            for item in validate_items(CardDescription, data.get("files"), label="file description")
            if item.file_id in requested
        }


__all__ = [
    "ClassificationEngine",
    "category_for_extension",
    "describe_heuristically",
    "heuristic_summary",
    "heuristic_tags",
]
