"""Best-effort run checkpoint: the product IDs already written.

Read once at the start of a run and overwritten at the end. Not crash-safe;
a missing or unreadable file simply means "nothing completed yet".
"""

from __future__ import annotations

from pathlib import Path

import structlog
from enricher.models.contracts import Progress

logger = structlog.get_logger()


def load_progress(path: str | Path) -> Progress:
    path = Path(path)
    if not path.exists():
        return Progress()
    try:
        return Progress.model_validate_json(path.read_text())
    except (OSError, ValueError) as exc:
        # ValueError covers undecodable bytes and ValidationError
        logger.warning("progress_unreadable", path=str(path), error=str(exc)[:200])
        return Progress()


def save_progress(path: str | Path, progress: Progress) -> None:
    """Overwrite the checkpoint file. Write failures are logged, not raised."""
    path = Path(path)
    try:
        path.write_text(progress.model_dump_json(indent=2))
    except OSError as exc:
        logger.error("progress_save_failed", path=str(path), error=str(exc)[:200])
        return
    logger.info("progress_saved", path=str(path), completed=len(progress.completed))


def merge_completed(progress: Progress, product_ids: list[int]) -> Progress:
    """New Progress with `product_ids` appended, keeping first-seen order."""
    seen = set(progress.completed)
    merged = list(progress.completed)
    for pid in product_ids:
        if pid not in seen:
            seen.add(pid)
            merged.append(pid)
    return Progress(completed=merged)
