"""
batch_scheduler.py – bounded-concurrency batch review

Holds up to MAX_BATCH_FILES images, then reviews them through a fixed pool of
asyncio workers pulling from one shared FIFO queue. Each item moves
pending → processing → complete|error exactly once per run; callbacks report
every transition and the completed/total progress after every finished item.
"""

import asyncio
import mimetypes
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from asset_review.utils.config import BATCH_CONCURRENCY, MAX_BATCH_FILES
from asset_review.utils.logger import get_logger


logger = get_logger("batch-scheduler")


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (ItemStatus.COMPLETE, ItemStatus.ERROR)


_RANK = {ItemStatus.PENDING: 0, ItemStatus.PROCESSING: 1, ItemStatus.COMPLETE: 2, ItemStatus.ERROR: 2}


@dataclass(frozen=True)
class ItemOutcome:
    status: ItemStatus = ItemStatus.PENDING
    ghost_mode: bool = False
    result: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def advance(self, status: ItemStatus, **fields) -> "ItemOutcome":
        """Next state; refuses to stay put or move backwards."""
        if _RANK[status] <= _RANK[self.status]:
            raise ValueError(f"illegal transition {self.status.value} → {status.value}")
        return replace(self, status=status, **fields)

    @property
    def passed(self) -> Optional[bool]:
        if self.status is not ItemStatus.COMPLETE or self.ghost_mode or not self.result:
            return None
        return bool(self.result.get("pass"))


@dataclass(frozen=True)
class UploadItem:
    id: str
    path: Path
    display_name: str
    size_bytes: int
    mime_type: str
    preview_ref: str


@dataclass
class AddResult:
    accepted: list[UploadItem] = field(default_factory=list)
    rejected: list[tuple[Path, str]] = field(default_factory=list)


@dataclass
class BatchSummary:
    total: int = 0
    completed: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    ghost: int = 0


ReviewCall = Callable[[UploadItem, str], Awaitable[dict[str, Any]]]
UpdateCallback = Callable[[UploadItem, ItemOutcome], None]
ProgressCallback = Callable[[int, int], None]


def _new_item_id() -> str:
    return uuid.uuid4().hex[:9]


class BatchScheduler:
    def __init__(
        self,
        max_files: int = MAX_BATCH_FILES,
        concurrency: int = BATCH_CONCURRENCY,
        on_update: Optional[UpdateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        if max_files < 1 or concurrency < 1:
            raise ValueError("max_files and concurrency must be positive")
        self.max_files = max_files
        self.concurrency = concurrency
        self.on_update = on_update
        self.on_progress = on_progress

        self._items: dict[str, UploadItem] = {}
        self._outcomes: dict[str, ItemOutcome] = {}
        self._queue: deque[UploadItem] = deque()
        self._unfinished: set[str] = set()
        self._finished: set[str] = set()
        self.running = False
        self.completed = 0
        self.total = 0
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def items(self) -> list[UploadItem]:
        return list(self._items.values())

    def outcome(self, item_id: str) -> Optional[ItemOutcome]:
        return self._outcomes.get(item_id)

    # =============================
    # Batch contents
    # =============================
    def add_files(self, paths: Iterable[Union[str, Path]]) -> AddResult:
        """Accepts image files until the batch is full; everything else is reported back."""
        added = AddResult()
        for raw in paths:
            path = Path(raw)
            mime, _ = mimetypes.guess_type(path.name)
            if not path.is_file():
                added.rejected.append((path, "file not found"))
                continue
            if not mime or not mime.startswith("image/"):
                added.rejected.append((path, "not an image"))
                continue
            if len(self._items) >= self.max_files:
                added.rejected.append((path, f"batch is full (max {self.max_files})"))
                continue
            item = UploadItem(
                id=_new_item_id(),
                path=path,
                display_name=path.name,
                size_bytes=path.stat().st_size,
                mime_type=mime,
                preview_ref=path.resolve().as_uri(),
            )
            self._items[item.id] = item
            self._outcomes[item.id] = ItemOutcome()
            added.accepted.append(item)
        if added.rejected:
            logger.warning("Rejected %d file(s) from batch", len(added.rejected))
        return added

    def remove(self, item_id: str) -> bool:
        """
        Drops an item. A queued item is then skipped by the workers; an in-flight
        item keeps running but its result is discarded. A finished item is taken
        back out of the progress count, so the summary always adds up.
        """
        if self._items.pop(item_id, None) is None:
            return False
        self._outcomes.pop(item_id, None)
        if item_id in self._unfinished:
            self._unfinished.discard(item_id)
            self.total -= 1
            self._emit_progress()
        elif item_id in self._finished:
            self._finished.discard(item_id)
            self.completed -= 1
            self.total -= 1
            self._emit_progress()
        return True

    def clear(self) -> None:
        for item_id in list(self._items):
            self.remove(item_id)
        self._queue.clear()
        if not self.running:
            self.completed = 0
            self.total = 0

    # =============================
    # Processing
    # =============================
    async def run(self, asset_type: str, review: ReviewCall) -> BatchSummary:
        if self.running:
            raise RuntimeError("batch is already running")
        if not asset_type:
            raise ValueError("asset_type is required")

        self._queue = deque(self._items.values())
        self._unfinished = set(self._items)
        self._finished = set()
        self.total = len(self._queue)
        self.completed = 0
        self.peak_in_flight = 0
        for item in self._queue:
            self._outcomes[item.id] = ItemOutcome()
            self._notify(item)
        self._emit_progress()

        n_workers = min(self.concurrency, len(self._queue))
        logger.info("Batch started: %d file(s), %d worker(s), asset type %s", self.total, n_workers, asset_type)
        self.running = True
        try:
            await asyncio.gather(*(self._worker(asset_type, review) for _ in range(n_workers)))
        finally:
            self.running = False

        summary = self.summary()
        logger.info(
            "Batch finished: %d/%d complete, %d passed, %d failed, %d errors, %d ghost",
            summary.completed, summary.total, summary.passed, summary.failed, summary.errors, summary.ghost,
        )
        return summary

    async def _worker(self, asset_type: str, review: ReviewCall) -> None:
        # popleft runs between awaits, so no two workers ever take the same item
        while self._queue:
            item = self._queue.popleft()
            if item.id not in self._items:
                continue
            self._transition(item, ItemStatus.PROCESSING)

            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                response = await review(item, asset_type)
                status, fields = ItemStatus.COMPLETE, self._complete_fields(response)
            except Exception as e:
                logger.error("Review failed for %s: %s", item.display_name, e)
                status, fields = ItemStatus.ERROR, {"error": str(e) or e.__class__.__name__}
            finally:
                self.in_flight -= 1

            if item.id not in self._items:
                logger.debug("Discarding late result for removed item %s", item.display_name)
                continue
            self._transition(item, status, **fields)
            self._unfinished.discard(item.id)
            self._finished.add(item.id)
            self.completed += 1
            self._emit_progress()

    @staticmethod
    def _complete_fields(response: dict[str, Any]) -> dict[str, Any]:
        if response.get("ghostMode"):
            return {"ghost_mode": True, "message": response.get("message")}
        return {"ghost_mode": False, "result": response.get("result")}

    def _transition(self, item: UploadItem, status: ItemStatus, **fields) -> None:
        self._outcomes[item.id] = self._outcomes[item.id].advance(status, **fields)
        self._notify(item)

    # a failing callback is logged; it must not take a worker down mid-batch
    def _notify(self, item: UploadItem) -> None:
        if not self.on_update:
            return
        try:
            self.on_update(item, self._outcomes[item.id])
        except Exception:
            logger.exception("on_update callback failed for %s", item.display_name)

    def _emit_progress(self) -> None:
        if not self.on_progress:
            return
        try:
            self.on_progress(self.completed, self.total)
        except Exception:
            logger.exception("on_progress callback failed")

    def summary(self) -> BatchSummary:
        s = BatchSummary(total=self.total, completed=self.completed)
        for outcome in self._outcomes.values():
            if outcome.status is ItemStatus.ERROR:
                s.errors += 1
            elif outcome.status is ItemStatus.COMPLETE:
                if outcome.ghost_mode:
                    s.ghost += 1
                elif outcome.passed:
                    s.passed += 1
                else:
                    s.failed += 1
        return s
