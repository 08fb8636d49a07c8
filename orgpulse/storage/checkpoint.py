"""Durable fetch progress so an interrupted run can resume."""

import logging
import os
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class CursorProgress(BaseModel):
    """Position within one paged stream."""

    model_config = ConfigDict(populate_by_name=True)

    end_cursor: str | None = Field(None, alias="endCursor")
    count: int = Field(0, description="Items fetched so far, including resumed runs")
    complete: bool = Field(False, description="Stream was read to its end")


class BatchProgress(BaseModel):
    """How far the issue batches have progressed."""

    model_config = ConfigDict(populate_by_name=True)

    batches_completed: int = Field(0, alias="batchesCompleted")
    total_batches: int = Field(0, alias="totalBatches")


class FetchCheckpoint(BaseModel):
    """Progress record for one organization's fetch run.

    Serialized with the camelCase keys of the checkpoint file:
    ``{org, repos, issues, lastPage, progress, lastUpdated, timestamp}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    org: str
    repos: CursorProgress = Field(default_factory=CursorProgress)
    issues: dict[str, CursorProgress] = Field(default_factory=dict)
    last_page: int = Field(0, alias="lastPage")
    progress: BatchProgress | None = None
    last_updated: str | None = Field(None, alias="lastUpdated")
    timestamp: int | None = Field(None, description="Epoch milliseconds of last save")

    def issue_progress(self, repo: str) -> CursorProgress:
        """Progress for ``repo``'s issues, created on first use."""
        if repo not in self.issues:
            self.issues[repo] = CursorProgress()
        return self.issues[repo]

    def age_seconds(self, now: float) -> float | None:
        if self.timestamp is None:
            return None
        return now - self.timestamp / 1000


class CheckpointStore:
    """Reads and writes a single checkpoint file.

    Loading and saving never raise: a lost checkpoint only costs
    resumability, never the fetch in progress.
    """

    def __init__(
        self,
        path: str | Path = "checkpoint.json",
        max_age: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            path: Checkpoint file location
            max_age: Seconds after which a checkpoint is no longer resumed
            clock: Returns the current epoch time in seconds
        """
        self.path = Path(path)
        self.max_age = max_age
        self._clock = clock

    def load(self) -> FetchCheckpoint | None:
        """Load the checkpoint, or None when missing or unreadable."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("No checkpoint found, starting fresh")
            return None
        except OSError as e:
            logger.warning("Failed to read checkpoint %s: %s", self.path, e)
            return None

        try:
            checkpoint = FetchCheckpoint.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Ignoring unparsable checkpoint %s: %s",
                self.path,
                e.errors()[0]["msg"] if e.errors() else e,
            )
            return None
        except UnicodeDecodeError as e:
            logger.warning("Ignoring undecodable checkpoint %s: %s", self.path, e)
            return None

        logger.info(
            "Checkpoint loaded: org=%s, repos=%d", checkpoint.org, checkpoint.repos.count
        )
        return checkpoint

    def save(self, checkpoint: FetchCheckpoint) -> None:
        """Stamp and write the checkpoint; failures are logged, not raised."""
        now = self._clock()
        checkpoint.last_updated = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
        checkpoint.timestamp = int(now * 1000)

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(
                checkpoint.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
            )
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning("Failed to save checkpoint %s: %s", self.path, e)
            return

        logger.debug(
            "Checkpoint saved: org=%s, repos=%d, issue streams=%d",
            checkpoint.org,
            checkpoint.repos.count,
            len(checkpoint.issues),
        )

    def clear(self) -> None:
        """Remove the checkpoint after a fully successful run."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Failed to clear checkpoint %s: %s", self.path, e)
            return
        logger.info("Checkpoint cleared")

    def is_resumable(self, checkpoint: FetchCheckpoint | None, org: str) -> bool:
        """True only for a checkpoint of ``org`` younger than ``max_age``."""
        if checkpoint is None or checkpoint.org != org:
            return False
        age = checkpoint.age_seconds(self._clock())
        return age is not None and age < self.max_age

    def resume_or_start(self, org: str) -> tuple[FetchCheckpoint, bool]:
        """Return ``(checkpoint, resumed)`` for a run against ``org``.

        A stale checkpoint, or one written for another organization, is
        discarded rather than merged.
        """
        checkpoint = self.load()
        if checkpoint is not None and self.is_resumable(checkpoint, org):
            minutes = (checkpoint.age_seconds(self._clock()) or 0) / 60
            logger.info("Resuming previous fetch for %s (%.0f min ago)", org, minutes)
            return checkpoint, True

        if checkpoint is not None:
            logger.info(
                "Discarding checkpoint for %s (stale or different organization)",
                checkpoint.org,
            )
        return FetchCheckpoint(org=org), False
