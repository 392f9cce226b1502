"""
Checkpoint Store - Byte-level checkpoint persistence keyed by run and step.

Stores never look inside the payload: the executor hands them the bytes of
a Checkpoint envelope and gets the same bytes back. That keeps backends
interchangeable and leaves the state encoding to the StateSerializer.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path

from agentgraph.config import get_checkpoint_storage_path
from agentgraph.schemas.checkpoint import CheckpointIndex, CheckpointSummary
from agentgraph.utils.io import atomic_write

logger = logging.getLogger(__name__)

_RUN_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_run_id(run_id: str) -> str:
    if not _RUN_ID_PATTERN.match(run_id) or run_id in (".", ".."):
        raise ValueError(f"Invalid run id: {run_id!r}")
    return run_id


class CheckpointStore(ABC):
    """
    Abstract byte-level checkpoint storage.

    Implementations must return exactly the bytes they were given.
    """

    @abstractmethod
    async def save(self, run_id: str, step: int, data: bytes) -> None:
        """Persist ``data`` for (run_id, step), replacing any previous entry."""

    @abstractmethod
    async def load(self, run_id: str, step: int | None = None) -> bytes | None:
        """Return the bytes for a step, or the latest step when None. None if absent."""

    @abstractmethod
    async def list_steps(self, run_id: str) -> list[int]:
        """Return the stored steps for a run in ascending order."""

    @abstractmethod
    async def delete(self, run_id: str, step: int) -> bool:
        """Delete one checkpoint. Returns True if it existed."""

    @abstractmethod
    async def prune_checkpoints(self, run_id: str, max_age_days: int = 7) -> int:
        """Delete a run's checkpoints older than ``max_age_days``. Returns the count."""

    def validate_run_id(self, run_id: str) -> None:
        """Raise ValueError if this store cannot key checkpoints by ``run_id``."""

    async def latest_step(self, run_id: str) -> int | None:
        steps = await self.list_steps(run_id)
        return steps[-1] if steps else None


class InMemoryCheckpointStore(CheckpointStore):
    """Dict-backed store for tests and ephemeral runs."""

    def __init__(self):
        self._data: dict[str, dict[int, tuple[datetime, bytes]]] = {}

    async def save(self, run_id: str, step: int, data: bytes) -> None:
        self._data.setdefault(run_id, {})[step] = (datetime.now(), bytes(data))

    async def load(self, run_id: str, step: int | None = None) -> bytes | None:
        run = self._data.get(run_id)
        if not run:
            return None
        if step is None:
            step = max(run)
        entry = run.get(step)
        return entry[1] if entry else None

    async def list_steps(self, run_id: str) -> list[int]:
        return sorted(self._data.get(run_id, {}))

    async def delete(self, run_id: str, step: int) -> bool:
        run = self._data.get(run_id, {})
        return run.pop(step, None) is not None

    async def prune_checkpoints(self, run_id: str, max_age_days: int = 7) -> int:
        cutoff = datetime.now() - timedelta(days=max_age_days)
        run = self._data.get(run_id, {})
        old = [step for step, (created, _) in run.items() if created < cutoff]
        for step in old:
            del run[step]
        return len(old)


class FileCheckpointStore(CheckpointStore):
    """
    Stores checkpoints as files with atomic writes.

    Directory structure:
        {base_path}/
            {run_id}/
                index.json              # CheckpointIndex manifest
                step_000001.ckpt        # Checkpoint bytes for step 1
                step_000002.ckpt
    """

    def __init__(self, base_path: Path | str | None = None):
        """
        Initialize checkpoint store.

        Args:
            base_path: Root directory; defaults to the configured storage path
        """
        self.base_path = Path(base_path) if base_path else get_checkpoint_storage_path()
        self._index_lock = asyncio.Lock()

    def validate_run_id(self, run_id: str) -> None:
        _check_run_id(run_id)

    def _run_dir(self, run_id: str) -> Path:
        return self.base_path / _check_run_id(run_id)

    def _step_path(self, run_id: str, step: int) -> Path:
        return self._run_dir(run_id) / f"step_{step:06d}.ckpt"

    def _index_path(self, run_id: str) -> Path:
        return self._run_dir(run_id) / "index.json"

    async def save(self, run_id: str, step: int, data: bytes) -> None:
        """
        Atomically save checkpoint bytes and update the run's index.

        Raises:
            OSError: If file write fails
        """
        step_path = self._step_path(run_id, step)

        def _write():
            step_path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(step_path, mode="wb") as f:
                f.write(data)
            logger.debug(f"Saved checkpoint {run_id} step {step}")

        await asyncio.to_thread(_write)

        summary = CheckpointSummary(
            step=step,
            created_at=datetime.now().isoformat(),
            size_bytes=len(data),
        )
        async with self._index_lock:
            index = await self.load_index(run_id) or CheckpointIndex(run_id=run_id)
            index.add(summary)
            await self._write_index(index)

    async def load(self, run_id: str, step: int | None = None) -> bytes | None:
        if step is None:
            index = await self.load_index(run_id)
            if not index or index.latest_step is None:
                logger.warning(f"No checkpoints found for run {run_id}")
                return None
            step = index.latest_step

        step_path = self._step_path(run_id, step)

        def _read() -> bytes | None:
            if not step_path.exists():
                logger.warning(f"Checkpoint file not found: {step_path}")
                return None
            return step_path.read_bytes()

        return await asyncio.to_thread(_read)

    async def load_index(self, run_id: str) -> CheckpointIndex | None:
        """
        Load the checkpoint index for a run.

        Returns:
            CheckpointIndex, or None if missing or unreadable
        """
        index_path = self._index_path(run_id)

        def _read() -> CheckpointIndex | None:
            if not index_path.exists():
                return None
            try:
                return CheckpointIndex.model_validate_json(index_path.read_text())
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load checkpoint index for {run_id}: {e}")
                return None

        return await asyncio.to_thread(_read)

    async def list_steps(self, run_id: str) -> list[int]:
        index = await self.load_index(run_id)
        if not index:
            return []
        return [cp.step for cp in index.checkpoints]

    async def list_checkpoints(self, run_id: str) -> list[CheckpointSummary]:
        """List checkpoint summaries for a run, oldest first."""
        index = await self.load_index(run_id)
        return list(index.checkpoints) if index else []

    async def delete(self, run_id: str, step: int) -> bool:
        step_path = self._step_path(run_id, step)

        def _delete() -> bool:
            if not step_path.exists():
                logger.warning(f"Checkpoint file not found: {step_path}")
                return False
            step_path.unlink()
            logger.info(f"Deleted checkpoint {run_id} step {step}")
            return True

        deleted = await asyncio.to_thread(_delete)

        if deleted:
            async with self._index_lock:
                index = await self.load_index(run_id)
                if index:
                    index.remove(step)
                    await self._write_index(index)

        return deleted

    async def prune_checkpoints(self, run_id: str, max_age_days: int = 7) -> int:
        """
        Prune a run's checkpoints older than max_age_days.

        Returns:
            Number of checkpoints deleted
        """
        index = await self.load_index(run_id)
        if not index or not index.checkpoints:
            return 0

        cutoff = datetime.now() - timedelta(days=max_age_days)

        old_steps = []
        for cp in index.checkpoints:
            try:
                created = datetime.fromisoformat(cp.created_at)
            except ValueError as e:
                logger.warning(f"Failed to parse timestamp for {run_id} step {cp.step}: {e}")
                continue
            if created < cutoff:
                old_steps.append(cp.step)

        deleted_count = 0
        for step in old_steps:
            if await self.delete(run_id, step):
                deleted_count += 1

        if deleted_count > 0:
            logger.info(f"Pruned {deleted_count} checkpoints older than {max_age_days} days")

        return deleted_count

    async def _write_index(self, index: CheckpointIndex) -> None:
        """Write the index atomically. Call with _index_lock held."""
        index_path = self._index_path(index.run_id)

        def _write():
            index_path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(index_path) as f:
                f.write(index.model_dump_json(indent=2))

        await asyncio.to_thread(_write)
        logger.debug(f"Updated checkpoint index for {index.run_id}")
