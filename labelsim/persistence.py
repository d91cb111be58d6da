"""
PersistenceStrategy interface for pluggable storage backends.

The weekly tick is pure; persistence only happens at the orchestrator boundary once
a week has been fully computed. A run can live entirely in memory.

Two included implementations:
1. InMemoryPersistence - Dict-based storage, data lost on exit (tests, prototyping)
2. JsonPersistence - File-based storage, human-readable JSON (save games, debugging)

Usage pattern:
    persistence = JsonPersistence(Config.DATA_DIR)
    await persistence.initialize()
    await persistence.save_snapshot(run_id, week, snapshot)
    await persistence.close()

Backends report failures as PersistenceError so callers can tell "the week was
computed but not saved" apart from a rejected week.
"""

import asyncio
import json
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from .exceptions import PersistenceError
from .schemas import SimulationRun, Snapshot, WeekSummary


class PersistenceStrategy(ABC):
    """Abstract base class for simulation persistence.

    Method categories:
    1. Lifecycle: initialize(), close()
    2. Run metadata: save_run_metadata(), update_run_status(), get_run()
    3. Snapshots: save_snapshot(), get_snapshot(), latest_week()
    4. Summaries: save_summary(), get_summary()
    5. Cleanup: delete_run()

    All methods are async so file or database backends never block the caller's loop.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Set up the backend (create directories, open connections)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources. Stored data stays readable."""
        pass

    @abstractmethod
    async def save_run_metadata(self, run: SimulationRun) -> None:
        pass

    @abstractmethod
    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        pass

    @abstractmethod
    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        pass

    @abstractmethod
    async def save_snapshot(self, run_id: UUID, week: int, snapshot: Snapshot) -> None:
        """
        Save the snapshot at the end of `week` (week 0 is the starting state).

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def get_snapshot(self, run_id: UUID, week: int) -> Optional[Snapshot]:
        """
        Retrieve the snapshot saved for `week`.

        Returns:
            Snapshot if found, None otherwise

        Raises:
            PersistenceError: If stored data cannot be read or parsed
        """
        pass

    @abstractmethod
    async def save_summary(self, run_id: UUID, summary: WeekSummary) -> None:
        pass

    @abstractmethod
    async def get_summary(self, run_id: UUID, week: int) -> Optional[WeekSummary]:
        pass

    @abstractmethod
    async def latest_week(self, run_id: UUID) -> Optional[int]:
        """Highest week with a saved snapshot, or None when the run has none."""
        pass

    @abstractmethod
    async def delete_run(self, run_id: UUID) -> None:
        pass


class InMemoryPersistence(PersistenceStrategy):
    """In-memory persistence using Python dicts (no files).

    Snapshots are stored as deep copies so later mutation by the caller cannot
    rewrite history.

    Storage structure:
    - runs: Dict[UUID, SimulationRun]
    - snapshots: Dict[(run_id, week), Snapshot]
    - summaries: Dict[(run_id, week), WeekSummary]
    """

    def __init__(self):
        self.runs: Dict[UUID, SimulationRun] = {}
        self.snapshots: Dict[Tuple[UUID, int], Snapshot] = {}
        self.summaries: Dict[Tuple[UUID, int], WeekSummary] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        """No-op: data is kept so callers can read results after the run."""
        pass

    async def save_run_metadata(self, run: SimulationRun) -> None:
        self.runs[run.id] = run.model_copy(deep=True)

    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        if run_id in self.runs:
            self.runs[run_id].status = status
            if end_time:
                self.runs[run_id].end_time = end_time

    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        return self.runs.get(run_id)

    async def save_snapshot(self, run_id: UUID, week: int, snapshot: Snapshot) -> None:
        self.snapshots[(run_id, week)] = snapshot.model_copy(deep=True)

    async def get_snapshot(self, run_id: UUID, week: int) -> Optional[Snapshot]:
        snapshot = self.snapshots.get((run_id, week))
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    async def save_summary(self, run_id: UUID, summary: WeekSummary) -> None:
        self.summaries[(run_id, summary.week)] = summary.model_copy(deep=True)

    async def get_summary(self, run_id: UUID, week: int) -> Optional[WeekSummary]:
        return self.summaries.get((run_id, week))

    async def latest_week(self, run_id: UUID) -> Optional[int]:
        weeks = [week for (rid, week) in self.snapshots if rid == run_id]
        return max(weeks) if weeks else None

    async def delete_run(self, run_id: UUID) -> None:
        self.runs.pop(run_id, None)
        self.snapshots = {k: v for k, v in self.snapshots.items() if k[0] != run_id}
        self.summaries = {k: v for k, v in self.summaries.items() if k[0] != run_id}


class JsonPersistence(PersistenceStrategy):
    """File-based persistence using JSON for human-readable storage.

    Directory structure:
    ```
    {base_path}/
      {run_id}/
        run.json                  # SimulationRun metadata
        snapshots/
          00000.json              # Snapshot before week 1
          00001.json              # Snapshot after week 1
        summaries/
          00001.json              # WeekSummary for week 1
    ```

    Week padding is 5 digits so files sort lexicographically. All file I/O runs in a
    thread (asyncio.to_thread). Snapshot files are written to a temporary name and
    renamed so a crash never leaves a half-written week behind.
    """

    def __init__(self, base_path: Path | str = "simulation_runs"):
        self.base_path = Path(base_path)

    def _run_dir(self, run_id: UUID) -> Path:
        return self.base_path / str(run_id)

    async def _write_json(self, operation: str, path: Path, payload: object) -> None:
        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(payload, indent=2), "utf-8")
            tmp.replace(path)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise PersistenceError(operation=operation, underlying=exc) from exc

    async def _read_json(self, operation: str, path: Path) -> Optional[object]:
        if not path.exists():
            return None
        try:
            text = await asyncio.to_thread(path.read_text, "utf-8")
            return json.loads(text)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(operation=operation, underlying=exc) from exc

    async def initialize(self) -> None:
        try:
            await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(operation="initialize", underlying=exc) from exc

    async def close(self) -> None:
        # Nothing to clean up for JSON persistence
        return None

    async def save_run_metadata(self, run: SimulationRun) -> None:
        path = self._run_dir(run.id) / "run.json"
        await self._write_json("save_run_metadata", path, run.model_dump(mode="json"))

    async def update_run_status(
        self, run_id: UUID, status: str, end_time: Optional[datetime] = None
    ) -> None:
        path = self._run_dir(run_id) / "run.json"
        payload = await self._read_json("update_run_status", path)
        if payload is None:  # Nothing to update yet
            return
        payload["status"] = status
        payload["end_time"] = end_time.isoformat() if end_time else None
        await self._write_json("update_run_status", path, payload)

    async def get_run(self, run_id: UUID) -> Optional[SimulationRun]:
        payload = await self._read_json("get_run", self._run_dir(run_id) / "run.json")
        if payload is None:
            return None
        return SimulationRun.model_validate(payload)

    async def save_snapshot(self, run_id: UUID, week: int, snapshot: Snapshot) -> None:
        path = self._run_dir(run_id) / "snapshots" / f"{week:05d}.json"
        await self._write_json("save_snapshot", path, snapshot.model_dump(mode="json"))

    async def get_snapshot(self, run_id: UUID, week: int) -> Optional[Snapshot]:
        path = self._run_dir(run_id) / "snapshots" / f"{week:05d}.json"
        payload = await self._read_json("get_snapshot", path)
        if payload is None:
            return None
        try:
            return Snapshot.model_validate(payload)
        except PydanticValidationError as exc:
            raise PersistenceError(operation="get_snapshot", underlying=exc) from exc

    async def save_summary(self, run_id: UUID, summary: WeekSummary) -> None:
        path = self._run_dir(run_id) / "summaries" / f"{summary.week:05d}.json"
        await self._write_json("save_summary", path, summary.model_dump(mode="json"))

    async def get_summary(self, run_id: UUID, week: int) -> Optional[WeekSummary]:
        path = self._run_dir(run_id) / "summaries" / f"{week:05d}.json"
        payload = await self._read_json("get_summary", path)
        if payload is None:
            return None
        try:
            return WeekSummary.model_validate(payload)
        except PydanticValidationError as exc:
            raise PersistenceError(operation="get_summary", underlying=exc) from exc

    async def latest_week(self, run_id: UUID) -> Optional[int]:
        directory = self._run_dir(run_id) / "snapshots"
        if not directory.exists():
            return None
        files: List[Path] = await asyncio.to_thread(lambda: sorted(directory.glob("*.json")))
        return int(files[-1].stem) if files else None

    async def delete_run(self, run_id: UUID) -> None:
        run_dir = self._run_dir(run_id)
        if run_dir.exists():
            await asyncio.to_thread(shutil.rmtree, run_dir)
