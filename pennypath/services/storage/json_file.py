"""
JSON File Storage Implementation

DESIGN DECISION: A single JSON document holds the whole ledger and its
version number. This is enough for one person's finances and keeps
the file readable by hand.

Atomicity comes from the filesystem: every batch is written to a
temporary file in the same directory and moved over the old file
with os.replace, so a crash leaves either the old ledger or the new
one, never half of a cascade.

TRADEOFFS:
- Whole-file rewrite per batch (fine for personal volumes)
- Version check and replace are not locked across processes;
  the ledger assumes a single writer
"""

import os
import tempfile
from pathlib import Path

from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pennypath.models.state import LedgerBatch, LedgerState
from pennypath.services.storage.interface import (
    ConflictError,
    LedgerStorageInterface,
    StorageError,
)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    Ledger stored as one JSON document on disk.

    A missing file is an empty ledger at version 0.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> LedgerState:
        if not self._path.exists():
            return LedgerState()
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read ledger file {self._path}: {e}") from e
        try:
            return LedgerState.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Ledger file {self._path} is corrupt: {e}") from e

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        reraise=True,
    )
    def _write(self, state: LedgerState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load_state(self) -> LedgerState:
        return self._read()

    def apply_batch(self, batch: LedgerBatch, expected_version: int) -> int:
        state = self._read()
        if state.version != expected_version:
            raise ConflictError(
                f"Ledger file changed since version {expected_version} "
                f"(now {state.version})",
                expected_version=expected_version,
                actual_version=state.version,
            )

        state.apply_batch(batch)
        state.version += 1
        try:
            self._write(state)
        except OSError as e:
            raise StorageError(f"Failed to write ledger file {self._path}: {e}") from e
        return state.version
