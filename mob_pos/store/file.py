"""
File backed blob store.

All keys live in one JSON document. Every write goes to a temporary file in the
same directory which then replaces the document, so a crash mid-write leaves
the previous version in place and multi-key writes land together.
"""
from __future__ import annotations
import json
import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional
from loguru import logger

from ..errors import StorageError


class FileBlobStore:
    """Blob store persisted as a single JSON object of key -> string."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read store {self.path}: {e}")
            raise StorageError(f"Cannot read data file {self.path}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Data file {self.path} is not a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        data = self._read()
        data.update(values)

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write store {self.path}: {e}")
            raise StorageError(f"Cannot write data file {self.path}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.debug(f"Wrote keys {sorted(values)} to {self.path}")

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
