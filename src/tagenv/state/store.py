# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

"""Durable environment records.

One JSON document per environment id. Writes go to a temp file in the same
directory, are fsynced, then renamed over the record, so a reader sees
either the previous or the new record and never a partial one.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Protocol

from pydantic import ValidationError

from ..deploy.errors import NotFoundError, StateStoreError
from ..deploy.models import ENVIRONMENT_ID_RE, Environment

log = logging.getLogger("tagenv")


class StateStore(Protocol):
    def load(self, environment_id: str) -> Environment: ...

    def save(self, environment: Environment) -> None: ...

    def list(self) -> List[Environment]: ...


class FileStateStore(StateStore):
    """StateStore backed by a directory on local disk."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.records_dir = self.root / "environments"

    def _path(self, environment_id: str) -> Path:
        # ids are validated upstream; this keeps a bad id from escaping the directory
        if not ENVIRONMENT_ID_RE.match(environment_id):
            raise StateStoreError(f"invalid environment id {environment_id!r}")
        return self.records_dir / f"{environment_id}.json"

    def load(self, environment_id: str) -> Environment:
        path = self._path(environment_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"environment {environment_id!r} not found") from None
        except OSError as e:
            raise StateStoreError(f"cannot read {path}: {e}") from e
        try:
            return Environment.model_validate_json(raw)
        except ValidationError as e:
            raise StateStoreError(f"corrupt record {path}: {e}") from e

    def save(self, environment: Environment) -> None:
        path = self._path(environment.id)
        payload = environment.model_dump_json(indent=2)
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{environment.id}.", suffix=".tmp", dir=self.records_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateStoreError(f"cannot write {path}: {e}") from e
        log.debug("[state] saved %s phase=%s", environment.id, environment.phase.value)

    def list(self) -> List[Environment]:
        if not self.records_dir.is_dir():
            return []
        return [self.load(p.stem) for p in sorted(self.records_dir.glob("*.json"))]
