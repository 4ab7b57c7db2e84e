"""Deployment record persistence for restart survival."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Optional

from orbitraas.errors import ConfigurationError, FileSystemError
from orbitraas.models import DeploymentRecord


class RecordStore:
    """Persists the public deployment record as JSON. Credentials never pass through here."""

    SCHEMA_VERSION = 1

    def __init__(self, state_file: str, logger):
        self.state_file = state_file
        self.logger = logger

    def load(self) -> Optional[DeploymentRecord]:
        if not os.path.exists(self.state_file):
            return None

        try:
            with open(self.state_file, "r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise FileSystemError(f"Could not read state file '{self.state_file}': {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("record"), dict):
            raise FileSystemError(f"State file '{self.state_file}' has invalid format.")

        try:
            return DeploymentRecord.from_dict(data["record"])
        except ConfigurationError as exc:
            raise FileSystemError(f"State file '{self.state_file}' is inconsistent: {exc}") from exc

    def save(self, record: DeploymentRecord):
        directory = os.path.dirname(os.path.abspath(self.state_file))
        payload = {
            "schema_version": self.SCHEMA_VERSION,
            "updated_at": self._now(),
            "record": record.to_dict(),
        }

        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="record-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(payload, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.state_file)
        except OSError as exc:
            raise FileSystemError(f"Could not write state file '{self.state_file}': {exc}") from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
