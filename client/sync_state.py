"""Local record of which server file each client file corresponds to."""

import json
import shutil
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional

from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class TrackedFile:
    """
    A local file known to the server.

    last_updated is the server's last_updated value as of the last successful
    exchange, in ISO-8601 form.
    """
    file_id: str
    relative_path: str
    last_updated: str
    checksum: Optional[str] = None


class SyncState:
    """Tracked files persisted as a JSON file next to the synced directory."""

    def __init__(self, state_path: Path):
        self.state_path = state_path
        self.files: Dict[str, TrackedFile] = self._load()

    def _load(self) -> Dict[str, TrackedFile]:
        if not self.state_path.exists():
            return {}

        try:
            with open(self.state_path, 'r') as f:
                data = json.load(f)
            return {
                file_id: TrackedFile(**entry)
                for file_id, entry in data.get("files", {}).items()
            }
        except (json.JSONDecodeError, TypeError, OSError) as e:
            backup_path = self.state_path.with_suffix('.json.bak')
            logger.warning(f"Sync state unreadable ({e}); backing up to {backup_path.name} and starting fresh")
            try:
                shutil.copy(self.state_path, backup_path)
            except OSError as copy_error:
                logger.warning(f"Could not back up sync state: {copy_error}")
            return {}

    def save(self) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"files": {file_id: asdict(entry) for file_id, entry in self.files.items()}}
        tmp_path = self.state_path.with_suffix('.json.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        tmp_path.replace(self.state_path)

    def track(self, entry: TrackedFile) -> None:
        self.files[entry.file_id] = entry

    def forget(self, file_id: str) -> None:
        self.files.pop(file_id, None)

    def get(self, file_id: str) -> Optional[TrackedFile]:
        return self.files.get(file_id)
