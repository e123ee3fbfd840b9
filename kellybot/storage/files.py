"""Whole-record file persistence with atomic writes.

Each logical record (bankroll, bets, aliases) lives in a single file that is
always read and written as a whole. Writes go to a temporary file in the same
directory which is then moved over the target, so a crash or a failed write
leaves the previous file intact.
"""

import json
import logging
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from kellybot.exceptions import PersistenceError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


class RecordFile:
    """A JSON or YAML file holding one whole record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def is_yaml(self) -> bool:
        return self.path.suffix.lower() in YAML_SUFFIXES

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Any | None:
        """Parse the file. Returns None if it does not exist.

        Raises:
            OSError: If the file exists but cannot be read
            ValueError: If the content is not valid JSON/YAML
        """
        if not self.path.exists():
            return None

        text = self.path.read_text(encoding="utf-8")
        if self.is_yaml:
            try:
                return yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.path}: {e}") from e
        return json.loads(text)

    def save(self, data: Any) -> None:
        """Atomically replace the file with ``data``.

        Raises:
            PersistenceError: If serialization or the write fails
        """
        temp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=self.path.parent,
                delete=False,
                suffix=self.path.suffix,
                encoding="utf-8",
            ) as temp_file:
                temp_path = Path(temp_file.name)
                if self.is_yaml:
                    yaml.safe_dump(
                        data,
                        temp_file,
                        default_flow_style=False,
                        allow_unicode=True,
                        sort_keys=False,
                    )
                else:
                    json.dump(data, temp_file, indent=2, ensure_ascii=False)

            # Atomic rename
            shutil.move(str(temp_path), str(self.path))
            logger.debug(f"Saved {self.path}")

        except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            logger.error(f"Failed to write {self.path}: {e}")
            raise PersistenceError(
                f"Failed to save {self.path.name}: {e}", path=str(self.path)
            ) from e

    def quarantine(self) -> Path | None:
        """Copy an unreadable file aside before it gets overwritten.

        The copy is named after the file's mtime, so repeated reads of the same
        broken content produce a single backup.
        """
        try:
            mtime = datetime.fromtimestamp(self.path.stat().st_mtime)
            backup = self.path.with_name(
                f"{self.path.name}.corrupt-{mtime.strftime('%Y%m%d%H%M%S')}"
            )
            if not backup.exists():
                shutil.copy2(self.path, backup)
                logger.warning(f"Copied unreadable {self.path.name} to {backup}")
            return backup
        except OSError as e:
            logger.error(f"Could not back up unreadable {self.path}: {e}")
            return None
