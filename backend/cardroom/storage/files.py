"""YAML snapshot I/O shared by the ledger, the wager book and the wallet.

Writes go to a temporary file in the same directory and are then renamed
over the target, so a crash mid-write leaves the previous snapshot intact.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> dict[str, Any] | None:
    """Load a YAML mapping, or None when the file is missing or empty."""
    if not path.exists():
        logger.info(f"Snapshot not found: {path}. Starting empty.")
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Corrupted YAML in {path}: {e}")
        raise

    if not raw_data:
        logger.warning(f"Empty snapshot file: {path}")
        return None
    return raw_data


def atomic_write_yaml(path: Path, data: dict[str, Any]) -> None:
    """Atomically write a mapping to path as YAML."""
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            delete=False,
            suffix=".yaml",
            encoding="utf-8",
        ) as temp_file:
            yaml.dump(
                data,
                temp_file,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
            temp_path = Path(temp_file.name)

        # Atomic rename
        shutil.move(str(temp_path), str(path))
        logger.debug(f"Saved snapshot to {path}")

    except Exception as e:
        # Clean up temp file if it exists
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to save snapshot {path}: {e}")
        raise
