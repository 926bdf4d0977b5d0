"""Writes rendered documents into the vault folder tree."""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from app.services.errors import StorageError
from app.services.normalizer import generate_slug, slugify

logger = logging.getLogger(__name__)


def _safe_folder(folder: str) -> Path:
    """Slugify each segment so *folder* cannot escape the vault root."""
    parts = [slugify(part) for part in folder.replace("\\", "/").split("/")]
    parts = [part for part in parts if part]
    return Path(*parts) if parts else Path("misc")


class VaultWriter:
    """Persists rendered Markdown under ``<vault>/<folder>/<slug>.md``."""

    def __init__(self, vault_path: Optional[Path]):
        self.vault_path = vault_path

    def _write(self, rendered: str, folder: str, title: str) -> str:
        if self.vault_path is None:
            raise StorageError("VAULT_PATH is not set", details={"folder": folder})
        root = self.vault_path
        if not root.is_dir():
            raise StorageError(f"Vault path {root} is not accessible", details={"folder": folder})
        target_dir = root / _safe_folder(folder)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{generate_slug(title)}.md"
        target.write_text(rendered, encoding="utf-8")
        logger.info("Saved document to %s", target)
        return target.relative_to(root).as_posix()

    async def persist(self, rendered: str, folder: str, title: str = "") -> str:
        """Write *rendered* and return its path relative to the vault root."""
        try:
            return await asyncio.to_thread(self._write, rendered, folder, title)
        except OSError as exc:
            raise StorageError(f"Could not write document: {exc}", details={"folder": folder}) from exc


class TempFileBackup:
    """Degraded storage: a JSON backup file in a scratch directory."""

    def __init__(self, directory: Path):
        self.directory = directory

    def _write(self, rendered: str, folder: str, title: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"backup_{time.time_ns()}.json"
        payload = {
            "title": title,
            "folder": folder,
            "content": rendered,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        logger.warning("Vault unavailable – backup written to %s", path)
        return str(path)

    async def save(self, rendered: str, folder: str, title: str = "") -> str:
        return await asyncio.to_thread(self._write, rendered, folder, title)
