"""Profile pictures on the local filesystem."""

from __future__ import annotations

import uuid
from pathlib import Path

import structlog

_log = structlog.get_logger(__name__)


class ProfilePictureStore:
    """
    Stores picture bytes under ``directory``.

    File names are generated here, never taken from the client, so a
    stored name can be joined onto the directory without traversal checks.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def save(self, user_id: str, data: bytes) -> str:
        self._directory.mkdir(parents=True, exist_ok=True)
        filename = f"{user_id}-{uuid.uuid4()}.jpg"
        (self._directory / filename).write_bytes(data)
        _log.info("profile_picture_saved", user_id=user_id, size_bytes=len(data))
        return filename

    def path_for(self, filename: str) -> Path | None:
        """Return the stored file's path, or None if it is gone."""
        path = self._directory / Path(filename).name
        return path if path.is_file() else None
