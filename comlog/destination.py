"""Destination provider: creates new named output files inside a directory."""

import logging
import os

import aiofiles

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 1000


class DirectoryDestination:
    """Creates files exclusively, so an existing file is never reopened.

    When the requested name is taken, a numeric suffix is inserted before the
    extension (``name_1.csv``, ``name_2.csv``, ...).
    """

    def __init__(self, directory: str):
        self._directory = directory

    @property
    def directory(self) -> str:
        return self._directory

    async def create(self, filename: str):
        """Create a new file and return ``(path, handle)`` with an open aiofiles handle."""
        os.makedirs(self._directory, exist_ok=True)
        stem, ext = os.path.splitext(filename)

        for attempt in range(MAX_NAME_ATTEMPTS):
            name = filename if attempt == 0 else f"{stem}_{attempt}{ext}"
            path = os.path.join(self._directory, name)
            try:
                handle = await aiofiles.open(path, mode="x", encoding="utf-8", newline="")
            except FileExistsError:
                logger.debug("Output name %s already taken, trying next suffix", name)
                continue
            return path, handle

        raise FileExistsError(f"No free file name for {filename} in {self._directory}")
