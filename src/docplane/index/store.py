"""In-memory index store: project identifier -> current ProjectIndex.

Project identifiers are the caller-supplied path strings, used verbatim.
Indexes are immutable, so readers take a snapshot under the lock and work
on it after release; a concurrent upsert swaps the reference and never
touches an index a reader already holds.
"""

from __future__ import annotations

import asyncio

from docplane.index.models import ProjectIndex


class IndexStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._projects: dict[str, ProjectIndex] = {}

    async def upsert(self, project_id: str, index: ProjectIndex) -> int:
        """Replace the project's index wholesale. Returns the project count."""
        async with self._lock:
            self._projects[project_id] = index
            return len(self._projects)

    async def get(self, project_id: str) -> ProjectIndex | None:
        async with self._lock:
            return self._projects.get(project_id)

    async def list(self) -> list[str]:
        """Project identifiers in first-insertion order."""
        async with self._lock:
            return list(self._projects)

    async def snapshot(self, project_id: str | None = None) -> list[tuple[str, ProjectIndex]]:
        """Current (identifier, index) pairs, or just ``project_id``'s if given.

        An unknown ``project_id`` yields an empty list.
        """
        async with self._lock:
            if project_id is None:
                return list(self._projects.items())
            index = self._projects.get(project_id)
            return [] if index is None else [(project_id, index)]

    async def count(self) -> int:
        async with self._lock:
            return len(self._projects)
