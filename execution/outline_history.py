"""Undo/redo history for a project's outline.

A linear list of outline snapshots with a cursor. Editing after an undo
discards every snapshot past the cursor, so the redo path is gone once a
new edit is made.
"""


class HistoryError(ValueError):
    """Raised when undo or redo is not possible. State is left unchanged."""


class OutlineHistory:
    """Snapshot list plus cursor. Never empty, cursor always valid."""

    def __init__(self, snapshots: list[str] | None = None, cursor: int = 0):
        self.snapshots = list(snapshots) if snapshots else [""]
        if not isinstance(cursor, int) or isinstance(cursor, bool):
            cursor = 0
        self.cursor = min(max(cursor, 0), len(self.snapshots) - 1)

    @classmethod
    def from_project(cls, project: dict) -> "OutlineHistory":
        return cls(project.get("outline_history"), project.get("current_history_index", 0))

    def apply_to_project(self, project: dict) -> dict:
        """Write snapshots, cursor and current outline back into a project."""
        project["outline_history"] = list(self.snapshots)
        project["current_history_index"] = self.cursor
        project["outline"] = self.current
        return project

    @property
    def current(self) -> str:
        return self.snapshots[self.cursor]

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.snapshots) - 1

    @property
    def revision_count(self) -> int:
        return len(self.snapshots)

    def append(self, outline: str) -> str:
        """Record a new snapshot after the cursor and move to it."""
        del self.snapshots[self.cursor + 1:]
        self.snapshots.append(outline)
        self.cursor = len(self.snapshots) - 1
        return outline

    def undo(self) -> str:
        """Step back one snapshot.

        Raises:
            HistoryError: If the cursor is already at the first snapshot.
        """
        if not self.can_undo:
            raise HistoryError("cannot undo")
        self.cursor -= 1
        return self.current

    def redo(self) -> str:
        """Step forward one snapshot.

        Raises:
            HistoryError: If the cursor is already at the last snapshot.
        """
        if not self.can_redo:
            raise HistoryError("cannot redo")
        self.cursor += 1
        return self.current

    def to_dict(self) -> dict:
        return {
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "current_history_index": self.cursor,
            "revision_count": self.revision_count,
        }
