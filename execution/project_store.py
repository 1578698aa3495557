"""Project collection backed by an injected key-value store.

Owns every project (title, outline, chat history, outline history, custom
instructions) and the id of the active project. The collection is read
from the key-value store once, on first use, and written back after every
mutation.
"""

import json
import logging
import re
import threading
import time
import uuid

from jsonschema import ValidationError

from execution.kv_store import KeyValueStore
from execution.outline_history import OutlineHistory
from execution.schema_validator import validate_project

logger = logging.getLogger(__name__)

PROJECTS_KEY = "projects"
CURRENT_PROJECT_KEY = "current_project_id"
INSTRUCTION_KEYS = {
    "system": "system_instructions",
    "style": "style_instructions",
    "technical": "technical_instructions",
}

DEFAULT_TITLE = "Untitled Document"
SENDERS = ("user", "assistant")

# Keys written by older clients, mapped to their current names
_LEGACY_KEYS = {
    "chatHistory": "chat_history",
    "outlineHistory": "outline_history",
    "currentHistoryIndex": "current_history_index",
    "customInstructions": "custom_instructions",
    "lastModified": "last_modified",
}


class ProjectNotFoundError(KeyError):
    """Raised when a project id is not in the collection."""


def _now_ms() -> int:
    """Return the current time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_chat_message(sender: str, message: str) -> dict:
    """Create an immutable chat message record.

    Raises:
        ValueError: If sender is not 'user' or 'assistant'.
    """
    if sender not in SENDERS:
        raise ValueError(f"Invalid chat sender: {sender}. Must be 'user' or 'assistant'")
    return {
        "id": uuid.uuid4().hex,
        "sender": sender,
        "message": message,
        "timestamp": _now_ms(),
    }


def new_project(title: str | None = None) -> dict:
    """Return a blank project seeded with an empty outline snapshot."""
    return {
        "id": uuid.uuid4().hex,
        "title": title or DEFAULT_TITLE,
        "outline": "",
        "chat_history": [],
        "outline_history": [""],
        "current_history_index": 0,
        "custom_instructions": "",
        "last_modified": _now_ms(),
    }


def _migrate_message(raw: dict) -> dict:
    sender = raw.get("sender")
    if sender == "ai":
        sender = "assistant"
    timestamp = raw.get("timestamp")
    return {
        "id": str(raw.get("id") or uuid.uuid4().hex),
        "sender": sender,
        "message": raw.get("message") if isinstance(raw.get("message"), str) else "",
        "timestamp": int(timestamp) if isinstance(timestamp, (int, float)) else 0,
    }


def migrate_project(raw: dict) -> dict:
    """Fill in fields missing from projects saved by older versions.

    A project without history gets its outline as the only snapshot, a
    missing or out-of-range cursor is clamped, and the outline is re-read
    from the snapshot under the cursor.
    """
    project = dict(raw)
    for old, new in _LEGACY_KEYS.items():
        if old in project:
            value = project.pop(old)
            project.setdefault(new, value)

    project["id"] = str(project.get("id") or uuid.uuid4().hex)
    project["title"] = project.get("title") or DEFAULT_TITLE
    outline = project.get("outline") if isinstance(project.get("outline"), str) else ""

    snapshots = project.get("outline_history")
    if not isinstance(snapshots, list) or not snapshots:
        snapshots = [outline]
    history = OutlineHistory(
        [s if isinstance(s, str) else "" for s in snapshots],
        project.get("current_history_index", 0),
    )
    history.apply_to_project(project)

    chat = project.get("chat_history")
    messages = [_migrate_message(m) for m in chat if isinstance(m, dict)] if isinstance(chat, list) else []
    project["chat_history"] = [m for m in messages if m["sender"] in SENDERS]

    if not isinstance(project.get("custom_instructions"), str):
        project["custom_instructions"] = ""
    modified = project.get("last_modified")
    project["last_modified"] = int(modified) if isinstance(modified, (int, float)) else 0
    return project


def export_filename(title: str) -> str:
    """Build a download filename from a project title."""
    stem = re.sub(r"[^a-z0-9]", "_", (title or DEFAULT_TITLE), flags=re.IGNORECASE).lower()
    return f"{stem}.txt"


class ProjectStore:
    """The project collection plus the active project id."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self._projects: list[dict] | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    def load_projects(self) -> list[dict]:
        """Read and migrate the collection from the key-value store.

        Unreadable data starts an empty collection; individual projects that
        fail validation after migration are dropped.
        """
        raw = self.kv.get(PROJECTS_KEY)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logger.warning("Saved projects are not valid JSON, starting fresh: %s", e)
            return []
        if not isinstance(parsed, list):
            logger.warning("Saved projects are not a list, starting fresh")
            return []

        projects = []
        for entry in parsed:
            if not isinstance(entry, dict):
                continue
            project = migrate_project(entry)
            try:
                validate_project(project)
            except ValidationError as e:
                logger.warning("Dropping invalid project %s: %s", project.get("id"), e.message)
                continue
            projects.append(project)
        logger.info("Loaded %d projects", len(projects))
        return projects

    @property
    def projects(self) -> list[dict]:
        with self._lock:
            if self._projects is None:
                self._projects = self.load_projects()
            return self._projects

    def _save(self) -> None:
        self.kv.set(PROJECTS_KEY, json.dumps(self.projects, ensure_ascii=False))

    def _touch(self, project: dict) -> dict:
        project["last_modified"] = max(_now_ms(), project.get("last_modified", 0))
        self._save()
        return project

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    def list_projects(self) -> list[dict]:
        """Return all projects, most recently modified first."""
        with self._lock:
            return sorted(self.projects, key=lambda p: p["last_modified"], reverse=True)

    def get_project(self, project_id: str) -> dict:
        """Return a project by id.

        Raises:
            ProjectNotFoundError: If no project has that id.
        """
        with self._lock:
            for project in self.projects:
                if project["id"] == project_id:
                    return project
        raise ProjectNotFoundError(project_id)

    def create_project(self, title: str | None = None) -> dict:
        """Add a blank project and make it the active one."""
        with self._lock:
            project = new_project(title)
            self.projects.append(project)
            self._save()
            self.kv.set(CURRENT_PROJECT_KEY, project["id"])
            logger.info("Created project %s", project["id"])
            return project

    def delete_project(self, project_id: str) -> bool:
        """Remove a project.

        When the active project is removed, the most recently modified
        remaining project becomes active, or a new one is created.

        Returns:
            True if the project was deleted, False if it didn't exist.
        """
        with self._lock:
            remaining = [p for p in self.projects if p["id"] != project_id]
            if len(remaining) == len(self.projects):
                return False
            self._projects = remaining
            self._save()
            logger.info("Deleted project %s", project_id)

            if self.kv.get(CURRENT_PROJECT_KEY) == project_id:
                if remaining:
                    most_recent = max(remaining, key=lambda p: p["last_modified"])
                    self.kv.set(CURRENT_PROJECT_KEY, most_recent["id"])
                else:
                    self.create_project()
            return True

    def get_current_project(self) -> dict:
        """Return the active project, falling back to the most recent one.

        With an empty collection a new project is created.
        """
        with self._lock:
            current_id = self.kv.get(CURRENT_PROJECT_KEY)
            if current_id:
                for project in self.projects:
                    if project["id"] == current_id:
                        return project
            if self.projects:
                most_recent = max(self.projects, key=lambda p: p["last_modified"])
                self.kv.set(CURRENT_PROJECT_KEY, most_recent["id"])
                return most_recent
            return self.create_project()

    def set_current_project(self, project_id: str) -> dict:
        with self._lock:
            project = self.get_project(project_id)
            self.kv.set(CURRENT_PROJECT_KEY, project_id)
            return project

    # ------------------------------------------------------------------
    # Project mutations
    # ------------------------------------------------------------------

    def rename_project(self, project_id: str, title: str) -> dict:
        with self._lock:
            project = self.get_project(project_id)
            project["title"] = title.strip() or DEFAULT_TITLE
            return self._touch(project)

    def set_custom_instructions(self, project_id: str, instructions: str) -> dict:
        with self._lock:
            project = self.get_project(project_id)
            project["custom_instructions"] = instructions
            return self._touch(project)

    def edit_outline(self, project_id: str, outline: str) -> dict:
        """Record a new outline snapshot, discarding any redo path."""
        with self._lock:
            project = self.get_project(project_id)
            history = OutlineHistory.from_project(project)
            history.append(outline)
            history.apply_to_project(project)
            return self._touch(project)

    def undo_outline(self, project_id: str) -> dict:
        """Step the outline back one snapshot.

        Raises:
            HistoryError: If there is nothing to undo.
        """
        with self._lock:
            project = self.get_project(project_id)
            history = OutlineHistory.from_project(project)
            history.undo()
            history.apply_to_project(project)
            return self._touch(project)

    def redo_outline(self, project_id: str) -> dict:
        """Step the outline forward one snapshot.

        Raises:
            HistoryError: If there is nothing to redo.
        """
        with self._lock:
            project = self.get_project(project_id)
            history = OutlineHistory.from_project(project)
            history.redo()
            history.apply_to_project(project)
            return self._touch(project)

    def append_chat_message(self, project_id: str, sender: str, message: str) -> dict:
        """Append a chat message and return it."""
        with self._lock:
            project = self.get_project(project_id)
            chat_message = new_chat_message(sender, message)
            project["chat_history"].append(chat_message)
            self._touch(project)
            return chat_message

    def clear_project(self, project_id: str) -> dict:
        """Reset title, outline and chat. The cleared outline can be undone."""
        with self._lock:
            project = self.get_project(project_id)
            history = OutlineHistory.from_project(project)
            if history.current:
                history.append("")
            history.apply_to_project(project)
            project["title"] = DEFAULT_TITLE
            project["chat_history"] = []
            return self._touch(project)

    def export_outline(self, project_id: str) -> tuple[str, str]:
        """Return (filename, outline text) for download."""
        project = self.get_project(project_id)
        return export_filename(project["title"]), project["outline"]

    # ------------------------------------------------------------------
    # Global instruction overrides
    # ------------------------------------------------------------------

    def get_instructions(self) -> dict:
        """Return the saved system/style/technical overrides (None when unset)."""
        return {block: self.kv.get(key) or None for block, key in INSTRUCTION_KEYS.items()}

    def save_instructions(self, instructions: dict) -> dict:
        """Save the given override blocks; blocks not mentioned are kept.

        Raises:
            ValueError: If an unknown block name is given.
        """
        unknown = set(instructions) - set(INSTRUCTION_KEYS)
        if unknown:
            raise ValueError(f"Unknown instruction blocks: {sorted(unknown)}")
        for block, value in instructions.items():
            if value is not None:
                self.kv.set(INSTRUCTION_KEYS[block], value)
        return self.get_instructions()

    def reset_instructions(self, block: str) -> dict:
        """Clear one override so the built-in default applies again.

        Raises:
            ValueError: If the block name is unknown.
        """
        if block not in INSTRUCTION_KEYS:
            raise ValueError(
                f"Unknown instruction block: {block}. Must be one of {list(INSTRUCTION_KEYS)}"
            )
        self.kv.set(INSTRUCTION_KEYS[block], "")
        return self.get_instructions()
