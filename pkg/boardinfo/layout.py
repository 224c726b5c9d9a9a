"""
Layout configuration engine.

Owns two copies of an instance's LayoutConfig:
  working - mutated by every edit (create/delete section, assign/remove field)
  saved   - the last durably stored value, or what was loaded

The layout has unsaved changes exactly when the two differ. save() promotes
the working copy after the store accepts it; cancel() throws the working copy
away. Edits are validated before anything is touched, so a rejected edit
leaves the working copy as it was.
"""
import asyncio
import copy
import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional

from .errors import (
    DuplicateAssignmentError,
    InvalidStateError,
    IOFailure,
    MalformedData,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from .schema import (
    Column,
    DEFAULT_SECTION_ID,
    DEFAULT_SECTION_TITLE,
    EngineState,
    Field,
    LayoutConfig,
    Section,
    default_layout,
)

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "layout_sections_"


def storage_key(instance_id: str) -> str:
    """Gateway key under which an instance's layout is stored."""
    return f"{STORAGE_KEY_PREFIX}{instance_id}"


def make_section_id() -> str:
    """Sortable unique section id (ms timestamp + random hex)."""
    ts = int(time.time() * 1000)
    return f"section_{ts}_{uuid.uuid4().hex[:8]}"


def make_field_id(column_id: str) -> str:
    """Field id derived from the bound column and the creation time."""
    ts = int(time.time() * 1000)
    return f"field_{column_id}_{ts}"


class LayoutConfigEngine:
    """Working/saved layout pair for one widget instance."""

    def __init__(self, gateway, identity_column: Optional[Column] = None):
        self.gateway = gateway
        self.identity_column = identity_column
        self.instance_id: Optional[str] = None
        self.state = EngineState.UNINITIALIZED
        self._working: Optional[LayoutConfig] = None
        self._saved: Optional[LayoutConfig] = None
        self.subscribers: Dict[str, list] = {}  # event_type -> list of callbacks

    # ──────────────────────────────────────────
    # Observers
    # ──────────────────────────────────────────

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type (loaded, changed, saved, reverted)."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        for callback in self.subscribers.get(event_type, []):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")

    # ──────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────

    @property
    def is_loaded(self) -> bool:
        return self._working is not None

    @property
    def is_dirty(self) -> bool:
        """True when the working copy differs from the saved copy."""
        if self._working is None or self._saved is None:
            return False
        return self._working.to_dict() != self._saved.to_dict()

    def snapshot(self) -> LayoutConfig:
        """Deep copy of the working copy."""
        self._require_loaded()
        return self._working.copy()

    def saved_snapshot(self) -> LayoutConfig:
        """Deep copy of the saved copy."""
        self._require_loaded()
        return self._saved.copy()

    def section(self, section_id: str) -> Section:
        """Deep copy of one working-copy section. Raises NotFoundError."""
        self._require_loaded()
        return copy.deepcopy(self._section(section_id))

    def is_column_assigned(self, column_id: str) -> bool:
        if self._working is None:
            return False
        return any(f.column_id == column_id for f in self._working.all_fields())

    def find_field(self, column_id: str) -> Optional[Field]:
        """The field bound to column_id in the working copy, if any."""
        if self._working is None:
            return None
        for f in self._working.all_fields():
            if f.column_id == column_id:
                return f
        return None

    # ──────────────────────────────────────────
    # Loading
    # ──────────────────────────────────────────

    async def load(self, instance_id: str) -> LayoutConfig:
        """
        Load the layout stored for instance_id.

        Falls back to the default layout when nothing is stored, the store
        is unreachable, or the stored blob doesn't parse. Never raises for
        those cases; the condition is logged instead. A cancelled load leaves
        the engine as it was before the call.
        """
        if self.state in (EngineState.LOADING, EngineState.SAVING):
            raise InvalidStateError(f"Cannot load while {self.state.value}")

        previous = self.state
        self.state = EngineState.LOADING
        loaded = False
        try:
            layout = await self._read(instance_id)
            loaded = True
        finally:
            if not loaded:
                self.state = previous

        self.instance_id = instance_id
        self._saved = layout
        self._working = layout.copy()
        self.state = EngineState.READY
        self._emit("loaded", instance_id=instance_id)
        return self.snapshot()

    async def _read(self, instance_id: str) -> LayoutConfig:
        key = storage_key(instance_id)
        try:
            blob = await self.gateway.get(key)
        except IOFailure as e:
            logger.warning(f"Could not read layout {key}, using default: {e}")
            return default_layout(self.identity_column)

        if blob is None:
            logger.info(f"No stored layout for {key}, using default")
            return default_layout(self.identity_column)

        try:
            layout = LayoutConfig.from_json(blob)
        except MalformedData as e:
            logger.warning(f"Stored layout {key} is malformed, using default: {e}")
            return default_layout(self.identity_column)

        logger.info(f"Loaded layout {key} ({len(layout.sections)} section(s))")
        return self._ensure_defaults(layout)

    def _ensure_defaults(self, layout: LayoutConfig) -> LayoutConfig:
        """Give a stored layout its default section and identity field if it lacks them."""
        section = layout.default_section() or layout.section(DEFAULT_SECTION_ID)
        if section is None:
            section = Section(id=DEFAULT_SECTION_ID, title=DEFAULT_SECTION_TITLE, is_default=True)
            layout.sections.insert(0, section)
        section.is_default = True
        for other in layout.sections:
            if other is not section:
                other.is_default = False

        # Only the first default field of the default section stays protected
        default_field = next((f for f in section.fields if f.is_default), None)
        for s in layout.sections:
            for f in s.fields:
                if f is not default_field:
                    f.is_default = False

        if default_field is not None:
            return layout

        identity = default_layout(self.identity_column).sections[0].fields[0]
        # The identity column moves into the default field wherever it was
        for s in layout.sections:
            s.fields = [
                f for f in s.fields
                if f.column_id != identity.column_id and f.id != identity.id
            ]
        section.fields.insert(0, identity)
        logger.info(f"Restored default field in layout section {section.id}")
        return layout

    # ──────────────────────────────────────────
    # Edits (working copy only)
    # ──────────────────────────────────────────

    def create_section(self, title: str) -> str:
        """Append an empty section. Returns its id."""
        self._require_ready()
        clean = self._clean_title(title)

        existing = {s.id for s in self._working.sections}
        section_id = make_section_id()
        while section_id in existing:
            section_id = make_section_id()

        self._working.sections.append(Section(id=section_id, title=clean))
        self._emit("changed", action="create_section", section_id=section_id)
        return section_id

    def rename_section(self, section_id: str, title: str) -> None:
        self._require_ready()
        clean = self._clean_title(title)
        section = self._section(section_id)
        section.title = clean
        self._emit("changed", action="rename_section", section_id=section_id)

    def delete_section(self, section_id: str) -> None:
        """Remove a section and its fields. Confirmation is the caller's job."""
        self._require_ready()
        section = self._section(section_id)
        if section.is_default:
            raise ProtectedEntityError(f"Section {section_id} is the default section")

        self._working.sections = [s for s in self._working.sections if s.id != section_id]
        self._emit("changed", action="delete_section", section_id=section_id)

    def assign_column(self, column: Column, section_id: str) -> str:
        """Bind column to a new field at the end of a section. Returns the field id."""
        self._require_ready()
        if self.is_column_assigned(column.id):
            raise DuplicateAssignmentError(f"Column {column.id} is already in the layout")
        section = self._section(section_id)

        existing = {f.id for f in self._working.all_fields()}
        field_id = make_field_id(column.id)
        suffix = 1
        while field_id in existing:
            field_id = f"{make_field_id(column.id)}_{suffix}"
            suffix += 1

        section.fields.append(Field(
            id=field_id,
            column_id=column.id,
            label=column.title,
            type=column.type,
        ))
        self._emit("changed", action="assign_column", section_id=section_id, field_id=field_id)
        return field_id

    def remove_field(self, section_id: str, field_id: str) -> None:
        self._require_ready()
        section = self._section(section_id)
        target = section.field_by_id(field_id)
        if target is None:
            raise NotFoundError(f"Field {field_id} not found in section {section_id}")
        if target.is_default:
            raise ProtectedEntityError(f"Field {field_id} is a default field")

        section.fields = [f for f in section.fields if f.id != field_id]
        self._emit("changed", action="remove_field", section_id=section_id, field_id=field_id)

    # ──────────────────────────────────────────
    # Save / cancel
    # ──────────────────────────────────────────

    async def save(self) -> None:
        """
        Store the working copy and make it the saved copy.

        The write and the promotion happen together: once the store accepts
        the write, the snapshot becomes the saved copy even if the caller has
        stopped waiting (cancelled). A write that fails or is itself cancelled
        promotes nothing; both copies stay as they were and, for a caller
        still waiting, the error propagates so it can retry. The engine stays
        SAVING until the write settles.
        """
        self._require_ready()
        key = storage_key(self.instance_id)
        snapshot = self._working.copy()
        blob = snapshot.to_json()

        self.state = EngineState.SAVING
        try:
            write = asyncio.ensure_future(self.gateway.set(key, blob))
        except Exception:
            self.state = EngineState.READY
            raise
        write.add_done_callback(lambda done: self._finish_save(done, key, snapshot))
        # Cancelling the caller must not cancel the write
        await asyncio.shield(write)

    def _finish_save(self, write: "asyncio.Future", key: str, snapshot: LayoutConfig) -> None:
        self.state = EngineState.READY
        if write.cancelled():
            logger.warning(f"Save of layout {key} was cancelled before it was stored")
            return
        error = write.exception()
        if error is not None:
            logger.error(f"Failed to save layout {key}: {error}")
            return

        self._saved = snapshot
        logger.info(f"Saved layout {key} ({len(snapshot.sections)} section(s))")
        self._emit("saved", instance_id=self.instance_id)

    def cancel(self) -> None:
        """Discard unsaved edits."""
        self._require_ready()
        self._working = self._saved.copy()
        self._emit("reverted", instance_id=self.instance_id)

    # ──────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────

    def _require_loaded(self) -> None:
        if self._working is None:
            raise InvalidStateError("Layout has not been loaded")

    def _require_ready(self) -> None:
        if self.state != EngineState.READY:
            raise InvalidStateError(f"Layout engine is {self.state.value}, not ready")

    def _section(self, section_id: str) -> Section:
        section = self._working.section(section_id)
        if section is None:
            raise NotFoundError(f"Section {section_id} not found")
        return section

    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        clean = (title or "").strip()
        if not clean:
            raise ValidationError("Section title cannot be empty")
        return clean


class InstanceLocks:
    """One lock per widget instance; at most one in-flight mutation per instance."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock(self, instance_id: str) -> threading.Lock:
        with self._guard:
            if instance_id not in self._locks:
                self._locks[instance_id] = threading.Lock()
            return self._locks[instance_id]

    def get(self, instance_id: str) -> Optional[threading.Lock]:
        """The instance's lock if one exists; never creates one."""
        with self._guard:
            return self._locks.get(instance_id)

    def discard(self, instance_id: str) -> None:
        with self._guard:
            self._locks.pop(instance_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
