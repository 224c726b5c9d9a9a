"""
Board widget session: one mounted widget instance on one board.

Ties the host context to the core:
  - board info (viewer, board id, columns) from the column catalog
  - inbound relations via relation discovery
  - the instance's layout engine, with edits offered only to privileged viewers

The session holds no layout state of its own; the engine owns it.
"""
import functools
import logging
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidStateError, NotFoundError, ValidationError
from .forms import derive_form, filter_columns
from .layout import LayoutConfigEngine
from .relations import DEFAULT_BOARDS_LIMIT, RelationDiscoveryEngine, canonical_board_id
from .roles import EditGuard, is_privileged
from .schema import BoardColumns, Column, RelationRecord

logger = logging.getLogger(__name__)

LAYOUT_EVENTS = ("loaded", "changed", "saved", "reverted")


class BoardWidget:
    """A widget session bound to a host context."""

    def __init__(self, catalog, gateway, relations_limit: int = DEFAULT_BOARDS_LIMIT):
        self.catalog = catalog
        self.discovery = RelationDiscoveryEngine(catalog, relations_limit)
        self.engine = LayoutConfigEngine(gateway)
        self.guard = EditGuard(privileged=False)
        self.board: Optional[BoardColumns] = None
        self.board_id: Optional[str] = None
        self.instance_id: Optional[str] = None
        self.user_id: Optional[str] = None
        self.relations: List[RelationRecord] = []
        self.revision = 0
        for event in LAYOUT_EVENTS:
            self.engine.subscribe(event, functools.partial(self._on_layout_event, event))

    @property
    def can_edit(self) -> bool:
        return self.guard.privileged

    async def open(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Bind the session to a host context and load board + layout.

        Context shape: {"boardId", "instanceId"?, "user": {"id", "role"?, "isAccountOwner"?}}

        Raises:
            ValidationError: the context carries no board id.
            IOFailure: the board's columns could not be fetched.
        """
        board_id = canonical_board_id(context.get("boardId"))
        if board_id is None:
            raise ValidationError("Host context has no boardId")
        instance_id = str(context.get("instanceId") or board_id)
        user = context.get("user") or {}

        board = await self.catalog.fetch_board_columns(board_id)

        self.board_id = board_id
        self.instance_id = instance_id
        self.user_id = str(user["id"]) if user.get("id") is not None else None
        self.guard = EditGuard(privileged=is_privileged(user))
        self.board = board
        self.relations = []
        self.engine.identity_column = board.identity_column()
        await self.engine.load(instance_id)

        logger.info(
            f"Opened instance {instance_id} on board {board_id} "
            f"({len(board.columns)} column(s), can_edit={self.can_edit})"
        )
        return self.board_info()

    def board_info(self) -> Dict[str, Any]:
        self._require_open()
        return {
            "userId": self.user_id,
            "boardId": self.board_id,
            "boardName": self.board.name,
            "columns": [{"id": c.id, "title": c.title, "type": c.type} for c in self.board.columns],
            "canEdit": self.can_edit,
        }

    async def refresh_relations(self) -> List[RelationRecord]:
        """Re-run discovery for this board. IOFailure propagates."""
        self._require_open()
        self.relations = await self.discovery.discover_from(self.board_id)
        return self.relations

    def available_columns(self, query: str = "") -> List[Column]:
        """Columns not yet placed in the layout, narrowed by a search query."""
        self._require_open()
        unassigned = [c for c in self.board.columns if not self.engine.is_column_assigned(c.id)]
        return filter_columns(unassigned, query)

    def layout(self) -> Dict[str, Any]:
        data = self.engine.snapshot().to_dict()
        data["isDirty"] = self.engine.is_dirty
        data["canEdit"] = self.can_edit
        data["revision"] = self.revision
        return data

    def form(self) -> List[Dict[str, Any]]:
        self._require_open()
        return derive_form(self.engine.snapshot(), self.board.columns)

    # ──────────────────────────────────────────
    # Edits (privileged viewers only)
    # ──────────────────────────────────────────

    def create_section(self, title: str) -> str:
        self.guard.require_editor("create section")
        return self.engine.create_section(title)

    def rename_section(self, section_id: str, title: str) -> None:
        self.guard.require_editor("rename section")
        self.engine.rename_section(section_id, title)

    def delete_section(self, section_id: str) -> None:
        self.guard.require_editor("delete section")
        self.engine.delete_section(section_id)

    def assign_column(self, column_id: str, section_id: str) -> str:
        """Drop intent: place the board column column_id into section_id."""
        self.guard.require_editor("assign column")
        self._require_open()
        column = self.board.column(column_id)
        if column is None:
            raise NotFoundError(f"Column {column_id} not found on board {self.board_id}")
        return self.engine.assign_column(column, section_id)

    def remove_field(self, section_id: str, field_id: str) -> None:
        self.guard.require_editor("remove field")
        self.engine.remove_field(section_id, field_id)

    async def save(self) -> None:
        self.guard.require_editor("save layout")
        await self.engine.save()

    def cancel(self) -> None:
        self.guard.require_editor("cancel edits")
        self.engine.cancel()

    def _on_layout_event(self, event: str, **kwargs) -> None:
        """Bump the revision so observers know the layout view changed."""
        self.revision += 1
        logger.debug(f"Layout {event} on instance {self.instance_id} (revision {self.revision}) {kwargs}")

    def _require_open(self) -> None:
        if self.board is None:
            raise InvalidStateError("Widget has not been opened")
