"""
Board info schema and layout state machine.

Layout engine lifecycle:
  Uninitialized → Loading → Ready (clean ⇄ dirty) → Saving → Ready

Columns and boards are read-only snapshots owned by the column catalog.
Relation records are derived per discovery run and never persisted.
Sections and fields make up the one persisted artifact, the LayoutConfig.
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import copy
import json

from .errors import MalformedData


class ColumnType(Enum):
    """Platform column types the core knows about."""
    NAME = "name"                      # Identity column (item name)
    TEXT = "text"
    LONG_TEXT = "long_text"
    NUMBERS = "numbers"
    DATE = "date"
    STATUS = "status"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    EMAIL = "email"
    PHONE = "phone"
    PEOPLE = "people"
    BOARD_RELATION = "board_relation"  # Relation to other board(s)
    OTHER = "other"                    # Anything the core doesn't recognise

    @classmethod
    def from_str(cls, value: Optional[str]) -> "ColumnType":
        if not value:
            return cls.OTHER
        try:
            return cls(value.strip().lower().replace("-", "_"))
        except ValueError:
            return cls.OTHER


class EngineState(Enum):
    """States of the layout configuration engine."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


# Identity column every board carries; the default field is bound to it
IDENTITY_COLUMN_ID = "name"
DEFAULT_SECTION_ID = "default_section"
DEFAULT_SECTION_TITLE = "General"
DEFAULT_FIELD_ID = "default_field"


@dataclass
class Column:
    """One column definition of a board."""
    id: str
    title: str = ""
    type: str = ColumnType.TEXT.value
    settings_payload: Optional[str] = None   # Opaque settings (JSON string)

    @property
    def kind(self) -> ColumnType:
        return ColumnType.from_str(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "settings_str": self.settings_payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        """Deserialize from the platform's shape (settings_str) or our own (settingsPayload)."""
        payload = data.get("settings_str")
        if payload is None:
            payload = data.get("settingsPayload")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            type=data.get("type") or ColumnType.TEXT.value,
            settings_payload=payload,
        )


@dataclass
class BoardSummary:
    """A board as seen by relation discovery: id, name and its columns."""
    id: str
    name: str = ""
    columns: List[Column] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardSummary":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            columns=[Column.from_dict(c) for c in data.get("columns") or []],
        )


@dataclass
class BoardColumns:
    """Name and column list of the board the widget is mounted on."""
    id: str
    name: str = ""
    columns: List[Column] = field(default_factory=list)

    def column(self, column_id: str) -> Optional[Column]:
        for col in self.columns:
            if col.id == column_id:
                return col
        return None

    def identity_column(self) -> Optional[Column]:
        """The board's name column, if the catalog returned one."""
        for col in self.columns:
            if col.kind == ColumnType.NAME:
                return col
        return self.column(IDENTITY_COLUMN_ID)


@dataclass(frozen=True)
class RelationRecord:
    """A board whose relation column points back at the target board."""
    id: str
    source_board_id: str
    source_board_name: str
    relation_column_id: str
    relation_column_label: str
    label: str

    @classmethod
    def build(
        cls,
        board_id: str,
        board_name: str,
        column_id: str,
        column_label: str,
    ) -> "RelationRecord":
        return cls(
            id=f"{board_id}:{column_id}",
            source_board_id=board_id,
            source_board_name=board_name,
            relation_column_id=column_id,
            relation_column_label=column_label,
            label=f"{board_name} - {column_label}",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceBoardId": self.source_board_id,
            "sourceBoardName": self.source_board_name,
            "relationColumnId": self.relation_column_id,
            "relationColumnLabel": self.relation_column_label,
            "label": self.label,
        }


@dataclass
class Field:
    """A column placed in a layout section."""
    id: str
    column_id: str
    label: str = ""
    type: str = ColumnType.TEXT.value
    is_default: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "columnId": self.column_id,
            "label": self.label,
            "type": self.type,
            "isDefault": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Field":
        if not isinstance(data, dict):
            raise MalformedData(f"Field must be an object, got {type(data).__name__}")
        if not data.get("id") or not data.get("columnId"):
            raise MalformedData("Field requires 'id' and 'columnId'")
        return cls(
            id=str(data["id"]),
            column_id=str(data["columnId"]),
            label=data.get("label") or "",
            type=data.get("type") or ColumnType.TEXT.value,
            is_default=data.get("isDefault") is True,
        )


@dataclass
class Section:
    """An ordered group of fields."""
    id: str
    title: str
    is_default: bool = False
    fields: List[Field] = field(default_factory=list)

    def field_by_id(self, field_id: str) -> Optional[Field]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "isDefault": self.is_default,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        if not isinstance(data, dict):
            raise MalformedData(f"Section must be an object, got {type(data).__name__}")
        if not data.get("id"):
            raise MalformedData("Section requires 'id'")
        fields = data.get("fields") or []
        if not isinstance(fields, list):
            raise MalformedData(f"Section {data['id']} 'fields' must be a list")
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            is_default=data.get("isDefault") is True,
            fields=[Field.from_dict(f) for f in fields],
        )


@dataclass
class LayoutConfig:
    """Ordered sections of ordered fields; the widget's persisted layout."""
    sections: List[Section] = field(default_factory=list)

    def section(self, section_id: str) -> Optional[Section]:
        for s in self.sections:
            if s.id == section_id:
                return s
        return None

    def default_section(self) -> Optional[Section]:
        for s in self.sections:
            if s.is_default:
                return s
        return None

    def all_fields(self) -> List[Field]:
        return [f for s in self.sections for f in s.fields]

    def copy(self) -> "LayoutConfig":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {"sections": [s.to_dict() for s in self.sections]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutConfig":
        """Deserialize and check id/column uniqueness. Raises MalformedData."""
        if not isinstance(data, dict):
            raise MalformedData(f"Layout must be an object, got {type(data).__name__}")
        sections = data.get("sections")
        if not isinstance(sections, list):
            raise MalformedData("Layout requires a 'sections' list")
        layout = cls(sections=[Section.from_dict(s) for s in sections])

        section_ids = [s.id for s in layout.sections]
        if len(section_ids) != len(set(section_ids)):
            raise MalformedData("Duplicate section ids in layout")
        fields = layout.all_fields()
        field_ids = [f.id for f in fields]
        if len(field_ids) != len(set(field_ids)):
            raise MalformedData("Duplicate field ids in layout")
        column_ids = [f.column_id for f in fields]
        if len(column_ids) != len(set(column_ids)):
            raise MalformedData("A column is assigned to more than one field")
        return layout

    @classmethod
    def from_json(cls, blob: str) -> "LayoutConfig":
        try:
            data = json.loads(blob)
        except (json.JSONDecodeError, TypeError) as e:
            raise MalformedData(f"Stored layout is not valid JSON: {e}") from e
        return cls.from_dict(data)


def default_layout(identity_column: Optional[Column] = None) -> LayoutConfig:
    """The canonical layout: one default section holding the identity field."""
    column = identity_column or Column(id=IDENTITY_COLUMN_ID, title="Name", type=ColumnType.NAME.value)
    return LayoutConfig(sections=[
        Section(
            id=DEFAULT_SECTION_ID,
            title=DEFAULT_SECTION_TITLE,
            is_default=True,
            fields=[
                Field(
                    id=DEFAULT_FIELD_ID,
                    column_id=column.id,
                    label=column.title or "Name",
                    type=column.type or ColumnType.NAME.value,
                    is_default=True,
                ),
            ],
        ),
    ])
