"""
Field kinds for rendering a data-entry form from board columns.

The column type → field kind table is total: unknown column types render as
plain text inputs.
"""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List

from .schema import Column, LayoutConfig

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """How a field is rendered in the entry form."""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    CHECKBOX = "checkbox"
    EMAIL = "email"
    PHONE = "phone"


FIELD_KINDS: Dict[str, FieldKind] = {
    "name": FieldKind.TEXT,
    "text": FieldKind.TEXT,
    "long_text": FieldKind.TEXTAREA,
    "numbers": FieldKind.NUMBER,
    "numeric": FieldKind.NUMBER,
    "date": FieldKind.DATE,
    "status": FieldKind.SELECT,
    "color": FieldKind.SELECT,
    "dropdown": FieldKind.SELECT,
    "checkbox": FieldKind.CHECKBOX,
    "boolean": FieldKind.CHECKBOX,
    "email": FieldKind.EMAIL,
    "phone": FieldKind.PHONE,
}


def field_kind_for(column_type: Any) -> FieldKind:
    """Map a column type to its field kind; anything unrecognised is TEXT."""
    if not isinstance(column_type, str):
        return FieldKind.TEXT
    return FIELD_KINDS.get(column_type.strip().lower(), FieldKind.TEXT)


def derive_form(layout: LayoutConfig, columns: Iterable[Column]) -> List[Dict[str, Any]]:
    """
    Flatten a layout into renderable sections.

    Fields whose column has since been removed from the board are dropped.
    """
    by_id = {c.id: c for c in columns}
    form = []
    for section in layout.sections:
        fields = []
        for f in section.fields:
            column = by_id.get(f.column_id)
            if column is None:
                logger.warning(f"Column {f.column_id} of field {f.id} no longer exists on the board")
                continue
            fields.append({
                "id": f.id,
                "columnId": f.column_id,
                "label": f.label or column.title,
                "kind": field_kind_for(column.type).value,
                "required": f.is_default,
            })
        form.append({
            "id": section.id,
            "title": section.title,
            "fields": fields,
        })
    return form


def filter_columns(columns: Iterable[Column], query: str = "") -> List[Column]:
    """Case-insensitive search over column title, id and type."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(columns)
    return [
        c for c in columns
        if needle in c.title.casefold()
        or needle in c.id.casefold()
        or needle in c.type.casefold()
    ]
