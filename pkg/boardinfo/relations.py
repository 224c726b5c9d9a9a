"""
Relation discovery: find the boards that link back to a target board.

A board links back when one of its relation columns lists the target board
in its settings payload. Discovery is a pure scan over a snapshot of the
workspace's boards; fetching that snapshot is the only I/O.
"""
import json
import logging
from typing import Any, Iterable, List, Optional

from .errors import MalformedData
from .schema import BoardSummary, ColumnType, RelationRecord

logger = logging.getLogger(__name__)

# Upper bound on boards fetched per discovery run
DEFAULT_BOARDS_LIMIT = 500


def canonical_board_id(value: Any) -> Optional[str]:
    """
    Normalise a board identifier to its decimal-string form.

    Payloads carry numbers, hosts pass strings; both end up as e.g. "1234".
    Returns None for values that cannot be a board id.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        digits = text[1:] if text.startswith("-") else text
        # Plain ASCII decimals only; "1_000", "+7" and non-ASCII digits stay as text
        if text.isascii() and digits.isdigit():
            return str(int(text))
        return text
    return None


def parse_relation_targets(payload: Any) -> List[str]:
    """
    Parse a relation column's settings payload into canonical board ids.

    Accepts the raw JSON string or an already-decoded object. Reads the
    "boardIds" list and the older singular "boardId".

    Raises:
        MalformedData: payload is not JSON, not an object, or "boardIds"
        is not a list.
    """
    if payload is None or payload == "":
        return []
    if isinstance(payload, str):
        try:
            doc = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedData(f"Settings payload is not valid JSON: {e}") from e
    else:
        doc = payload

    if not isinstance(doc, dict):
        raise MalformedData(f"Settings payload must be an object, got {type(doc).__name__}")

    raw_ids = doc.get("boardIds")
    if raw_ids is None:
        raw_ids = []
    elif not isinstance(raw_ids, list):
        raise MalformedData(f"'boardIds' must be a list, got {type(raw_ids).__name__}")
    if doc.get("boardId") is not None:
        raw_ids = raw_ids + [doc["boardId"]]

    targets: List[str] = []
    for raw in raw_ids:
        board_id = canonical_board_id(raw)
        if board_id is not None and board_id not in targets:
            targets.append(board_id)
    return targets


def discover(target_board_id: Any, all_boards: Iterable[BoardSummary]) -> List[RelationRecord]:
    """
    List every relation column on other boards that targets target_board_id.

    The result is sorted case-insensitively by label. A column whose payload
    fails to parse contributes nothing; the scan carries on.
    """
    target = canonical_board_id(target_board_id)
    if target is None:
        return []

    records: List[RelationRecord] = []
    seen = set()
    for board in all_boards:
        board_id = canonical_board_id(board.id)
        if board_id is None or board_id == target:
            continue
        for column in board.columns:
            if column.kind != ColumnType.BOARD_RELATION:
                continue
            try:
                targets = parse_relation_targets(column.settings_payload)
            except MalformedData as e:
                logger.warning(
                    f"Skipping relation column {column.id} on board {board_id}: {e}"
                )
                continue
            if target not in targets:
                continue

            record = RelationRecord.build(
                board_id=board_id,
                board_name=board.name,
                column_id=column.id,
                column_label=column.title or column.id,
            )
            if record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)

    records.sort(key=lambda r: r.label.casefold())
    return records


class RelationDiscoveryEngine:
    """Fetches the workspace's boards and runs discovery over them."""

    def __init__(self, catalog, limit: int = DEFAULT_BOARDS_LIMIT):
        self.catalog = catalog
        self.limit = limit

    async def discover_from(self, target_board_id: Any) -> List[RelationRecord]:
        """
        Fetch all boards and discover relations to target_board_id.

        Raises:
            IOFailure: the catalog could not supply the board list.
        """
        boards = await self.catalog.fetch_all_boards(self.limit)
        records = discover(target_board_id, boards)
        logger.info(
            f"Discovered {len(records)} relation(s) to board {target_board_id} "
            f"across {len(boards)} board(s)"
        )
        return records
