"""
Column catalogs: where board and column definitions come from.

MondayCatalog talks to the platform's GraphQL API over HTTP.
StaticCatalog serves boards from memory (tests, demos, offline runs).

Both expose:
  fetch_board_columns(board_id) -> BoardColumns
  fetch_all_boards(limit) -> list[BoardSummary]
as coroutines raising IOFailure when the data can't be obtained.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from .errors import IOFailure
from .relations import canonical_board_id
from .schema import BoardColumns, BoardSummary, Column

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.monday.com/v2"
DEFAULT_API_VERSION = "2024-10"

BOARD_COLUMNS_QUERY = """
query ($boardIds: [ID!]) {
  boards(ids: $boardIds) {
    id
    name
    columns {
      id
      title
      type
    }
  }
}
"""

ALL_BOARDS_QUERY = """
query ($limit: Int) {
  boards(limit: $limit) {
    id
    name
    columns {
      id
      title
      type
      settings_str
    }
  }
}
"""


class MondayCatalog:
    """Column catalog backed by the monday GraphQL API."""

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 10.0,
    ):
        self.token = token
        self.api_url = api_url
        self.api_version = api_version
        self.timeout = timeout

    def _post(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run one GraphQL request and return its "data" object."""
        try:
            r = requests.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers={
                    "Authorization": self.token,
                    "API-Version": self.api_version,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IOFailure(f"Catalog request failed: {e}") from e

        if not r.ok:
            raise IOFailure(f"Catalog returned HTTP {r.status_code}")
        try:
            body = r.json()
        except ValueError as e:
            raise IOFailure(f"Catalog returned a non-JSON body: {e}") from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            messages = "; ".join(str(err.get("message", err) if isinstance(err, dict) else err) for err in errors)
            raise IOFailure(f"Catalog query failed: {messages}")
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise IOFailure("Catalog response has no data")
        return data

    def fetch_board_columns_sync(self, board_id: Any) -> BoardColumns:
        data = self._post(BOARD_COLUMNS_QUERY, {"boardIds": [str(board_id)]})
        boards = data.get("boards") or []
        if not boards:
            raise IOFailure(f"Board {board_id} not found")
        board = boards[0]
        return BoardColumns(
            id=str(board.get("id", board_id)),
            name=board.get("name") or "",
            columns=[Column.from_dict(c) for c in board.get("columns") or []],
        )

    def fetch_all_boards_sync(self, limit: int) -> List[BoardSummary]:
        data = self._post(ALL_BOARDS_QUERY, {"limit": limit})
        boards = [BoardSummary.from_dict(b) for b in data.get("boards") or []]
        logger.debug(f"Fetched {len(boards)} board(s) (limit {limit})")
        return boards

    async def fetch_board_columns(self, board_id: Any) -> BoardColumns:
        return await asyncio.to_thread(self.fetch_board_columns_sync, board_id)

    async def fetch_all_boards(self, limit: int) -> List[BoardSummary]:
        return await asyncio.to_thread(self.fetch_all_boards_sync, limit)


class StaticCatalog:
    """In-memory catalog built from board dicts or BoardSummary objects."""

    def __init__(self, boards: Optional[Iterable[Any]] = None):
        self.boards: List[BoardSummary] = [
            b if isinstance(b, BoardSummary) else BoardSummary.from_dict(b)
            for b in boards or []
        ]

    async def fetch_board_columns(self, board_id: Any) -> BoardColumns:
        for board in self.boards:
            if canonical_board_id(board.id) == canonical_board_id(board_id):
                return BoardColumns(id=board.id, name=board.name, columns=list(board.columns))
        raise IOFailure(f"Board {board_id} not found")

    async def fetch_all_boards(self, limit: int) -> List[BoardSummary]:
        return list(self.boards[:limit])
