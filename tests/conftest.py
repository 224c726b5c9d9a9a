"""Shared fixtures for board info tests."""

import json
import sys
from pathlib import Path

import pytest

# Ensure the project root is importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.boardinfo.catalog import StaticCatalog
from pkg.boardinfo.schema import BoardSummary
from pkg.boardinfo.store import MemoryGateway


TARGET_BOARD_ID = "100"


def relation_column(column_id, title, board_ids):
    return {
        "id": column_id,
        "title": title,
        "type": "board_relation",
        "settings_str": json.dumps({"boardIds": board_ids}),
    }


def workspace_dicts():
    """Boards of a small workspace, as the platform API returns them."""
    return [
        {
            "id": "100",
            "name": "Projects",
            "columns": [
                {"id": "name", "title": "Project", "type": "name"},
                {"id": "text0", "title": "Owner notes", "type": "text"},
                {"id": "status", "title": "Status", "type": "status"},
                {"id": "date4", "title": "Due date", "type": "date"},
                {"id": "email1", "title": "Contact email", "type": "email"},
                relation_column("self_link", "Parent project", [100]),
            ],
        },
        {
            "id": "200",
            "name": "Zeta",
            "columns": [
                {"id": "name", "title": "Name", "type": "name"},
                relation_column("link", "Link", [100, 300]),
            ],
        },
        {
            "id": "300",
            "name": "Alpha",
            "columns": [
                {"id": "name", "title": "Name", "type": "name"},
                relation_column("ref", "Ref", ["100"]),
            ],
        },
        {
            "id": "400",
            "name": "Broken",
            "columns": [
                {"id": "bad", "title": "Bad", "type": "board_relation", "settings_str": "{not json"},
            ],
        },
        {
            "id": "500",
            "name": "Unrelated",
            "columns": [
                relation_column("elsewhere", "Elsewhere", [999]),
                {"id": "text", "title": "Text", "type": "text"},
            ],
        },
    ]


@pytest.fixture
def boards():
    return [BoardSummary.from_dict(b) for b in workspace_dicts()]


@pytest.fixture
def catalog():
    return StaticCatalog(workspace_dicts())


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def admin_context():
    return {"boardId": 100, "instanceId": "inst-1", "user": {"id": 7, "role": "admin"}}


@pytest.fixture
def viewer_context():
    return {"boardId": 100, "instanceId": "inst-1", "user": {"id": 8, "role": "member"}}
