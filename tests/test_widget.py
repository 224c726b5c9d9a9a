"""
Tests for the widget session.

Covers:
    - open()              — host context handling, identity column, failures
    - board_info()        — viewer/board/columns display data
    - refresh_relations() — discovery for the mounted board
    - available_columns() — unassigned columns + search
    - edit gating         — privileged vs read-only viewers
"""

import asyncio

import pytest

from pkg.boardinfo.catalog import StaticCatalog
from pkg.boardinfo.errors import (
    DuplicateAssignmentError,
    InvalidStateError,
    IOFailure,
    NotFoundError,
    ValidationError,
)
from pkg.boardinfo.roles import ReadOnlyViolation
from pkg.boardinfo.schema import DEFAULT_SECTION_ID
from pkg.boardinfo.widget import BoardWidget


def opened(catalog, gateway, context):
    widget = BoardWidget(catalog, gateway)
    asyncio.run(widget.open(context))
    return widget


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Opening
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestOpen:

    def test_board_info(self, catalog, gateway, admin_context):
        widget = BoardWidget(catalog, gateway)
        info = asyncio.run(widget.open(admin_context))
        assert info["userId"] == "7"
        assert info["boardId"] == "100"
        assert info["boardName"] == "Projects"
        assert info["canEdit"] is True
        assert {"id": "status", "title": "Status", "type": "status"} in info["columns"]

    def test_default_field_uses_board_identity_column(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        default_field = widget.layout()["sections"][0]["fields"][0]
        assert default_field["label"] == "Project"
        assert default_field["isDefault"] is True

    def test_instance_defaults_to_board(self, catalog, gateway):
        widget = opened(catalog, gateway, {"boardId": "100"})
        assert widget.instance_id == "100"
        assert widget.user_id is None
        assert not widget.can_edit

    def test_missing_board_id(self, catalog, gateway):
        with pytest.raises(ValidationError):
            asyncio.run(BoardWidget(catalog, gateway).open({"user": {"id": 1}}))

    def test_catalog_failure_surfaces(self, gateway, admin_context):
        widget = BoardWidget(StaticCatalog([]), gateway)
        with pytest.raises(IOFailure):
            asyncio.run(widget.open(admin_context))
        with pytest.raises(InvalidStateError):
            widget.board_info()

    def test_layout_persisted_per_instance(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        widget.create_section("Details")
        asyncio.run(widget.save())

        again = opened(catalog, gateway, admin_context)
        titles = [s["title"] for s in again.layout()["sections"]]
        assert titles == ["General", "Details"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Relations & columns
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestRelationsAndColumns:

    def test_refresh_relations(self, catalog, gateway, viewer_context):
        widget = opened(catalog, gateway, viewer_context)
        records = asyncio.run(widget.refresh_relations())
        assert [r.label for r in records] == ["Alpha - Ref", "Zeta - Link"]
        assert widget.relations == records

    def test_available_columns_excludes_assigned(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        ids = [c.id for c in widget.available_columns()]
        assert "name" not in ids
        assert "status" in ids

        widget.assign_column("status", DEFAULT_SECTION_ID)
        assert "status" not in [c.id for c in widget.available_columns()]

    def test_available_columns_search(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        assert [c.id for c in widget.available_columns("email")] == ["email1"]

    def test_form(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        widget.assign_column("date4", DEFAULT_SECTION_ID)
        fields = widget.form()[0]["fields"]
        assert [f["kind"] for f in fields] == ["text", "date"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Edits
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestEdits:

    def test_admin_edit_flow(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        section_id = widget.create_section("Planning")
        field_id = widget.assign_column("status", section_id)
        assert widget.layout()["isDirty"] is True

        with pytest.raises(DuplicateAssignmentError):
            widget.assign_column("status", DEFAULT_SECTION_ID)

        widget.remove_field(section_id, field_id)
        widget.rename_section(section_id, "Schedule")
        asyncio.run(widget.save())
        assert widget.layout()["isDirty"] is False

        widget.delete_section(section_id)
        widget.cancel()
        assert [s["title"] for s in widget.layout()["sections"]] == ["General", "Schedule"]

    def test_unknown_column(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        with pytest.raises(NotFoundError):
            widget.assign_column("nope", DEFAULT_SECTION_ID)

    def test_account_owner_can_edit(self, catalog, gateway):
        context = {"boardId": 100, "user": {"id": 1, "role": "member", "isAccountOwner": True}}
        widget = opened(catalog, gateway, context)
        assert widget.can_edit
        widget.create_section("Details")

    def test_read_only_viewer(self, catalog, gateway, viewer_context):
        widget = opened(catalog, gateway, viewer_context)
        before = widget.layout()
        with pytest.raises(ReadOnlyViolation):
            widget.create_section("Details")
        with pytest.raises(ReadOnlyViolation):
            widget.assign_column("status", DEFAULT_SECTION_ID)
        with pytest.raises(ReadOnlyViolation):
            asyncio.run(widget.save())
        with pytest.raises(ReadOnlyViolation):
            widget.cancel()
        assert widget.layout() == before

    def test_revision_follows_layout_events(self, catalog, gateway, admin_context):
        widget = opened(catalog, gateway, admin_context)
        assert widget.layout()["revision"] == 1  # loaded

        section_id = widget.create_section("Planning")
        widget.assign_column("status", section_id)
        assert widget.layout()["revision"] == 3

        asyncio.run(widget.save())
        widget.cancel()
        assert widget.layout()["revision"] == 5

        with pytest.raises(DuplicateAssignmentError):
            widget.assign_column("status", DEFAULT_SECTION_ID)
        assert widget.layout()["revision"] == 5
