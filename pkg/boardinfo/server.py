#!/usr/bin/env python3
"""
Board Info Server
-----------------
JSON API over widget sessions, for hosts that run the widget's logic
server-side. Each widget instance gets one session; edits to an instance are
serialised with a per-instance lock.

Usage:
    board-info-server --config board-info.yaml --port 3000

API:
    POST   /api/instances/<id>/open                       body: host context
    DELETE /api/instances/<id>                            close the session
    GET    /api/instances/<id>/board                      board info
    GET    /api/instances/<id>/relations                  inbound relations
    GET    /api/instances/<id>/layout                     working copy + dirty flag
    GET    /api/instances/<id>/columns?q=                 unassigned columns
    GET    /api/instances/<id>/form                       derived entry form
    POST   /api/instances/<id>/sections                   { title }
    PATCH  /api/instances/<id>/sections/<sid>             { title }
    DELETE /api/instances/<id>/sections/<sid>
    POST   /api/instances/<id>/sections/<sid>/fields      { columnId }
    DELETE /api/instances/<id>/sections/<sid>/fields/<fid>
    POST   /api/instances/<id>/save
    POST   /api/instances/<id>/cancel
    GET    /health
"""

import asyncio
import hmac
import logging
import sys
from functools import wraps
from typing import Dict, Optional

from flask import Flask, jsonify, request

from .catalog import MondayCatalog
from .config import Config
from .errors import (
    BoardInfoError,
    DuplicateAssignmentError,
    InvalidStateError,
    IOFailure,
    NotFoundError,
    ProtectedEntityError,
    ValidationError,
)
from .layout import InstanceLocks
from .roles import ReadOnlyViolation
from .store import SqliteGateway
from .widget import BoardWidget

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    ReadOnlyViolation: 403,
    NotFoundError: 404,
    ProtectedEntityError: 409,
    DuplicateAssignmentError: 409,
    InvalidStateError: 409,
    IOFailure: 502,
}


def create_app(config: Optional[Config] = None, catalog=None, gateway=None) -> Flask:
    """Build the Flask app. catalog/gateway default to the monday API and SQLite."""
    config = config or Config()
    if catalog is None:
        catalog = MondayCatalog(
            token=config.api_token,
            api_url=config.api_url,
            api_version=config.api_version,
            timeout=config.request_timeout,
        )
    if gateway is None:
        gateway = SqliteGateway(config.db_path)

    app = Flask(__name__)
    sessions: Dict[str, BoardWidget] = {}
    locks = InstanceLocks()

    # ── Auth ─────────────────────────────────────────────────────────────────

    def require_api_key(f):
        """Decorator: when a secret is configured, demand a matching X-API-Key."""
        @wraps(f)
        def decorated(*args, **kwargs):
            if config.api_secret:
                provided = request.headers.get("X-API-Key", "").strip()
                if not hmac.compare_digest(provided, config.api_secret):
                    code = 401 if not provided else 403
                    return jsonify({"error": "Unauthorized"}), code
            return f(*args, **kwargs)
        return decorated

    # ── Helpers ──────────────────────────────────────────────────────────────

    def get_session(instance_id: str) -> BoardWidget:
        widget = sessions.get(instance_id)
        if widget is None:
            raise NotFoundError(f"Instance {instance_id} has not been opened")
        return widget

    def session_lock(instance_id: str):
        """The lock of an opened instance. Unknown instances get no lock."""
        lock = locks.get(instance_id)
        if lock is None:
            raise NotFoundError(f"Instance {instance_id} has not been opened")
        return lock

    def body() -> dict:
        data = request.get_json(force=True, silent=True)
        return data if isinstance(data, dict) else {}

    @app.errorhandler(BoardInfoError)
    @app.errorhandler(ReadOnlyViolation)
    def handle_error(e):
        status = 500
        for kind, code in ERROR_STATUS.items():
            if isinstance(e, kind):
                status = code
                break
        if status >= 500:
            app.logger.error(f"{type(e).__name__}: {e}")
        return jsonify({"error": str(e), "kind": type(e).__name__}), status

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/api/instances/<instance_id>/open", methods=["POST"])
    @require_api_key
    def api_open(instance_id):
        context = body()
        context["instanceId"] = instance_id
        with locks.lock(instance_id):
            widget = BoardWidget(catalog, gateway, relations_limit=config.boards_limit)
            try:
                info = asyncio.run(widget.open(context))
            except Exception:
                if instance_id not in sessions:
                    locks.discard(instance_id)
                raise
            sessions[instance_id] = widget
        return jsonify({"board": info, "layout": widget.layout()})

    @app.route("/api/instances/<instance_id>", methods=["DELETE"])
    @require_api_key
    def api_close(instance_id):
        with session_lock(instance_id):
            get_session(instance_id)
            sessions.pop(instance_id, None)
            locks.discard(instance_id)
        logger.info(f"Closed instance {instance_id}")
        return jsonify({"closed": instance_id})

    @app.route("/api/instances/<instance_id>/board")
    def api_board(instance_id):
        return jsonify(get_session(instance_id).board_info())

    @app.route("/api/instances/<instance_id>/relations")
    def api_relations(instance_id):
        widget = get_session(instance_id)
        records = asyncio.run(widget.refresh_relations())
        return jsonify({
            "relations": [r.to_dict() for r in records],
            "count": len(records),
        })

    @app.route("/api/instances/<instance_id>/layout")
    def api_layout(instance_id):
        return jsonify(get_session(instance_id).layout())

    @app.route("/api/instances/<instance_id>/columns")
    def api_columns(instance_id):
        columns = get_session(instance_id).available_columns(request.args.get("q", ""))
        return jsonify({
            "columns": [{"id": c.id, "title": c.title, "type": c.type} for c in columns],
            "count": len(columns),
        })

    @app.route("/api/instances/<instance_id>/form")
    def api_form(instance_id):
        return jsonify({"sections": get_session(instance_id).form()})

    @app.route("/api/instances/<instance_id>/sections", methods=["POST"])
    @require_api_key
    def api_create_section(instance_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            section_id = widget.create_section(body().get("title", ""))
            return jsonify({"id": section_id, "layout": widget.layout()}), 201

    @app.route("/api/instances/<instance_id>/sections/<section_id>", methods=["PATCH"])
    @require_api_key
    def api_rename_section(instance_id, section_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            widget.rename_section(section_id, body().get("title", ""))
            return jsonify({"layout": widget.layout()})

    @app.route("/api/instances/<instance_id>/sections/<section_id>", methods=["DELETE"])
    @require_api_key
    def api_delete_section(instance_id, section_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            widget.delete_section(section_id)
            return jsonify({"layout": widget.layout()})

    @app.route("/api/instances/<instance_id>/sections/<section_id>/fields", methods=["POST"])
    @require_api_key
    def api_assign_column(instance_id, section_id):
        column_id = str(body().get("columnId", "")).strip()
        if not column_id:
            raise ValidationError("columnId is required")
        with session_lock(instance_id):
            widget = get_session(instance_id)
            field_id = widget.assign_column(column_id, section_id)
            return jsonify({"id": field_id, "layout": widget.layout()}), 201

    @app.route("/api/instances/<instance_id>/sections/<section_id>/fields/<field_id>", methods=["DELETE"])
    @require_api_key
    def api_remove_field(instance_id, section_id, field_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            widget.remove_field(section_id, field_id)
            return jsonify({"layout": widget.layout()})

    @app.route("/api/instances/<instance_id>/save", methods=["POST"])
    @require_api_key
    def api_save(instance_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            asyncio.run(widget.save())
            return jsonify({"layout": widget.layout()})

    @app.route("/api/instances/<instance_id>/cancel", methods=["POST"])
    @require_api_key
    def api_cancel(instance_id):
        with session_lock(instance_id):
            widget = get_session(instance_id)
            widget.cancel()
            return jsonify({"layout": widget.layout()})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "instances": len(sessions), "locks": len(locks)})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Board Info Server")
    parser.add_argument("--config", help="Path to board-info.yaml")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--db", help="Path to widget.db (overrides config and BOARD_INFO_DB)")
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    if args.db:
        config.db_path = args.db

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s [board-info] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if not config.api_token:
        logger.warning(f"{config.api_token_env} is not set; catalog requests will be rejected")
    if not config.api_secret:
        logger.warning("BOARD_INFO_API_SECRET is not set; layout edits are unauthenticated")

    app = create_app(config)
    logger.info(f"Serving on http://{args.host}:{args.port} (db: {config.db_path})")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
