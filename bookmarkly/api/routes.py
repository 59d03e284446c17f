from __future__ import annotations

import json
import time

from flask import Response, current_app, jsonify, request, stream_with_context
from flask_login import current_user, login_required

from bookmarkly.api import api_bp
from bookmarkly.services.app_context import current_workspace, get_session_accessor
from bookmarkly.services.bookmark_actions import (
    BookmarkActionError,
    BookmarkValidationError,
)
from bookmarkly.services.filtering import ALL_TAGS, filter_bookmarks, tag_vocabulary


def _bookmark_or_404(workspace, bookmark_id: str):
    bookmark = workspace.state.find(bookmark_id)
    if bookmark is None:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


def _json_payload():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None, (jsonify({"error": "expected a JSON object"}), 400)
    return payload, None


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/me")
@login_required
def me():
    return jsonify({"user": {"id": current_user.id, "email": current_user.email}})


@api_bp.route("/bookmarks", methods=["GET"])
@login_required
def list_bookmarks():
    workspace = current_workspace()
    if workspace.error:
        return jsonify({"error": workspace.error, "items": []}), 502

    items = workspace.items
    query = request.args.get("q", "")
    tag = request.args.get("tag") or ALL_TAGS
    filtered = filter_bookmarks(items, query, tag)
    return jsonify(
        {
            "items": [item.as_dict() for item in filtered],
            "tags": tag_vocabulary(items),
            "total": len(items),
            "version": workspace.state.version,
        }
    )


@api_bp.route("/bookmarks", methods=["POST"])
@login_required
def create_bookmark():
    payload, error = _json_payload()
    if error:
        return error

    try:
        record = current_workspace().actions.create(payload)
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except BookmarkActionError as exc:
        return jsonify({"error": exc.message}), 502
    return jsonify(record.as_dict()), 201


@api_bp.route("/bookmarks/<bookmark_id>", methods=["PATCH"])
@login_required
def update_bookmark(bookmark_id: str):
    payload, error = _json_payload()
    if error:
        return error
    workspace = current_workspace()
    _bookmark, error = _bookmark_or_404(workspace, bookmark_id)
    if error:
        return error

    try:
        record = workspace.actions.update(bookmark_id, payload)
    except BookmarkValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except BookmarkActionError as exc:
        return jsonify({"error": exc.message}), 502
    return jsonify(record.as_dict())


@api_bp.route("/bookmarks/<bookmark_id>", methods=["DELETE"])
@login_required
def delete_bookmark(bookmark_id: str):
    workspace = current_workspace()
    _bookmark, error = _bookmark_or_404(workspace, bookmark_id)
    if error:
        return error

    try:
        workspace.actions.delete(bookmark_id)
    except BookmarkActionError as exc:
        return jsonify({"error": exc.message}), 502
    return jsonify({"deleted": bookmark_id})


@api_bp.route("/session/visible", methods=["POST"])
@login_required
def session_visible():
    workspace = current_workspace()
    applied = workspace.on_visible()
    return jsonify(
        {
            "applied": applied,
            "channel": workspace.realtime.channel_name,
            "version": workspace.state.version,
        }
    )


@api_bp.route("/stream")
@login_required
def stream():
    accessor = get_session_accessor()
    workspace = current_workspace()
    poll_seconds = current_app.config["REALTIME_POLL_SECONDS"]
    heartbeat_seconds = current_app.config["REALTIME_HEARTBEAT_SECONDS"]
    max_seconds = current_app.config["REALTIME_STREAM_SECONDS"]

    def generate():
        started = last_sent = time.monotonic()
        version = workspace.state.version
        yield _sse("ready", {"version": version, "count": len(workspace.state)})

        while True:
            if not accessor.is_authenticated:
                yield _sse("signed_out", {})
                return

            workspace.sync()
            now = time.monotonic()
            if workspace.state.version != version:
                version = workspace.state.version
                yield _sse("bookmarks", {"version": version, "count": len(workspace.state)})
                last_sent = now
            elif now - last_sent >= heartbeat_seconds:
                yield ": heartbeat\n\n"
                last_sent = now

            # Browsers reconnect on their own, so long-lived streams are recycled.
            if max_seconds and now - started >= max_seconds:
                return
            time.sleep(poll_seconds)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
