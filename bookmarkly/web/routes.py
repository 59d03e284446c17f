from __future__ import annotations

from flask import (
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required

from bookmarkly.services.app_context import current_workspace
from bookmarkly.services.bookmark_actions import (
    BookmarkActionError,
    BookmarkValidationError,
)
from bookmarkly.services.filtering import (
    ALL_TAGS,
    display_domain,
    filter_bookmarks,
    tag_vocabulary,
)
from bookmarkly.services.forms import BookmarkForm, TagInput
from bookmarkly.web import web_bp


VIEW_MODES = ("grid", "list")
CARD_TAG_LIMIT = 3

EMPTY_STATES = {
    "no-bookmarks": {
        "title": "Your collection is empty",
        "description": "Save and organize your favorite links here. "
        "Click the '+' button to add your first bookmark!",
    },
    "no-search": {
        "title": "No matches found",
        "description": "We couldn't find anything matching your search. "
        "Try different keywords or add a new bookmark.",
    },
    "error": {
        "title": "Failed to load bookmarks",
        "description": "There was a problem connecting to our servers. "
        "Please check your connection and try again.",
    },
}


def _empty_state(error: str | None, filtered: list, query: str) -> str | None:
    if error:
        return "error"
    if filtered:
        return None
    if query.strip():
        return "no-search"
    return "no-bookmarks"


def _read_form() -> tuple[BookmarkForm, TagInput, str]:
    tag_input = TagInput(
        tags=request.form.getlist("tags"),
        text=request.form.get("tag_input") or "",
        message_seconds=current_app.config["TAG_MESSAGE_SECONDS"],
    )
    action = request.form.get("action") or "save"
    if action == "enter":
        # Enter adds the typed tag when there is one and saves otherwise.
        action = "add_tag" if tag_input.text.strip() else "save"
    if action == "add_tag":
        tag_input.key_down("Enter")
    elif action == "remove_last_tag":
        tag_input.key_down("Backspace")
    elif action.startswith("remove_tag:"):
        tag_input.remove(action.split(":", 1)[1])
    else:
        # Leaving the tag box commits whatever was typed.
        tag_input.blur()

    form = BookmarkForm(
        url=request.form.get("url") or "",
        title=request.form.get("title") or "",
        notes=request.form.get("notes") or "",
        tags=tag_input.tags,
    )
    return form, tag_input, action


def _render_form(mode: str, form: BookmarkForm, tag_input: TagInput, bookmark=None):
    return render_template(
        "bookmark_form.html",
        mode=mode,
        form=form,
        tag_input=tag_input,
        bookmark=bookmark,
    )


@web_bp.route("/")
@login_required
def index():
    workspace = current_workspace()
    query = request.args.get("q", "")
    view = request.args.get("view", "grid")
    if view not in VIEW_MODES:
        view = "grid"

    items = workspace.items
    tags = tag_vocabulary(items)
    active_tag = request.args.get("tag") or ALL_TAGS
    if active_tag not in tags:
        active_tag = ALL_TAGS

    filtered = filter_bookmarks(items, query, active_tag)
    empty_state = _empty_state(workspace.error, filtered, query)
    return render_template(
        "index.html",
        bookmarks=filtered,
        tags=tags,
        active_tag=active_tag,
        query=query,
        view=view,
        loading=workspace.loading,
        empty_state=empty_state,
        empty=EMPTY_STATES.get(empty_state),
        user=current_user,
        display_domain=display_domain,
        card_tag_limit=CARD_TAG_LIMIT,
    )


@web_bp.route("/refresh", methods=["POST"])
@login_required
def refresh():
    current_workspace().query.refetch()
    return redirect(url_for("web.index"))


@web_bp.route("/bookmarks/new", methods=["GET", "POST"])
@login_required
def bookmark_new():
    if request.method == "GET":
        return _render_form("add", BookmarkForm(), TagInput())

    form, tag_input, action = _read_form()
    if action != "save":
        return _render_form("add", form, tag_input)
    if not form.validate():
        return _render_form("add", form, tag_input), 400

    try:
        current_workspace().actions.create(form.cleaned())
    except BookmarkValidationError as exc:
        form.error = str(exc)
        return _render_form("add", form, tag_input), 400
    except BookmarkActionError as exc:
        form.error = exc.message
        return _render_form("add", form, tag_input), 502

    flash("Bookmark added.", "success")
    return redirect(url_for("web.index"))


@web_bp.route("/bookmarks/<bookmark_id>/edit", methods=["GET", "POST"])
@login_required
def bookmark_edit(bookmark_id: str):
    workspace = current_workspace()
    bookmark = workspace.state.find(bookmark_id)
    if bookmark is None:
        abort(404)

    if request.method == "GET":
        return _render_form(
            "edit", BookmarkForm.from_record(bookmark), TagInput(tags=bookmark.tags), bookmark
        )

    form, tag_input, action = _read_form()
    if action != "save":
        return _render_form("edit", form, tag_input, bookmark)
    if not form.validate():
        return _render_form("edit", form, tag_input, bookmark), 400

    try:
        workspace.actions.update(bookmark_id, form.cleaned())
    except BookmarkValidationError as exc:
        form.error = str(exc)
        return _render_form("edit", form, tag_input, bookmark), 400
    except BookmarkActionError as exc:
        form.error = exc.message
        return _render_form("edit", form, tag_input, bookmark), 502

    flash("Bookmark updated.", "success")
    return redirect(url_for("web.index"))


@web_bp.route("/bookmarks/<bookmark_id>/delete", methods=["POST"])
@login_required
def bookmark_delete(bookmark_id: str):
    workspace = current_workspace()
    bookmark = workspace.state.find(bookmark_id)
    if bookmark is None:
        abort(404)

    try:
        workspace.actions.delete(bookmark_id)
    except BookmarkActionError as exc:
        form = BookmarkForm.from_record(bookmark)
        form.error = exc.message
        return _render_form("edit", form, TagInput(tags=bookmark.tags), bookmark), 502

    flash("Bookmark deleted.", "success")
    return redirect(url_for("web.index"))
