from __future__ import annotations

from flask import Response, g, jsonify, request

from tagmark.api import api_bp
from tagmark.extensions import db
from tagmark.models import ApiToken, User, utcnow
from tagmark.services.bookmarks import (
    ORDER_RECONCILED,
    delete_all,
    delete_bookmark,
    export_bookmarks_html,
    finish_ordering,
    get_bookmark,
    import_bookmarks,
    list_bookmarks,
    record_access,
    save_bookmark,
    toggle_pin,
)
from tagmark.services.common import clean_tag_names, to_bool
from tagmark.services.errors import InvalidInput, TagmarkError
from tagmark.services.list_engine import SORT_OPTIONS, SORT_ORDERS, present
from tagmark.services.ordering import (
    cancel_ordering,
    get_ordering,
    move_in_ordering,
    refresh_ordering,
    start_ordering,
)
from tagmark.services.security import api_auth_required
from tagmark.services.settings import get_settings, update_settings
from tagmark.services.tags import (
    add_tag,
    create_rule,
    delete_rule,
    list_rules,
    list_tags,
    remove_tag,
    rename_tag,
    replace_tags,
)


@api_bp.errorhandler(TagmarkError)
def handle_tagmark_error(exc: TagmarkError):
    return jsonify(exc.as_dict()), exc.status_code


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _selected_tags(source) -> list[str]:
    if hasattr(source, "getlist"):
        raw = source.getlist("tags")
    else:
        raw = source.get("tags") or []
        if isinstance(raw, str):
            raw = [raw]
    names: list[str] = []
    for value in raw:
        for name in str(value).split(","):
            name = name.strip()
            if name and name not in names:
                names.append(name)
    return names


def _sort_params(ctx, source) -> tuple[str, str]:
    settings = get_settings(ctx)
    sort_key = source.get("sort") or settings["sortOption"]
    sort_order = source.get("order") or settings["sortOrder"]
    if sort_key not in SORT_OPTIONS:
        raise InvalidInput(f"sort must be one of {', '.join(SORT_OPTIONS)}")
    if sort_order not in SORT_ORDERS:
        raise InvalidInput(f"order must be one of {', '.join(SORT_ORDERS)}")
    return sort_key, sort_order


def _index(payload: dict, field: str) -> int:
    try:
        return int(payload.get(field))
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be an integer") from None


def _with_items(ctx, payload: dict, status_code: int = 200):
    items = list_bookmarks(ctx)
    refresh_ordering(ctx.user_id, items)
    return jsonify({**payload, "items": items}), status_code


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Tagmark"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = _json_payload()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    token_name = (payload.get("token_name") or "Tagmark API Token").strip()

    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    ctx = g.user_context
    sort_key, sort_order = _sort_params(ctx, request.args)
    ordering = get_ordering(ctx.user_id)
    items = ordering.items if ordering else list_bookmarks(ctx)
    view = present(
        items,
        search_query=request.args.get("q") or "",
        selected_tags=_selected_tags(request.args),
        sort_key=sort_key,
        sort_order=sort_order,
        ordering_mode_active=ordering is not None,
    )
    return jsonify(
        {
            **view.as_dict(),
            "ordering": ordering is not None,
            "sort": sort_key,
            "order": sort_order,
        }
    )


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    ctx = g.user_context
    bookmark = save_bookmark(ctx, _json_payload())
    return _with_items(ctx, {"bookmark": bookmark}, 201)


@api_bp.route("/bookmarks", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_all_api():
    ctx = g.user_context
    if not to_bool(_json_payload().get("confirm")):
        return jsonify({"error": "confirmation required"}), 400
    counts = delete_all(ctx)
    return _with_items(ctx, {"status": "deleted", "deleted": counts})


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    return jsonify(get_bookmark(g.user_context, bookmark_id))


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required
def bookmarks_update_api(bookmark_id: int):
    ctx = g.user_context
    bookmark = save_bookmark(ctx, _json_payload(), bookmark_id=bookmark_id)
    return _with_items(ctx, {"bookmark": bookmark})


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    ctx = g.user_context
    delete_bookmark(ctx, bookmark_id)
    return _with_items(ctx, {"status": "deleted"})


@api_bp.route("/bookmarks/<int:bookmark_id>/pin", methods=["POST"])
@api_auth_required
def bookmarks_toggle_pin_api(bookmark_id: int):
    ctx = g.user_context
    bookmark = toggle_pin(ctx, bookmark_id)
    return _with_items(ctx, {"bookmark": bookmark})


@api_bp.route("/bookmarks/<int:bookmark_id>/access", methods=["POST"])
@api_auth_required
def bookmarks_access_api(bookmark_id: int):
    ctx = g.user_context
    bookmark = record_access(ctx, bookmark_id)
    return _with_items(ctx, {"bookmark": bookmark, "open_url": bookmark["url"]})


@api_bp.route("/tags", methods=["GET"])
@api_auth_required
def tags_list_api():
    return jsonify({"items": list_tags(g.user_context)})


@api_bp.route("/tags", methods=["POST"])
@api_auth_required
def tags_create_api():
    tag = add_tag(g.user_context, _json_payload().get("name"))
    return jsonify(tag), 201


@api_bp.route("/tags", methods=["PUT"])
@api_auth_required
def tags_replace_api():
    ctx = g.user_context
    names = clean_tag_names(_json_payload().get("names") or [])
    tags = replace_tags(ctx, names)
    return _with_items(ctx, {"tags": tags})


@api_bp.route("/tags/<int:tag_id>", methods=["PATCH"])
@api_auth_required
def tags_rename_api(tag_id: int):
    ctx = g.user_context
    tag = rename_tag(ctx, tag_id, _json_payload().get("name"))
    return _with_items(ctx, {"tag": tag})


@api_bp.route("/tags/<int:tag_id>", methods=["DELETE"])
@api_auth_required
def tags_delete_api(tag_id: int):
    ctx = g.user_context
    result = remove_tag(ctx, tag_id)
    return _with_items(ctx, result)


@api_bp.route("/tag-rules", methods=["GET"])
@api_auth_required
def tag_rules_list_api():
    return jsonify({"items": list_rules(g.user_context)})


@api_bp.route("/tag-rules", methods=["POST"])
@api_auth_required
def tag_rules_create_api():
    ctx = g.user_context
    result = create_rule(ctx, _json_payload())
    return _with_items(ctx, result, 201)


@api_bp.route("/tag-rules/<int:rule_id>", methods=["DELETE"])
@api_auth_required
def tag_rules_delete_api(rule_id: int):
    ctx = g.user_context
    remove_tags = to_bool(request.args.get("remove_tags"), default=False)
    result = delete_rule(ctx, rule_id, remove_tags=remove_tags)
    return _with_items(ctx, result)


@api_bp.route("/settings", methods=["GET"])
@api_auth_required
def settings_get_api():
    return jsonify(get_settings(g.user_context))


@api_bp.route("/settings", methods=["PUT", "PATCH"])
@api_auth_required
def settings_update_api():
    return jsonify(update_settings(g.user_context, _json_payload()))


@api_bp.route("/ordering/start", methods=["POST"])
@api_auth_required
def ordering_start_api():
    ctx = g.user_context
    payload = _json_payload()
    sort_key, sort_order = _sort_params(ctx, payload)
    search_query = payload.get("q") or ""
    selected_tags = _selected_tags(payload)
    session = start_ordering(
        ctx.user_id,
        list_bookmarks(ctx),
        search_query=search_query,
        selected_tags=selected_tags,
        sort_key=sort_key,
        sort_order=sort_order,
    )
    view = present(
        session.items,
        search_query,
        selected_tags,
        sort_key,
        sort_order,
        ordering_mode_active=True,
    )
    return jsonify({**session.as_dict(), **view.as_dict()})


@api_bp.route("/ordering/move", methods=["POST"])
@api_auth_required
def ordering_move_api():
    ctx = g.user_context
    payload = _json_payload()
    old_index = _index(payload, "old_index")
    new_index = _index(payload, "new_index")
    try:
        session = move_in_ordering(
            ctx.user_id,
            old_index,
            new_index,
            to_bool(payload.get("pinned")),
            search_query=payload.get("q"),
            selected_tags=_selected_tags(payload) if "tags" in payload else None,
        )
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    if session is None:
        return jsonify({"error": "ordering mode is not active"}), 409

    view = present(
        session.items,
        session.search_query,
        session.selected_tags,
        "custom",
        ordering_mode_active=True,
    )
    return jsonify({**session.as_dict(), **view.as_dict()})


@api_bp.route("/ordering/finish", methods=["POST"])
@api_auth_required
def ordering_finish_api():
    result = finish_ordering(g.user_context)
    status_code = 500 if result.status == ORDER_RECONCILED else 200
    payload = result.as_dict()
    if result.status == ORDER_RECONCILED:
        payload["error"] = "custom order could not be saved"
    return jsonify(payload), status_code


@api_bp.route("/ordering", methods=["GET"])
@api_auth_required
def ordering_state_api():
    session = get_ordering(g.user_context.user_id)
    if session is None:
        return jsonify({"active": False})
    return jsonify(session.as_dict())


@api_bp.route("/ordering", methods=["DELETE"])
@api_auth_required
def ordering_cancel_api():
    session = cancel_ordering(g.user_context.user_id)
    return jsonify({"status": "cancelled" if session else "inactive"})


@api_bp.route("/import/browser-html", methods=["POST"])
@api_auth_required
def import_browser_html_api():
    ctx = g.user_context
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "file field is required"}), 400

    counts = import_bookmarks(ctx, upload.read())
    return _with_items(ctx, {"status": "done", **counts})


@api_bp.route("/export/browser-html")
@api_auth_required
def export_browser_html_api():
    payload = export_bookmarks_html(g.user_context)
    timestamp = utcnow().strftime("%Y%m%d-%H%M%S")
    filename = f"tagmark-bookmarks-{timestamp}.html"
    return Response(
        payload,
        content_type="text/html; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
