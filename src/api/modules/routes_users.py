# User administration + notification routes
# Loaded by dashboard.py via load_module()

@bp.route("/users")
@role_required(UserRole.ADMIN)
def users_page():
    return render(PAGE_USERS, users=db.list_users(),
                  roles=[r.value for r in UserRole],
                  statuses=[s.value for s in UserStatus],
                  languages=LANGUAGES)


@bp.route("/api/users", methods=["GET"])
@role_required(UserRole.ADMIN)
def api_users_list():
    role = request.args.get("role") or None
    users = db.list_users(role=role)
    return api_ok(users=users, count=len(users))


@bp.route("/api/users", methods=["POST"])
@role_required(UserRole.ADMIN)
def api_users_create():
    cleaned = validate_user_form(_json_body())
    user = workflow.create_user(current_user(), cleaned)
    return api_ok(201, user=user)


@bp.route("/api/users/<uid>", methods=["POST"])
@auth_required
def api_users_update(uid):
    # non-admins may only touch their own language/password (enforced in workflow)
    changes = validate_user_update(_json_body())
    if not changes:
        return api_error("Nothing to update", 400)
    user = workflow.update_user(current_user(), uid, changes)
    return api_ok(user=user)


# ═══════════════════════════════════════════════════════════════════════
# Notifications (bell)
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/notifications")
@auth_required
def api_notifications():
    user = current_user()
    unread_only = request.args.get("unread", "").lower() in ("1", "true")
    items = notify_agent.get_notifications(user.id, lang=user.language,
                                           unread_only=unread_only)
    return api_ok(notifications=items,
                  unread=notify_agent.get_unread_count(user.id))


@bp.route("/api/notifications/<nid>/read", methods=["POST"])
@auth_required
def api_notification_read(nid):
    user = current_user()
    if not notify_agent.default_store.mark_read(nid, user.id):
        return api_error("Notification not found", 404)
    return api_ok(unread=notify_agent.get_unread_count(user.id))


@bp.route("/api/notifications/read-all", methods=["POST"])
@auth_required
def api_notifications_read_all():
    user = current_user()
    marked = notify_agent.default_store.mark_all_read(user.id)
    return api_ok(marked=marked, unread=0)
