# Statistics routes
# Sales see their own RFQs, Purchasing their own quotes, Admin everything
# Loaded by dashboard.py via load_module()

def _stats_subject():
    """Whose stats: yourself, or ?user_id= when you are an Admin."""
    user = current_user()
    uid = request.args.get("user_id")
    if uid and uid != user.id:
        if user.role != UserRole.ADMIN.value:
            raise PermissionDenied("Only admins can view other users' stats")
        subject = db.get_user(uid)
        if subject is None:
            raise NotFound(f"User {uid} not found")
        return subject
    return user


def _year():
    y = request.args.get("year", "")
    return int(y) if y.isdigit() else None


@bp.route("/stats")
@auth_required
def stats_page():
    user = current_user()
    corpus = corpus_provider.get()
    sales = purchasing = overview = None
    if user.role in (UserRole.SALES.value, UserRole.ADMIN.value):
        sales = stats_mod.sales_stats(user, corpus)
    if user.role == UserRole.PURCHASING.value:
        purchasing = stats_mod.purchasing_stats(user, corpus)
    if user.role == UserRole.ADMIN.value:
        overview = stats_mod.overview(corpus, db.list_users())
    return render(PAGE_STATS, sales=sales, purchasing=purchasing, overview=overview)


@bp.route("/api/stats/sales")
@role_required(UserRole.SALES, UserRole.ADMIN)
def api_stats_sales():
    subject = _stats_subject()
    return api_ok(user_id=subject.id,
                  stats=stats_mod.sales_stats(subject, corpus_provider.get(), year=_year()))


@bp.route("/api/stats/purchasing")
@role_required(UserRole.PURCHASING, UserRole.ADMIN)
def api_stats_purchasing():
    subject = _stats_subject()
    return api_ok(user_id=subject.id,
                  stats=stats_mod.purchasing_stats(subject, corpus_provider.get(), year=_year()))


@bp.route("/api/stats/overview")
@role_required(UserRole.ADMIN)
def api_stats_overview():
    return api_ok(stats=stats_mod.overview(corpus_provider.get(), db.list_users()))
