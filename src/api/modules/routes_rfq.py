# RFQ + Quote Routes
# Pages: dashboard, new RFQ, detail, recycle bin
# API: RFQ CRUD, quote submit/accept/withdraw, similar quotes, WLID preview, extraction
# Loaded by dashboard.py via load_module()

_PRODUCT_FIELDS = ("product_series", "sku", "hair_fiber", "cap", "cap_size",
                   "length", "density", "color", "curl_style", "images")


def _products_from_form(form):
    """Group products-<i>-<field> inputs of the HTML form into product dicts."""
    grouped = {}
    for key in form.keys():
        parts = key.split("-", 2)
        if len(parts) != 3 or parts[0] != "products" or not parts[1].isdigit():
            continue
        if parts[2] not in _PRODUCT_FIELDS:
            continue
        value = form.get(key, "")
        if parts[2] == "images":
            value = [u for u in value.split() if u]
        grouped.setdefault(int(parts[1]), {})[parts[2]] = value
    return [grouped[i] for i in sorted(grouped)]


def _rfq_payload_from_request():
    if request.is_json:
        return _json_body()
    return {
        "customer_type": request.form.get("customer_type", ""),
        "customer_email": request.form.get("customer_email", ""),
        "assigned_purchaser_ids": request.form.getlist("assigned_purchaser_ids"),
        "products": _products_from_form(request.form),
    }


def _active_purchasers():
    return [u for u in db.list_users(role=UserRole.PURCHASING.value) if u.is_active]


def _new_rfq_page(form=None, errors=None, status=200):
    return render(PAGE_RFQ_NEW,
                  form=form or {}, errors=errors or {},
                  purchasers=_active_purchasers(),
                  customer_types=CUSTOMER_TYPES,
                  series=list(PRODUCT_SERIES),
                  configs=PRODUCT_FORM_CONFIGS,
                  default_fields=DEFAULT_PRODUCT_FIELDS), status


# ═══════════════════════════════════════════════════════════════════════
# Pages
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/")
@auth_required
def home():
    rfqs = workflow.visible_rfqs(current_user())
    return render(PAGE_HOME, rfqs=rfqs, archived=False, title="RFQs")


@bp.route("/recycle-bin")
@role_required(UserRole.SALES, UserRole.ADMIN)
def recycle_bin():
    rfqs = workflow.visible_rfqs(current_user(), archived=True)
    return render(PAGE_HOME, rfqs=rfqs, archived=True, title="Recycle Bin")


@bp.route("/rfq/new", methods=["GET", "POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
@csrf_protect
def rfq_new():
    if request.method == "GET":
        return _new_rfq_page()
    payload = _rfq_payload_from_request()
    try:
        cleaned = validate_rfq_form(payload)
        rfq = workflow.create_rfq(current_user(), cleaned)
    except FormValidationError as e:
        flash("Please fix the highlighted fields", "error")
        return _new_rfq_page(payload, e.errors, status=400)
    flash(f"RFQ {rfq.code} created: {len(rfq.products)} product(s)", "success")
    return redirect(f"/rfq/{rfq.id}")


@bp.route("/rfq/<rid>")
@auth_required
def rfq_detail(rid):
    user = current_user()
    rfq = workflow.get_rfq_for(user, rid)
    users = {u.id: u for u in db.list_users()}
    can_manage = (user.role == UserRole.ADMIN.value
                  or (user.role == UserRole.SALES.value and rfq.creator_id == user.id))
    own_quotes = {q.product_id: q for q in rfq.quotes if q.purchaser_id == user.id}
    return render(PAGE_RFQ_DETAIL, rfq=rfq, users=users, can_manage=can_manage,
                  is_purchaser=user.role == UserRole.PURCHASING.value,
                  own_quotes=own_quotes)


# ═══════════════════════════════════════════════════════════════════════
# RFQ API
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/rfqs", methods=["GET"])
@auth_required
@rate_limit("api")
def api_rfqs_list():
    archived = request.args.get("archived", "").lower() in ("1", "true", "yes")
    rfqs = workflow.visible_rfqs(current_user(), archived=archived)
    return api_ok(rfqs=rfqs, count=len(rfqs))


@bp.route("/api/rfqs", methods=["POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
@rate_limit("api")
def api_rfqs_create():
    cleaned = validate_rfq_form(_json_body())
    rfq = workflow.create_rfq(current_user(), cleaned)
    return api_ok(201, rfq=rfq)


@bp.route("/api/rfq/<rid>")
@auth_required
def api_rfq_get(rid):
    return api_ok(rfq=workflow.get_rfq_for(current_user(), rid))


@bp.route("/api/rfq/<rid>/quotes", methods=["POST"])
@role_required(UserRole.PURCHASING)
@rate_limit("api")
def api_quote_submit(rid):
    data = _json_body() or request.form.to_dict()
    # <input type=date> sends YYYY-MM-DD; anything else goes through isoparse
    date_only = parse_date_input(data.get("delivery_date", ""))
    if date_only is not None:
        data["delivery_date"] = date_only
    cleaned = validate_quote_form(data)
    quote = workflow.submit_quote(current_user(), rid, cleaned)
    rfq = db.get_rfq(rid)
    return api_ok(quote=quote, rfq_status=rfq.status)


@bp.route("/api/rfq/<rid>/quotes/accept", methods=["POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
def api_quote_accept(rid):
    quote_id = _json_body().get("quote_id") or request.form.get("quote_id", "")
    if not quote_id:
        return api_error("quote_id is required", 400)
    rfq = workflow.accept_quote(current_user(), rid, quote_id)
    return api_ok(rfq=rfq)


@bp.route("/api/rfq/<rid>/quotes/withdraw", methods=["POST"])
@role_required(UserRole.PURCHASING)
def api_quote_withdraw(rid):
    data = _json_body()
    product_id = data.get("product_id", "")
    if not product_id:
        return api_error("product_id is required", 400)
    withdrawal = workflow.withdraw_quote(current_user(), rid, product_id, data.get("reason"))
    return api_ok(withdrawal=withdrawal)


@bp.route("/api/rfq/<rid>/archive", methods=["POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
def api_rfq_archive(rid):
    rfq = workflow.archive_rfq(current_user(), rid, _json_body().get("reason"))
    return api_ok(rfq=rfq)


@bp.route("/api/rfq/<rid>/restore", methods=["POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
def api_rfq_restore(rid):
    rfq = workflow.restore_rfq(current_user(), rid)
    return api_ok(rfq=rfq)


@bp.route("/api/rfq/<rid>/delete", methods=["POST"])
@role_required(UserRole.ADMIN)
def api_rfq_delete(rid):
    workflow.delete_rfq(current_user(), rid)
    return api_ok(deleted=rid)


# ═══════════════════════════════════════════════════════════════════════
# New-RFQ helpers: similar quotes, WLID preview, text extraction
# ═══════════════════════════════════════════════════════════════════════

@bp.route("/api/similar-quotes", methods=["POST"])
@auth_required
@rate_limit("api")
def api_similar_quotes():
    data = _json_body()
    raw = data.get("product", data)
    if not isinstance(raw, dict):
        return api_error("product must be an object", 400)
    query = Product.from_dict(raw)
    corpus = corpus_provider.get()
    quotes = find_similar_quotes(query, corpus)

    names = {u.id: u.name for u in db.list_users()}
    by_id = {r.id: r for r in corpus}
    out = []
    for q in quotes:
        rfq = by_id.get(q.rfq_id)
        product = rfq.product(q.product_id) if rfq else None
        item = q.to_dict()
        item.update({
            "rfq_code": rfq.code if rfq else "",
            "wlid": product.wlid if product else "",
            "purchaser_name": names.get(q.purchaser_id, q.purchaser_id),
            "price_rmb": format_rmb(q.price),
            "price_usd": format_usd(rmb_to_usd(q.price)),
        })
        out.append(item)
    return api_ok(quotes=out, count=len(out))


@bp.route("/api/wlid/next")
@auth_required
def api_wlid_next():
    series = request.args.get("series", "")
    return api_ok(series=series, wlid=peek_next_wlid(series))


@bp.route("/api/rfq/extract", methods=["POST"])
@role_required(UserRole.SALES, UserRole.ADMIN)
@rate_limit("heavy")
def api_rfq_extract():
    text = _json_body().get("text", "")
    if not text.strip():
        return api_error("text is required", 400)
    result = extract_rfq(text, _active_purchasers())
    return api_ok(method=result["method"], data=result["data"])
