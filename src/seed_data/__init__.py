"""Seed data bundled with the application image.

These files live at /app/src/seed_data/ inside the Railway container and are
never shadowed by the volume mount (which is at /app/data/).

demo.json holds demo accounts and a few historical RFQs so that a fresh
install has something for the similar-quote lookup to find. Loaded with
`flask --app app seed-demo`.
"""

import json
import logging
import os
from datetime import timedelta

from werkzeug.security import generate_password_hash

from src.core import db
from src.core.models import RFQ, Product, Quote, User, utcnow
from src.core.wlid import allocate_wlids
from src.core.workflow import rfq_code
from src.knowledge.corpus import corpus_provider

log = logging.getLogger("quoteflow.seed")

DEMO_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "demo.json")


def load_demo(path: str = DEMO_FILE) -> dict:
    """Insert demo users and RFQs that are not already present."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    now = utcnow()
    added = {"users": 0, "rfqs": 0}
    password_hash = generate_password_hash(data["password"])
    for u in data["users"]:
        if db.get_user(u["id"]) or db.get_user_by_email(u["email"]):
            continue
        db.insert_user(User(id=u["id"], email=u["email"], name=u["name"],
                            role=u["role"], language=u.get("language", "en")),
                       password_hash)
        added["users"] += 1

    for r in data["rfqs"]:
        if db.get_rfq(r["id"]):
            continue
        inquiry = now - timedelta(days=r["days_ago"])
        products = [Product.from_dict(p) for p in r["products"]]
        for product, wlid in zip(products, allocate_wlids([p.product_series for p in products])):
            product.wlid = wlid
        quotes = [
            Quote(id=q["id"], rfq_id=r["id"], product_id=q["product_id"],
                  purchaser_id=q["purchaser_id"], price=q["price"], status=q["status"],
                  quote_time=now - timedelta(days=q["quoted_days_ago"]),
                  delivery_date=now + timedelta(days=q["delivery_in_days"]))
            for q in r["quotes"]
        ]
        db.save_rfq(RFQ(id=r["id"], code=rfq_code(inquiry), creator_id=r["creator_id"],
                        inquiry_time=inquiry, status=r["status"],
                        assigned_purchaser_ids=r["assigned_purchaser_ids"],
                        customer_type=r["customer_type"],
                        customer_email=r["customer_email"],
                        products=products, quotes=quotes))
        added["rfqs"] += 1

    corpus_provider.invalidate()
    log.info("Demo data loaded: %d users, %d RFQs", added["users"], added["rfqs"])
    return added
