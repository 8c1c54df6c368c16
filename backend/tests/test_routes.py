"""HTTP surface: JSON in, JSON out, errors as {"error", "details"}."""

import pytest

MOBILE = "0765554444"


@pytest.fixture
def shop_id(client):
    resp = client.post("/api/shops", json={"name": "Kandy Road"})
    assert resp.status_code == 201
    return resp.get_json()["shop"]["id"]


@pytest.fixture
def product_id(client, shop_id):
    resp = client.post(f"/api/products/{shop_id}", json={
        "description": "Dhal 1kg",
        "barcode": "4790001",
        "retail_price_cents": 10000,
        "wholesale_price_cents": 9000,
        "stock": "50",
    })
    assert resp.status_code == 201
    return resp.get_json()["product"]["id"]


def _cart(product_id, qty="2", **extra):
    body = {
        "lines": [{"product_id": product_id, "quantity": qty, "unit_price_cents": 10000, "description": "Dhal 1kg"}],
        "customer_name": "Ruwan",
        "customer_mobile": MOBILE,
    }
    body.update(extra)
    return body


def test_health(client):
    resp = client.get("/api/system/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "ok"
    assert data["snapshot"]["pending"] is False


def test_preview_does_not_write(client, shop_id, product_id, slot):
    writes_before = slot.writes
    resp = client.post("/api/sales/preview", json={
        "shop_id": shop_id,
        "cart": _cart(product_id, discount_cents=2000, tax_rate="10"),
    })
    assert resp.status_code == 200
    bill = resp.get_json()["bill"]
    assert bill["current_bill_total_cents"] == 19800
    assert bill["paid_cents"] == 19800
    assert slot.writes == writes_before


def test_finalize_and_settle_flow(client, shop_id, product_id):
    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": _cart(product_id), "paid_cents": 5000})
    assert resp.status_code == 201
    data = resp.get_json()
    sale_id = data["sale"]["id"]
    assert data["balance_due_cents"] == 15000
    assert data["snapshot_persisted"] is True
    assert len(data["sale"]["lines"]) == 1

    resp = client.get(f"/api/customers/{MOBILE}/balance", query_string={"shop_id": shop_id})
    assert resp.get_json()["balance_due_cents"] == 15000

    resp = client.get("/api/sales/outstanding", query_string={"shop_id": shop_id, "q": "ruwan"})
    assert [s["id"] for s in resp.get_json()["items"]] == [sale_id]

    resp = client.post(f"/api/sales/{sale_id}/settle", json={"amount_cents": 5000})
    assert resp.status_code == 200
    assert resp.get_json()["allocation"]["allocated_cents"] == 5000

    resp = client.post(f"/api/customers/{MOBILE}/settle", json={"amount_cents": 20000, "shop_id": shop_id})
    assert resp.status_code == 200
    allocation = resp.get_json()["allocation"]
    assert allocation["allocated_cents"] == 10000
    assert allocation["unallocated_cents"] == 10000

    sale = client.get(f"/api/sales/{sale_id}").get_json()["sale"]
    assert sale["balance_due_cents"] == 0
    assert sale["paid_cents"] == sale["total_cents"]
    assert len(sale["payments"]) == 2

    product = client.get(f"/api/products/{shop_id}/barcode/4790001").get_json()["product"]
    assert product["stock"] == "48.000"


def test_finalize_rejects_bad_cart(client, shop_id, product_id):
    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": _cart(product_id, qty="0")})
    assert resp.status_code == 400
    assert "quantity" in resp.get_json()["error"]

    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": {"lines": []}})
    assert resp.status_code == 400

    resp = client.post("/api/sales", json={"cart": _cart(product_id)})
    assert resp.status_code == 400


def test_finalize_unknown_product_rolls_back(client, shop_id, product_id):
    cart = _cart(product_id)
    cart["lines"].append({"product_id": 999, "quantity": "1", "unit_price_cents": 100})

    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": cart})
    assert resp.status_code == 409

    assert client.get("/api/sales", query_string={"shop_id": shop_id}).get_json()["count"] == 0
    product = client.get(f"/api/products/{shop_id}/barcode/4790001").get_json()["product"]
    assert product["stock"] == "50.000"


def test_settle_unknown_sale(client):
    resp = client.post("/api/sales/NOPE/settle", json={"amount_cents": 100})
    assert resp.status_code == 404


def test_settle_requires_positive_amount(client):
    resp = client.post(f"/api/customers/{MOBILE}/settle", json={"amount_cents": 0})
    assert resp.status_code == 400


def test_backup_download_and_restore(client, shop_id, product_id):
    resp = client.get("/api/system/backup")
    assert resp.status_code == 200
    assert resp.mimetype == "application/vnd.sqlite3"
    backup = resp.data
    assert backup.startswith(b"SQLite format 3\x00")

    client.post("/api/shops", json={"name": "Galle Road"})
    assert client.get("/api/shops").get_json()["count"] == 2

    resp = client.post("/api/system/restore", data=backup, content_type="application/octet-stream")
    assert resp.status_code == 200
    assert [s["name"] for s in client.get("/api/shops").get_json()["items"]] == ["Kandy Road"]


def test_restore_garbage_is_rejected(client, shop_id):
    resp = client.post("/api/system/restore", data=b"garbage", content_type="application/octet-stream")
    assert resp.status_code == 400
    assert client.get("/api/shops").get_json()["count"] == 1


def test_persist_reports_slot_failure(client, slot):
    slot.fail = True
    resp = client.post("/api/system/persist")
    assert resp.status_code == 503
    assert client.get("/api/system/health").get_json()["snapshot"]["pending"] is True

    slot.fail = False
    assert client.post("/api/system/persist").status_code == 200


def test_customer_crud(client):
    resp = client.post("/api/customers", json={"name": "Saman", "mobile": "0712223333"})
    assert resp.status_code == 201
    customer_id = resp.get_json()["customer"]["id"]

    dup = client.post("/api/customers", json={"name": "Other", "mobile": "0712223333"})
    assert dup.status_code == 409

    resp = client.put(f"/api/customers/{customer_id}", json={"name": "Saman K"})
    assert resp.get_json()["customer"]["name"] == "Saman K"

    assert client.delete(f"/api/customers/{customer_id}").status_code == 204
    assert client.get("/api/customers").get_json()["count"] == 0


def test_product_price_write_back(client, shop_id, product_id):
    resp = client.put(f"/api/products/{shop_id}/{product_id}/price",
                      json={"price_cents": 9500, "price_mode": "wholesale"})
    assert resp.status_code == 200
    product = resp.get_json()["product"]
    assert product["wholesale_price_cents"] == 9500
    assert product["retail_price_cents"] == 10000

    bad = client.put(f"/api/products/{shop_id}/{product_id}/price", json={"price_cents": 1, "price_mode": "vip"})
    assert bad.status_code == 400


def test_expenses(client, shop_id):
    resp = client.post(f"/api/expenses/{shop_id}", json={"description": "Electricity", "amount_cents": 450000})
    assert resp.status_code == 201
    expense_id = resp.get_json()["expense"]["id"]

    assert client.post(f"/api/expenses/{shop_id}", json={"description": "Free", "amount_cents": 0}).status_code == 400
    assert client.get(f"/api/expenses/{shop_id}").get_json()["count"] == 1
    assert client.delete(f"/api/expenses/{shop_id}/{expense_id}").status_code == 204


def test_list_sales_date_range_includes_whole_end_day(client, shop_id, product_id):
    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": _cart(product_id)})
    sold_on = resp.get_json()["sale"]["sold_at"][:10]

    same_day = client.get("/api/sales", query_string={"shop_id": shop_id, "start_date": sold_on, "end_date": sold_on})
    assert same_day.get_json()["count"] == 1

    bad = client.get("/api/sales", query_string={"shop_id": shop_id, "start_date": "yesterday"})
    assert bad.status_code == 400


def test_finalize_rejects_unstorable_quantity(client, shop_id, product_id, slot):
    writes_before = slot.writes
    cart = _cart(product_id, qty="0.0004")
    cart["lines"][0]["unit_price_cents"] = 100000

    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": cart})

    assert resp.status_code == 400
    assert "decimal places" in resp.get_json()["error"]
    assert client.get("/api/sales", query_string={"shop_id": shop_id}).get_json()["count"] == 0
    product = client.get(f"/api/products/{shop_id}/barcode/4790001").get_json()["product"]
    assert product["stock"] == "50.000"
    assert slot.writes == writes_before


def test_finalize_rejects_string_is_return(client, shop_id, product_id):
    cart = _cart(product_id)
    cart["lines"][0]["is_return"] = "false"

    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": cart})

    assert resp.status_code == 400
    product = client.get(f"/api/products/{shop_id}/barcode/4790001").get_json()["product"]
    assert product["stock"] == "50.000"


def test_stored_line_matches_its_charge(client, shop_id, product_id):
    resp = client.post("/api/sales", json={"shop_id": shop_id, "cart": _cart(product_id, qty="0.125")})
    line = resp.get_json()["sale"]["lines"][0]

    assert line["quantity"] == "0.125"
    assert line["line_total_cents"] == 1250
    assert resp.get_json()["sale"]["subtotal_cents"] == 1250
