"""
HTTP surface through FastAPI's TestClient against an isolated SQLite file.
Requests carry explicit spot prices or go through a patched price source,
so no network call is made.
"""

from decimal import Decimal

from conftest import BASE_SETTINGS

from bullionpos.schemas.pricing import SpotPrices

SPOT = {"gold": 2500, "silver": 32}


def buy_gold_bars(client, qty, customer_id="C", date="2025-01-15T12:00:00Z", payment="wire"):
    return client.post("/api/transactions", json={
        "type": "buy",
        "payment": payment,
        "customerId": customer_id,
        "date": date,
        "spot": SPOT,
        "lines": [{"metal": "gold", "form": "bars", "rawQty": qty}],
    })


def test_settings_default_then_sanitised_save(client):
    r = client.get("/api/settings")
    assert r.status_code == 200
    assert Decimal(r.json()["junkMultiplier"]) == Decimal("0.715")

    bad = dict(BASE_SETTINGS, junkMultiplier=0, sellPremCoins=-4,
               premiumModes={"sellPremBars": "dollar", "buyDiscBars": "bogus"})
    r = client.put("/api/settings", json=bad)
    assert r.status_code == 200
    saved = client.get("/api/settings").json()
    assert Decimal(saved["junkMultiplier"]) == Decimal("0.715")
    assert Decimal(saved["sellPremCoins"]) == Decimal("0")
    assert saved["premiumModes"] == {"sellPremBars": "dollar", "buyDiscBars": "percent"}
    assert saved["shopName"] == "Test Bullion Shop"


def test_quote(client):
    client.put("/api/settings", json=BASE_SETTINGS)
    r = client.post("/api/pricing/quote", json={
        "type": "buy", "metal": "gold", "form": "bars", "rawQty": 12, "spot": 2500,
    })
    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["pricePerOz"]) == Decimal("2375")
    assert Decimal(body["marginFraction"]) == Decimal("-0.05")
    assert Decimal(body["total"]) == Decimal("28500")
    assert body["exceedsAlertThreshold"] is True


def test_quote_scrap_resets_foreign_purity(client):
    r = client.post("/api/pricing/quote", json={
        "type": "buy", "metal": "silver", "form": "scrap", "rawQty": 10,
        "scrapPurity": "14k", "spot": 32,
    })
    assert r.status_code == 200
    assert r.json()["scrapPurity"] == "925"
    assert Decimal(r.json()["qty"]) == Decimal("9.25")


def test_quote_errors_map_to_400(client):
    r = client.post("/api/pricing/quote", json={
        "type": "buy", "metal": "gold", "form": "bars", "rawQty": 1, "spot": 0,
    })
    assert r.status_code == 400
    assert r.json()["code"] == "UNAVAILABLE_PRICE"

    r = client.post("/api/pricing/quote", json={
        "type": "buy", "metal": "gold", "form": "bars", "rawQty": -3, "spot": 2500,
    })
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_QUANTITY"


def test_create_and_list_transaction(client):
    r = buy_gold_bars(client, 10)
    assert r.status_code == 201
    tx = r.json()
    assert tx["type"] == "buy"
    assert tx["customerId"] == "C"
    assert Decimal(tx["total"]) == Decimal("23750")
    assert "form1099BFlag" not in tx

    listed = client.get("/api/transactions").json()
    assert [t["id"] for t in listed] == [tx["id"]]


def test_retroactive_1099b_through_api(client):
    first = buy_gold_bars(client, 20, date="2025-01-15T08:00:00Z").json()
    second = buy_gold_bars(client, 15, date="2025-01-15T20:00:00Z").json()
    assert second["form1099BFlag"] is True
    assert "Combined" in second["form1099BReason"]

    flagged = client.get("/api/transactions", params={"compliance": "1099b-flagged"}).json()
    assert {t["id"] for t in flagged} == {first["id"], second["id"]}

    r = client.put(f"/api/transactions/{first['id']}", json={"form1099BFiled": True})
    assert r.status_code == 200
    needs = client.get("/api/transactions", params={"compliance": "1099b-needs-filing"}).json()
    assert [t["id"] for t in needs] == [second["id"]]

    r = client.delete(f"/api/transactions/{second['id']}")
    assert r.status_code == 200
    remaining = client.get("/api/transactions").json()
    assert len(remaining) == 1
    assert "form1099BFlag" not in remaining[0]
    assert remaining[0]["form1099BFiled"] is True


def test_dry_run_check_does_not_store(client):
    buy_gold_bars(client, 20)
    r = client.post("/api/compliance/check-1099b", json={
        "type": "buy", "payment": "wire", "customerId": "C", "date": "2025-01-15T13:00:00Z",
        "spot": SPOT,
        "lines": [{"metal": "gold", "form": "bars", "rawQty": 15}],
    })
    assert r.status_code == 200
    body = r.json()
    assert body["form1099B"]["reportable"] is True
    assert "Combined" in body["form1099B"]["reason"]
    assert body["form8300"]["reportable"] is False
    assert len(client.get("/api/transactions").json()) == 1


def test_empty_deal_is_400(client):
    r = client.post("/api/transactions", json={"type": "buy", "spot": SPOT, "lines": []})
    assert r.status_code == 400
    assert r.json()["code"] == "EMPTY_DEAL"


def test_zero_spot_blocks_deal(client):
    r = client.post("/api/transactions", json={
        "type": "sell", "spot": {"gold": 0, "silver": 32},
        "lines": [{"metal": "gold", "form": "bars", "rawQty": 1}],
    })
    assert r.status_code == 400
    assert r.json()["code"] == "UNAVAILABLE_PRICE"


def test_edit_and_delete_unknown_id_404(client):
    r = client.put("/api/transactions/missing", json={"notes": "x"})
    assert r.status_code == 404
    assert r.json()["code"] == "TRANSACTION_NOT_FOUND"
    assert client.delete("/api/transactions/missing").status_code == 404


def test_invalid_type_is_422(client):
    r = client.post("/api/transactions", json={"type": "loan", "spot": SPOT, "lines": []})
    assert r.status_code == 422


def test_fifo_and_inventory_endpoints(client):
    for qty, price, tx_type, date in [
        (5, 1900, "buy", "2025-01-10T12:00:00Z"),
        (3, 2100, "buy", "2025-01-11T12:00:00Z"),
        (6, 2300, "sell", "2025-01-12T12:00:00Z"),
    ]:
        r = client.post("/api/transactions", json={
            "type": tx_type, "payment": "wire", "date": date, "spot": SPOT,
            "lines": [{"metal": "gold", "form": "bars", "rawQty": qty, "price": price}],
        })
        assert r.status_code == 201

    report = client.get("/api/calculations/cost-basis").json()
    assert Decimal(report["summary"]["gold"]["bars"]["qty"]) == Decimal("2")
    assert Decimal(report["summary"]["gold"]["bars"]["totalCost"]) == Decimal("4200")
    assert Decimal(report["totalRealizedPnl"]) == Decimal("2200")

    settings = dict(BASE_SETTINGS, reorderPoints={"goldBars": 5})
    client.put("/api/settings", json=settings)
    inventory = client.get("/api/calculations/inventory").json()
    assert inventory["items"][0]["metal"] == "gold"
    assert Decimal(inventory["items"][0]["qty"]) == Decimal("2")
    assert [a["bucket"] for a in inventory["reorderAlerts"]] == ["gold_bars"]

    dash = client.get("/api/calculations/dashboard",
                      params={"gold": 2500, "silver": 32, "today": "2025-01-12"}).json()
    assert dash["todayCount"] == 1
    assert Decimal(dash["todaySold"]) == Decimal("13800")
    assert Decimal(dash["costBasis"]) == Decimal("4200")
    assert Decimal(dash["unrealizedPnl"]) == Decimal("800")
    assert dash["reorderAlertCount"] == 1


def test_customer_profile_endpoint(client):
    buy_gold_bars(client, 2, customer_id="cust-9", payment="cash")
    profile = client.get("/api/calculations/customers/cust-9").json()
    assert profile["transactionCount"] == 1
    assert Decimal(profile["totalBought"]) == Decimal("4750")


def test_spot_source_used_when_request_omits_spot(client, monkeypatch):
    async def fake_spot_prices():
        return SpotPrices(gold=Decimal("2000"), silver=Decimal("25"))

    monkeypatch.setattr("bullionpos.routers.transaction.get_spot_prices", fake_spot_prices)
    monkeypatch.setattr("bullionpos.routers.pricing.get_spot_prices", fake_spot_prices)

    r = client.post("/api/transactions", json={
        "type": "buy", "payment": "wire",
        "lines": [{"metal": "gold", "form": "bars", "rawQty": 1}],
    })
    assert r.status_code == 201
    assert Decimal(r.json()["spot"]) == Decimal("2000")
    assert Decimal(r.json()["total"]) == Decimal("1900")

    r = client.post("/api/pricing/quote", json={"type": "sell", "metal": "silver", "form": "bars", "rawQty": 10})
    assert r.status_code == 200
    assert Decimal(r.json()["spot"]) == Decimal("25")
    assert Decimal(r.json()["pricePerOz"]) == Decimal("26.25")


def test_backdated_deal_flags_later_record(client):
    later = buy_gold_bars(client, 20, date="2025-01-15T12:00:00Z").json()
    back = buy_gold_bars(client, 15, date="2025-01-15T11:00:00Z").json()
    assert back["form1099BFlag"] is True

    flagged = client.get("/api/transactions", params={"compliance": "1099b-flagged"}).json()
    assert {t["id"] for t in flagged} == {later["id"], back["id"]}
