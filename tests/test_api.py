from decimal import Decimal

from fastapi.testclient import TestClient

from rackcpq.main import app

client = TestClient(app)


def _create_configuration(**overrides):
	body = {
		"name": "Branch office",
		"customer_id": "cust-42",
		"rack_sku": "RACK-42U-STD",
		"items": [
			{"product_sku": "SW-CATALYST-9300-48", "quantity": 2},
			{"product_sku": "PSU-2000W-TITANIUM", "quantity": 1},
		],
	}
	body.update(overrides)
	resp = client.post("/configurations", json=body)
	assert resp.status_code == 201
	return resp.json()


def test_health():
	resp = client.get("/health")
	assert resp.status_code == 200
	assert resp.json() == {"status": "UP", "rules": 6, "strategies": 5}


def test_products():
	resp = client.get("/products", params={"type": "PSU"})
	assert resp.status_code == 200
	assert sorted(p["sku"] for p in resp.json()) == ["PSU-1000W-PLAT", "PSU-2000W-TITANIUM", "PSU-3000W-MODULAR"]

	resp = client.get("/products/RACK-24U-COMPACT")
	assert resp.status_code == 200
	assert resp.json()["attributes"]["units"] == 24

	assert client.get("/products/NOPE").status_code == 404


def test_rule_and_strategy_listings():
	assert client.get("/configurations/validation-rules").json()[0] == "RackRequired"
	assert client.get("/pricing/strategies").json()[-1] == "SupportAddOn"


def test_configuration_components():
	config = _create_configuration(items=[])
	assert config["status"] == "DRAFT"

	resp = client.post(f"/configurations/{config['id']}/components", json={"product_sku": "SW-FAKE"})
	assert resp.status_code == 400

	resp = client.post(
		f"/configurations/{config['id']}/components", json={"product_sku": "SW-MERAKI-MS250-48", "quantity": 2}
	)
	assert resp.status_code == 200
	item = resp.json()["items"][0]
	assert item["product_name"] == "Meraki MS250-48 Cloud Managed Switch"

	resp = client.patch(f"/configurations/{config['id']}/components/{item['id']}", params={"quantity": 3})
	assert resp.status_code == 200
	assert resp.json()["items"][0]["quantity"] == 3

	resp = client.patch(f"/configurations/{config['id']}/components/{item['id']}", params={"quantity": 0})
	assert resp.status_code == 422

	resp = client.delete(f"/configurations/{config['id']}/components/{item['id']}")
	assert resp.status_code == 200
	assert resp.json()["items"] == []

	assert client.delete(f"/configurations/{config['id']}/components/{item['id']}").status_code == 404


def test_validation_reports_itemized_errors():
	config = _create_configuration(items=[{"product_sku": "SW-NEXUS-9336C", "quantity": 2}])
	resp = client.post(f"/configurations/{config['id']}/validate")
	assert resp.status_code == 200
	data = resp.json()
	assert data["valid"] is False
	assert data["failed_rules"] == ["MinimumPSU", "PowerBudget"]
	assert data["total_power_draw_watts"] == 1300

	stored = client.get(f"/configurations/{config['id']}").json()
	assert stored["validated"] is False
	assert len(stored["validation_errors"]) == 2


def test_pricing_endpoints():
	config = _create_configuration()
	resp = client.get(
		f"/pricing/configurations/{config['id']}",
		params={"customer_tier": "PARTNER", "include_support": True, "support_tier": "PREMIUM"},
	)
	assert resp.status_code == 200
	data = resp.json()
	assert data["applied_strategies"] == ["BasePrice", "PartnerDiscount", "SupportAddOn"]
	assert Decimal(data["subtotal"]) == Decimal("18399.96")
	# 15% of 18399.96 rounds half up to 2759.99
	assert Decimal(data["total_discount"]) == Decimal("2759.99")

	resp = client.post(
		"/pricing/calculate",
		json={"configuration_id": config["id"], "rack_units_used": 40, "rack_capacity": 42},
	)
	assert resp.status_code == 200
	assert "BundleDiscount" in resp.json()["applied_strategies"]

	resp = client.post(
		"/pricing/calculate", json={"configuration_id": config["id"], "options": {"include_support": "yes"}}
	)
	assert resp.status_code == 400

	assert client.post("/pricing/calculate", json={"configuration_id": "missing"}).status_code == 404


def test_quote_flow():
	config = _create_configuration()

	resp = client.post("/quotes", json={"configuration_id": config["id"]})
	assert resp.status_code == 409

	assert client.post(f"/configurations/{config['id']}/validate").json()["valid"] is True

	resp = client.post(
		"/quotes",
		json={"configuration_id": config["id"], "customer_name": "Grace", "customer_email": "not-an-email"},
	)
	assert resp.status_code == 422

	resp = client.post(
		"/quotes",
		json={
			"configuration_id": config["id"],
			"customer_name": "Grace",
			"customer_email": "grace@example.com",
			"customer_tier": "ENTERPRISE",
		},
	)
	assert resp.status_code == 201
	quote = resp.json()
	assert quote["status"] == "PENDING"
	assert quote["customer_id"] == "cust-42"
	assert quote["expired"] is False
	assert len(quote["line_items"]) == 3
	assert client.get(f"/configurations/{config['id']}").json()["status"] == "QUOTED"

	# the document job has run by the time the test client returns
	stored = client.get(f"/quotes/{quote['id']}").json()
	assert stored["status"] == "READY"
	assert stored["pdf_url"] == f"/quotes/{quote['id']}/pdf"
	assert Decimal(stored["grand_total"]) == Decimal(quote["grand_total"])

	resp = client.get(f"/quotes/{quote['id']}/pdf")
	assert resp.status_code == 200
	assert resp.json()["quote_number"] == quote["quote_number"]

	assert client.get(f"/quotes/number/{quote['quote_number']}").json()["id"] == quote["id"]
	assert quote["id"] in [q["id"] for q in client.get("/quotes", params={"customer_id": "cust-42"}).json()]

	resp = client.post(f"/quotes/{quote['id']}/regenerate-pdf")
	assert resp.json()["status"] == "PENDING"
	assert resp.json()["pdf_url"] is None
	assert client.get(f"/quotes/{quote['id']}").json()["status"] == "READY"

	assert client.post(f"/quotes/{quote['id']}/send").json()["status"] == "SENT"
	assert client.post(f"/quotes/{quote['id']}/accept").json()["status"] == "ACCEPTED"
	assert client.post(f"/quotes/{quote['id']}/reject").status_code == 409

	stats = client.get("/quotes/stats").json()
	assert stats["accepted"] >= 1
	assert client.get("/quotes/missing").status_code == 404


def test_clone_and_delete_configuration():
	config = _create_configuration()
	client.post(f"/configurations/{config['id']}/validate")

	resp = client.post(f"/configurations/{config['id']}/clone")
	assert resp.status_code == 201
	clone = resp.json()
	assert clone["name"] == "Branch office (Copy)"
	assert clone["validated"] is False
	assert [i["product_sku"] for i in clone["items"]] == [i["product_sku"] for i in config["items"]]

	resp = client.put(f"/configurations/{clone['id']}", json={"rack_sku": "RACK-24U-COMPACT"})
	assert resp.json()["rack_sku"] == "RACK-24U-COMPACT"

	assert client.delete(f"/configurations/{clone['id']}").status_code == 204
	assert client.get(f"/configurations/{clone['id']}").status_code == 404
