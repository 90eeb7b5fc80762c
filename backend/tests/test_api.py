"""
Tests for the HTTP API.
"""

from decimal import Decimal


STAFF = {"X-Staff-Id": "7"}


def table_url(venue, table, path=""):
    return f"/api/venues/{venue.id}/tables/{table.id}{path}"


def add_paneer(client, venue, table, menu, quantity=2):
    paneer = menu["paneer"]
    return client.post(
        table_url(venue, table, "/cart/items"),
        json={
            "menu_item_id": paneer.id,
            "name": paneer.name,
            "unit_price": str(paneer.price),
            "quantity": quantity,
        },
        headers=STAFF,
    )


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["service"] == "pos-api"

    def test_detailed_health(self, client):
        response = client.get("/api/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["dependencies"]["order_database"]["status"] == "healthy"
        assert data["dependencies"]["cart_store"]["status"] == "healthy"
        assert "redis" not in data["dependencies"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "req-123"})

        assert response.headers.get("X-Request-ID") == "req-123"


class TestTableState:
    def test_empty_table(self, client, seed_venue, seed_table):
        response = client.get(table_url(seed_venue, seed_table, "/state"))

        assert response.status_code == 200
        data = response.json()
        assert data["lifecycle"] == "cart"
        assert data["table_number"] == 1
        assert data["table_status"] == "available"
        assert data["active_orders"] == []

    def test_unknown_table(self, client, seed_venue):
        response = client.get(f"/api/venues/{seed_venue.id}/tables/9999/state")

        assert response.status_code == 404


class TestCart:
    def test_add_and_edit_lines(self, client, seed_venue, seed_table, seed_menu):
        response = add_paneer(client, seed_venue, seed_table, seed_menu)

        assert response.status_code == 200
        data = response.json()
        assert data["cart_item_count"] == 2
        assert Decimal(data["cart_subtotal"]) == Decimal("200.00")

        line_id = data["cart"][0]["line_id"]
        response = client.patch(table_url(seed_venue, seed_table, f"/cart/items/{line_id}"), json={"quantity": 3})
        assert response.json()["cart_item_count"] == 3

        response = client.delete(table_url(seed_venue, seed_table, f"/cart/items/{line_id}"))
        assert response.json()["cart"] == []

    def test_quantity_out_of_range(self, client, seed_venue, seed_table, seed_menu):
        paneer = seed_menu["paneer"]
        response = client.post(
            table_url(seed_venue, seed_table, "/cart/items"),
            json={"menu_item_id": paneer.id, "name": paneer.name, "unit_price": "100", "quantity": 0},
        )

        assert response.status_code == 422

    def test_clear_cart(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)

        response = client.delete(table_url(seed_venue, seed_table, "/cart"))

        assert response.json()["cart_item_count"] == 0


class TestOrders:
    def test_place_order_requires_staff(self, client, seed_venue, seed_table, seed_menu):
        paneer = seed_menu["paneer"]
        client.post(
            table_url(seed_venue, seed_table, "/cart/items"),
            json={"menu_item_id": paneer.id, "name": paneer.name, "unit_price": "100"},
        )

        response = client.post(table_url(seed_venue, seed_table, "/orders"), json={})

        assert response.status_code == 400

    def test_place_order(self, client, seed_venue, seed_table, seed_menu):
        """Should create the order and return its kitchen ticket."""
        add_paneer(client, seed_venue, seed_table, seed_menu)

        response = client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["order"]["total"]) == Decimal("217.00")
        assert data["order"]["status"] == "placed"
        assert data["kitchen_ticket"]["is_additional_round"] is False
        assert "KITCHEN ORDER TICKET" in data["kitchen_ticket"]["text"]

        state = client.get(table_url(seed_venue, seed_table, "/state")).json()
        assert state["lifecycle"] == "placed"
        assert state["table_status"] == "occupied"

    def test_empty_cart_rejected(self, client, seed_venue, seed_table):
        response = client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        assert response.status_code == 400

    def test_cart_locked_after_placing(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)
        client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        response = add_paneer(client, seed_venue, seed_table, seed_menu)

        assert response.status_code == 400

    def test_second_round_and_reprint(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)
        client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        assert client.post(table_url(seed_venue, seed_table, "/add-more")).json()["lifecycle"] == "adding_more"
        add_paneer(client, seed_venue, seed_table, seed_menu, quantity=1)
        response = client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        assert response.json()["kitchen_ticket"]["is_additional_round"] is True

        reprint = client.post(table_url(seed_venue, seed_table, "/kot"))
        assert reprint.json()["is_reprint"] is True
        assert "(REPRINT)" in reprint.json()["text"]

    def test_cancel(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)
        client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)

        response = client.post(table_url(seed_venue, seed_table, "/cancel"), json={"reason": "Guest left"})

        assert response.status_code == 200
        assert [order["cancel_reason"] for order in response.json()] == ["Guest left"]
        state = client.get(table_url(seed_venue, seed_table, "/state")).json()
        assert state["lifecycle"] == "cart"
        assert state["table_status"] == "available"


class TestPayment:
    def _place(self, client, venue, table, menu):
        add_paneer(client, venue, table, menu)
        client.post(table_url(venue, table, "/orders"), json={}, headers=STAFF)

    def test_bill_quote(self, client, seed_venue, seed_table, seed_menu):
        self._place(client, seed_venue, seed_table, seed_menu)

        response = client.get(
            table_url(seed_venue, seed_table, "/bill-quote"),
            params={"manual_discount": "10", "manual_discount_type": "percentage", "tip": "5"},
        )

        data = response.json()
        assert Decimal(data["discounted_subtotal"]) == Decimal("180.00")
        assert Decimal(data["tax"]) == Decimal("15.30")
        assert Decimal(data["final_total"]) == Decimal("200.30")

    def test_direct_payment(self, client, seed_venue, seed_table, seed_menu):
        self._place(client, seed_venue, seed_table, seed_menu)

        response = client.post(
            table_url(seed_venue, seed_table, "/payment"),
            json={"kind": "direct", "final_total": "217.00", "method": "cash", "received": "250"},
            headers=STAFF,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["table_status"] == "available"
        assert len(data["order_ids"]) == 1
        assert data["credit_id"] is None
        assert "Change" in data["bill_text"]
        state = client.get(table_url(seed_venue, seed_table, "/state")).json()
        assert state["lifecycle"] == "completed"

    def test_credit_payment(self, client, seed_venue, seed_table, seed_menu):
        self._place(client, seed_venue, seed_table, seed_menu)

        response = client.post(
            table_url(seed_venue, seed_table, "/payment"),
            json={"kind": "credit", "final_total": "217.00", "received": "100", "customer_name": "Asha"},
        )

        assert response.status_code == 200
        assert response.json()["credit_id"] is not None

    def test_invalid_instruction(self, client, seed_venue, seed_table, seed_menu):
        self._place(client, seed_venue, seed_table, seed_menu)

        response = client.post(
            table_url(seed_venue, seed_table, "/payment"),
            json={"kind": "direct", "final_total": "217.00", "received": "100"},
        )

        assert response.status_code == 422

    def test_payment_without_orders(self, client, seed_venue, seed_table):
        response = client.post(
            table_url(seed_venue, seed_table, "/payment"),
            json={"kind": "direct", "final_total": "10"},
        )

        assert response.status_code == 400


class TestCommands:
    def test_voice_add_reopens_placed_table(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)
        client.post(table_url(seed_venue, seed_table, "/orders"), json={}, headers=STAFF)
        chai = seed_menu["chai"]

        response = client.post(
            table_url(seed_venue, seed_table, "/commands"),
            json={
                "type": "add_item",
                "source": "voice",
                "menu_item_id": chai.id,
                "name": chai.name,
                "unit_price": "30",
            },
        )

        assert response.status_code == 200
        assert response.json()["state"]["lifecycle"] == "adding_more"

    def test_add_item_requires_fields(self, client, seed_venue, seed_table):
        response = client.post(table_url(seed_venue, seed_table, "/commands"), json={"type": "add_item"})

        assert response.status_code == 400

    def test_place_and_pay_with_customer(self, client, seed_venue, seed_table, seed_menu):
        """Should carry the attached customer into a credit payment."""
        add_paneer(client, seed_venue, seed_table, seed_menu)
        url = table_url(seed_venue, seed_table, "/commands")

        placed = client.post(url, json={"type": "place_order"}, headers=STAFF)
        assert placed.json()["result"]["order_number"].startswith("TES-")

        client.post(url, json={"type": "add_customer", "customer_name": "Ravi", "customer_phone": "5550100"})
        paid = client.post(
            url,
            json={"type": "pay", "instruction": {"kind": "credit", "final_total": "217", "received": "17"}},
        )

        assert paid.status_code == 200
        assert paid.json()["result"]["credit_id"] is not None
        assert paid.json()["state"]["lifecycle"] == "completed"

    def test_pay_with_bad_instruction(self, client, seed_venue, seed_table, seed_menu):
        add_paneer(client, seed_venue, seed_table, seed_menu)
        url = table_url(seed_venue, seed_table, "/commands")
        client.post(url, json={"type": "place_order"}, headers=STAFF)

        response = client.post(url, json={"type": "pay", "instruction": {"kind": "split", "final_total": "217"}})

        assert response.status_code == 400


class TestCouponValidation:
    def test_validate_against_cart(self, client, seed_venue, seed_table, seed_menu, make_coupon):
        make_coupon("WELCOME20", config={"percentage": "20"})
        add_paneer(client, seed_venue, seed_table, seed_menu, quantity=5)

        response = client.post(
            f"/api/venues/{seed_venue.id}/coupons/validate",
            json={"code": "welcome20", "table_id": seed_table.id},
        )

        data = response.json()
        assert data["is_valid"] is True
        assert data["coupon_code"] == "WELCOME20"
        assert Decimal(data["discount_amount"]) == Decimal("100.00")

    def test_rejection_is_a_normal_response(self, client, seed_venue, seed_table):
        response = client.post(
            f"/api/venues/{seed_venue.id}/coupons/validate",
            json={"code": "NOPE", "table_id": seed_table.id},
        )

        assert response.status_code == 200
        assert response.json() == {
            "is_valid": False,
            "error": "invalid_code",
            "message": "Invalid coupon code",
            "coupon_id": None,
            "coupon_code": None,
            "discount_amount": "0.00",
            "free_items": [],
            "applicable_items": [],
        }
