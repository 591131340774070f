"""Integration tests for holdings API endpoints."""

from decimal import Decimal

BASE = "/api/users/user-1/holdings"


class TestCreateHolding:
    """Tests for POST /api/users/{user_id}/holdings."""

    def test_create(self, client):
        response = client.post(
            BASE,
            json={
                "coin_id": "bitcoin",
                "coin_symbol": "BTC",
                "coin_name": "Bitcoin",
                "quantity": "0.5",
                "average_buy_price": "30000",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == "user-1"
        assert data["coin_id"] == "bitcoin"
        assert Decimal(data["quantity"]) == Decimal("0.5")
        assert Decimal(data["average_buy_price"]) == Decimal("30000")

    def test_duplicate_coin_returns_409(self, client, holding):
        response = client.post(BASE, json={"coin_id": "bitcoin", "quantity": "1"})
        assert response.status_code == 409

    def test_negative_quantity_returns_422(self, client):
        response = client.post(BASE, json={"coin_id": "bitcoin", "quantity": "-1"})
        assert response.status_code == 422

    def test_negative_buy_price_returns_422(self, client):
        response = client.post(
            BASE, json={"coin_id": "bitcoin", "quantity": "1", "average_buy_price": "-5"}
        )
        assert response.status_code == 422

    def test_too_many_decimals_returns_422(self, client):
        response = client.post(BASE, json={"coin_id": "bitcoin", "quantity": "0.000000001"})
        assert response.status_code == 422

    def test_empty_coin_id_returns_422(self, client):
        response = client.post(BASE, json={"coin_id": "", "quantity": "1"})
        assert response.status_code == 422


class TestListHoldings:
    """Tests for GET /api/users/{user_id}/holdings."""

    def test_list(self, client, holding):
        response = client.get(BASE)
        assert response.status_code == 200
        assert [h["id"] for h in response.json()] == [holding.id]

    def test_other_user_sees_nothing(self, client, holding):
        response = client.get("/api/users/user-2/holdings")
        assert response.status_code == 200
        assert response.json() == []


class TestUpdateHolding:
    """Tests for PATCH /api/users/{user_id}/holdings/{holding_id}."""

    def test_update_quantity(self, client, holding):
        response = client.patch(f"{BASE}/{holding.id}", json={"quantity": "3.25"})
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["quantity"]) == Decimal("3.25")
        assert Decimal(data["average_buy_price"]) == Decimal("30000")

    def test_update_missing_returns_404(self, client):
        response = client.patch(f"{BASE}/missing", json={"notes": "x"})
        assert response.status_code == 404

    def test_update_negative_returns_422(self, client, holding):
        response = client.patch(f"{BASE}/{holding.id}", json={"quantity": "-2"})
        assert response.status_code == 422


class TestDeleteHolding:
    """Tests for DELETE /api/users/{user_id}/holdings/{holding_id}."""

    def test_delete(self, client, holding):
        response = client.delete(f"{BASE}/{holding.id}")
        assert response.status_code == 204
        assert client.get(BASE).json() == []

    def test_delete_other_users_holding_returns_404(self, client, holding):
        response = client.delete(f"/api/users/user-2/holdings/{holding.id}")
        assert response.status_code == 404
