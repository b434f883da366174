"""API tests for stock movement and stock level endpoints."""

from stockledger.models.stock import StockLevel

API = "/api/v1"


def post_movement(client, headers, product, warehouse, movement_type, quantity, **extra):
    return client.post(
        f"{API}/stock-movements",
        json={
            "product_id": product.id,
            "warehouse_id": warehouse.id,
            "movement_type": movement_type,
            "quantity": quantity,
            **extra,
        },
        headers=headers,
    )


class TestCreateMovement:
    def test_inbound_creates_level(self, client, auth_headers, test_product, test_warehouse, test_user):
        response = post_movement(
            client, auth_headers, test_product, test_warehouse, "in", 50,
            cost_price="2.00", reason="Opening stock",
        )
        assert response.status_code == 201
        body = response.json()
        assert body["movement_type"] == "in"
        assert body["quantity"] == 50
        assert body["total_amount"] == 100.0
        assert body["user_id"] == test_user.id
        assert body["processed_by"] == test_user.id
        assert body["product_name"] == "Blue Widget"
        assert body["product_sku"] == "WID-001"
        assert body["warehouse_name"] == "Central"
        assert body["user_first_name"] == "Test"
        assert body["processed_by_last_name"] == "User"

        level = client.get(f"{API}/stock-levels/{test_product.id}/{test_warehouse.id}", headers=auth_headers)
        assert level.status_code == 200
        assert level.json()["quantity"] == 50
        assert level.json()["available_quantity"] == 50

    def test_insufficient_stock_is_400_with_details(self, client, auth_headers, test_product, test_warehouse):
        post_movement(client, auth_headers, test_product, test_warehouse, "in", 30)
        response = post_movement(client, auth_headers, test_product, test_warehouse, "out", 40)
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "insufficient_stock"
        assert body["details"] == {"available": 30, "requested": 40}

        level = client.get(f"{API}/stock-levels/{test_product.id}/{test_warehouse.id}", headers=auth_headers)
        assert level.json()["quantity"] == 30

    def test_invalid_quantity(self, client, auth_headers, test_product, test_warehouse):
        response = post_movement(client, auth_headers, test_product, test_warehouse, "in", 0)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"

    def test_oversized_quantity(self, client, auth_headers, test_product, test_warehouse, db_session):
        response = post_movement(client, auth_headers, test_product, test_warehouse, "in", 2 ** 63)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_quantity"
        assert db_session.query(StockLevel).count() == 0

    def test_invalid_movement_type(self, client, auth_headers, test_product, test_warehouse):
        response = post_movement(client, auth_headers, test_product, test_warehouse, "gift", 1)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_movement_type"

    def test_transfer_rejected(self, client, auth_headers, test_product, test_warehouse):
        response = post_movement(client, auth_headers, test_product, test_warehouse, "transfer", 1)
        assert response.status_code == 400
        assert "transfer" in response.json()["detail"]

    def test_unknown_product_404(self, client, auth_headers, test_warehouse):
        response = client.post(
            f"{API}/stock-movements",
            json={"product_id": 999, "warehouse_id": test_warehouse.id, "movement_type": "in", "quantity": 1},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_malformed_body_422(self, client, auth_headers):
        response = client.post(f"{API}/stock-movements", json={"product_id": "abc"}, headers=auth_headers)
        assert response.status_code == 422

    def test_requires_authentication(self, client, test_product, test_warehouse, db_session):
        response = post_movement(client, {}, test_product, test_warehouse, "in", 5)
        assert response.status_code == 401
        assert db_session.query(StockLevel).count() == 0


class TestBulkMovements:
    def test_bulk_delivery(self, client, auth_headers, test_supplier, test_products, test_warehouses, test_user):
        p1, p2 = test_products
        w1, w2 = test_warehouses
        response = client.post(
            f"{API}/stock-movements/bulk",
            json={
                "supplier_id": test_supplier.id,
                "reference_number": "INV-7",
                "items": [
                    {"product_id": p1.id, "warehouse_id": w1.id, "quantity": 10, "cost_price": 1.5},
                    {"product_id": p2.id, "warehouse_id": w1.id, "quantity": 5},
                    {"product_id": p1.id, "warehouse_id": w2.id, "quantity": 7},
                ],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        lines = response.json()["stock_movements"]
        assert [l["quantity"] for l in lines] == [10, 5, 7]
        assert all(l["reference_type"] == "supplier" for l in lines)
        assert all(l["supplier_name"] == "Test Supplier" for l in lines)
        assert all(l["reference_number"] == "INV-7" for l in lines)
        assert all(l["processed_by"] == test_user.id for l in lines)
        assert lines[0]["total_amount"] == 15.0

    def test_empty_items_422(self, client, auth_headers, test_supplier):
        response = client.post(
            f"{API}/stock-movements/bulk",
            json={"supplier_id": test_supplier.id, "items": []},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_bad_line_rolls_back_batch(self, client, auth_headers, test_supplier, test_products, test_warehouse, db_session):
        p1, p2 = test_products
        response = client.post(
            f"{API}/stock-movements/bulk",
            json={
                "supplier_id": test_supplier.id,
                "items": [
                    {"product_id": p1.id, "warehouse_id": test_warehouse.id, "quantity": 10},
                    {"product_id": p2.id, "warehouse_id": test_warehouse.id, "quantity": -1},
                ],
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert db_session.query(StockLevel).count() == 0


class TestListings:
    def _seed(self, client, headers, products, warehouses):
        p1, p2 = products
        w1, w2 = warehouses
        post_movement(client, headers, p1, w1, "in", 20)
        post_movement(client, headers, p2, w1, "in", 3)
        post_movement(client, headers, p1, w2, "in", 9)
        post_movement(client, headers, p1, w1, "out", 5)

    def test_list_levels_envelope(self, client, auth_headers, test_products, test_warehouses):
        self._seed(client, auth_headers, test_products, test_warehouses)
        response = client.get(f"{API}/stock-levels", params={"limit": 2}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 1
        assert body["limit"] == 2
        assert body["pages"] == 2
        assert len(body["stock_levels"]) == 2
        assert "product_name" in body["stock_levels"][0]

    def test_out_of_range_paging_normalized(self, client, auth_headers, test_products, test_warehouses):
        self._seed(client, auth_headers, test_products, test_warehouses)
        body = client.get(
            f"{API}/stock-levels", params={"page": 0, "limit": 500}, headers=auth_headers
        ).json()
        assert body["page"] == 1
        assert body["limit"] == 10
        assert body["pages"] == 1

    def test_list_levels_filtered(self, client, auth_headers, test_products, test_warehouses):
        self._seed(client, auth_headers, test_products, test_warehouses)
        body = client.get(
            f"{API}/stock-levels",
            params={"product_sku": "wid", "sort_by": "quantity", "sort_order": "asc"},
            headers=auth_headers,
        ).json()
        assert [l["quantity"] for l in body["stock_levels"]] == [9, 15]

    def test_list_movements(self, client, auth_headers, test_products, test_warehouses):
        self._seed(client, auth_headers, test_products, test_warehouses)
        body = client.get(
            f"{API}/stock-movements",
            params={"movement_type": "in", "warehouse_id": test_warehouses[0].id},
            headers=auth_headers,
        ).json()
        assert body["total"] == 2
        assert all(m["movement_type"] == "in" for m in body["stock_movements"])

    def test_list_movements_bad_type(self, client, auth_headers):
        response = client.get(f"{API}/stock-movements", params={"movement_type": "lost"}, headers=auth_headers)
        assert response.status_code == 400

    def test_list_movements_inverted_dates(self, client, auth_headers):
        response = client.get(
            f"{API}/stock-movements",
            params={"date_from": "2026-05-02", "date_to": "2026-05-01"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"

    def test_level_lookup_404(self, client, auth_headers, test_product, test_warehouse):
        response = client.get(f"{API}/stock-levels/{test_product.id}/{test_warehouse.id}", headers=auth_headers)
        assert response.status_code == 404

    def test_listing_requires_token(self, client):
        assert client.get(f"{API}/stock-levels").status_code == 401


class TestSupplierProducts:
    def test_products_by_supplier(self, client, auth_headers, test_supplier, test_products):
        response = client.get(f"{API}/products/supplier/{test_supplier.id}", headers=auth_headers)
        assert response.status_code == 200
        skus = {p["sku"] for p in response.json()["products"]}
        assert skus == {"WID-001", "GAD-002"}

    def test_unknown_supplier_404(self, client, auth_headers):
        response = client.get(f"{API}/products/supplier/12345", headers=auth_headers)
        assert response.status_code == 404
