# tests/test_analytics.py
from decimal import Decimal

import pytest

from storefront.data.models import OrderModel
from storefront.services.analytics_service import AnalyticsService
from storefront.services.order_service import OrderService
from storefront.utils.errors import BadRequestError, NotFoundError

from conftest import SHIPPING, auth_headers


@pytest.fixture
def sales(db, make, customer, notifier, hub):
    """Dwa oplacone zamowienia i jedno pending (nie liczy sie do przychodu)."""
    phone = make.product(name="Phone", price="300.00", stock=50, brand="Acme")
    book = make.product(name="Book", price="20.00", stock=2, category="books")
    orders = OrderService(db, notification_service=notifier, hub=hub)

    paid = [
        orders.create_order(customer.id, SHIPPING, "credit_card", order_items=[{"product_id": phone.id, "quantity": 1}]),
        orders.create_order(customer.id, SHIPPING, "paypal", order_items=[{"product_id": book.id, "quantity": 2}]),
    ]
    orders.create_order(customer.id, SHIPPING, "credit_card", order_items=[{"product_id": phone.id, "quantity": 1}])
    for order in paid:
        db.get(OrderModel, order["id"]).status = "delivered"
    db.commit()
    return {"phone": phone, "book": book}


class TestAnalyticsService:
    def test_dashboard_overview(self, db, sales, admin):
        dashboard = AnalyticsService(db).dashboard()

        overview = dashboard["overview"]
        assert overview["total_users"] == 2
        assert overview["total_orders"] == 3
        assert overview["total_products"] == 2
        assert overview["total_revenue"] == Decimal("340.00")
        assert overview["pending_orders"] == 1
        assert len(dashboard["recent_orders"]) == 3
        assert [p["name"] for p in dashboard["low_stock_products"]] == ["Book"]
        assert [p["name"] for p in dashboard["top_selling_products"]] == ["Book", "Phone"]

    def test_sales_breakdown(self, db, sales):
        report = AnalyticsService(db).sales("7d")

        assert report["period"] == "7d"
        assert sum(day["order_count"] for day in report["sales_trend"]) == 2
        by_category = {c["category"]: c for c in report["category_performance"]}
        assert by_category["books"]["items_sold"] == 2
        assert {m["payment_method"] for m in report["payment_methods"]} == {"credit_card", "paypal"}

    def test_invalid_period(self, db):
        with pytest.raises(BadRequestError):
            AnalyticsService(db).sales("2w")

    def test_product_ranking(self, db, sales):
        rows, pagination = AnalyticsService(db).products("total_sold", "desc", 1, 10)

        assert [(r["name"], r["total_sold"]) for r in rows] == [("Book", 2), ("Phone", 1)]
        assert pagination["total_items"] == 2

    def test_user_ranking_and_bad_sort(self, db, sales, customer, admin):
        rows, _ = AnalyticsService(db).users("total_spent", "desc", 1, 10)

        assert rows[0]["id"] == customer.id
        assert rows[0]["total_orders"] == 2
        with pytest.raises(BadRequestError):
            AnalyticsService(db).users("password_hash", "desc", 1, 10)
        with pytest.raises(BadRequestError):
            AnalyticsService(db).users("name", "sideways", 1, 10)

    def test_product_detail(self, db, sales):
        detail = AnalyticsService(db).product_detail(sales["phone"].id)

        assert detail["product_name"] == "Phone"
        assert detail["current_stock"] == 48
        assert detail["review_stats"]["total_reviews"] == 0
        with pytest.raises(NotFoundError):
            AnalyticsService(db).product_detail(9999)


class TestAnalyticsApi:
    def test_endpoints_for_admin(self, client, sales, admin):
        headers = auth_headers(admin)

        for path in (
            "/api/admin/analytics/dashboard",
            "/api/admin/analytics/sales?period=30d",
            "/api/admin/analytics/users",
            "/api/admin/analytics/products",
            f"/api/admin/analytics/products/{sales['phone'].id}",
        ):
            response = client.get(path, headers=headers)
            assert response.status_code == 200, path
            assert response.json()["success"] is True

    def test_products_are_paginated(self, client, sales, admin):
        body = client.get("/api/admin/analytics/products?limit=1", headers=auth_headers(admin)).json()

        assert len(body["data"]) == 1
        assert body["pagination"]["total_pages"] == 2

    def test_bad_period_is_400(self, client, admin):
        response = client.get("/api/admin/analytics/sales?period=forever", headers=auth_headers(admin))

        assert response.status_code == 400

    def test_customers_are_refused(self, client, customer):
        assert client.get("/api/admin/analytics/sales", headers=auth_headers(customer)).status_code == 403
