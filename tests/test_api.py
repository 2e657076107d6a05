from decimal import Decimal

from fastapi.testclient import TestClient
from jose import jwt

from printshop.api.deps import get_collaborators, get_db
from printshop.core.config import settings
from printshop.main import create_app
from printshop.models import CustomerType, RuleType

from tests.base import WorkflowTestCase


class ApiTests(WorkflowTestCase):
    def setUp(self):
        super().setUp()
        self.flyer = self.make_product("Flyer", unit_cost=100)
        self.customer = self.make_customer("Acme Ltd", CustomerType.regular)

        app = create_app()

        def _db():
            yield self.db

        app.dependency_overrides[get_db] = _db
        app.dependency_overrides[get_collaborators] = lambda: self.env
        self.client = TestClient(app)

    def auth(self, user):
        token = jwt.encode({"sub": str(user.id)}, settings.JWT_SECRET,
                           algorithm=settings.JWT_ALG)
        return {"Authorization": f"Bearer {token}"}

    def create_order(self, qty=2, user=None):
        res = self.client.post(
            "/api/orders",
            json={
                "customer_id": self.customer.id,
                "items": [{"product_id": self.flyer.id, "quantity": qty}],
            },
            headers=self.auth(user or self.counter),
        )
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()["data"]

    def test_requires_token(self):
        res = self.client.get("/api/orders/1")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json(), {
            "status": False,
            "data": None,
            "error": {"msg": "Missing token", "code": None},
        })

        res = self.client.get("/api/orders/1", headers={"Authorization": "Bearer nope"})
        self.assertEqual(res.status_code, 401)

    def test_create_and_read_order(self):
        data = self.create_order()
        self.assertEqual(data["status"], "DRAFT")
        self.assertEqual(Decimal(data["total"]), Decimal("220"))
        self.assertEqual(len(data["items"]), 1)

        res = self.client.get(f"/api/orders/{data['id']}", headers=self.auth(self.counter))
        body = res.json()
        self.assertTrue(body["status"])
        self.assertEqual(body["data"]["status_history"][0]["action"], "Order created")

    def test_workflow_errors_map_to_status_codes(self):
        order = self.create_order(qty=10)
        headers = self.auth(self.counter)

        res = self.client.post(f"/api/orders/{order['id']}/status",
                               json={"status": "COMPLETED"}, headers=headers)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "InvalidTransition")

        res = self.client.post(f"/api/orders/{order['id']}/discount",
                               json={"discount": "300", "reason": "friend"},
                               headers=headers)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["error"]["code"], "DiscountAuthorizationError")

        res = self.client.get("/api/orders/9999", headers=headers)
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NotFoundError")

    def test_request_validation(self):
        order = self.create_order()
        res = self.client.post(f"/api/orders/{order['id']}/payments",
                               json={"amount": 0, "payment_method": "cash"},
                               headers=self.auth(self.counter))
        self.assertEqual(res.status_code, 422)
        self.assertFalse(res.json()["status"])

    def test_payment_endpoint(self):
        order = self.create_order()
        res = self.client.post(f"/api/orders/{order['id']}/payments",
                               json={"amount": "220", "payment_method": "card"},
                               headers=self.auth(self.counter))
        self.assertEqual(res.status_code, 201, res.text)
        self.assertTrue(res.json()["data"]["payment_number"].startswith("PAY-"))

        res = self.client.get(f"/api/orders/{order['id']}", headers=self.auth(self.counter))
        self.assertEqual(res.json()["data"]["status"], "PAID")

    def test_pricing_endpoints(self):
        rule = self.make_rule(self.flyer, RuleType.quantity_tier,
                              [{"min_qty": 1, "max_qty": 9, "price": 10}])
        headers = self.auth(self.counter)

        res = self.client.post("/api/pricing/calculate",
                               json={"product_id": self.flyer.id, "quantity": 3},
                               headers=headers)
        self.assertEqual(res.status_code, 200, res.text)
        data = res.json()["data"]
        self.assertEqual(Decimal(data["line_total"]), Decimal("30"))
        self.assertEqual(data["applied_rule"], rule.id)

        res = self.client.post("/api/pricing/batch",
                               json={"items": [{"product_id": self.flyer.id},
                                               {"product_id": 777}]},
                               headers=headers)
        self.assertEqual(len(res.json()["data"]), 1)

    def test_quotation_round_trip(self):
        headers = self.auth(self.counter)
        res = self.client.post("/api/quotations",
                               json={"customer_id": self.customer.id,
                                     "items": [{"product_id": self.flyer.id}]},
                               headers=headers)
        self.assertEqual(res.status_code, 201, res.text)
        quote_id = res.json()["data"]["id"]

        res = self.client.post(f"/api/quotations/{quote_id}/status",
                               json={"status": "approved"}, headers=self.auth(self.manager))
        self.assertEqual(res.json()["data"]["status"], "approved")

        res = self.client.post(f"/api/quotations/{quote_id}/convert", headers=headers)
        self.assertEqual(res.status_code, 201, res.text)
        self.assertEqual(res.json()["data"]["status"], "IN_PRODUCTION")

        res = self.client.get("/api/service-jobs", headers=headers)
        self.assertEqual(len(res.json()["data"]), 1)
