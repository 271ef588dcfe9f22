# tests/test_notifications.py
from storefront.data.models import OrderModel
from storefront.services import email_templates
from storefront.services.cart_service import CartService
from storefront.services.mailer import Mailer
from storefront.services.marker_service import MarkerService
from storefront.services.notification_service import (
    NotificationService,
    deliver_abandoned_cart,
    deliver_low_stock_alert,
    deliver_order_confirmation,
    deliver_promotional,
    deliver_shipping,
    deliver_welcome,
)
from storefront.services.order_service import OrderService

from conftest import SHIPPING, auth_headers


class RecordingMailer:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to_email, subject, html, text):
        if to_email in self.fail_for:
            raise OSError("mailbox unavailable")
        self.sent.append((to_email, subject, text))
        return True


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user))

    def sendmail(self, sender, recipients, message):
        self.calls.append(("sendmail", sender, recipients, message))


class FakeRedis:
    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


class TestDelivery:
    def test_welcome(self, db, customer):
        mailer = RecordingMailer()

        assert deliver_welcome(db, customer.id, mailer) == {"user_id": customer.id, "status": "sent"}
        assert mailer.sent[0][:2] == (customer.email, "Welcome to Storefront!")
        assert deliver_welcome(db, 9999, mailer)["status"] == "skipped"

    def test_order_confirmation_and_shipping(self, db, make, customer, notifier, hub):
        product = make.product(name="Lamp", price="15.00")
        order = OrderService(db, notification_service=notifier, hub=hub).create_order(
            customer.id, SHIPPING, "credit_card", order_items=[{"product_id": product.id, "quantity": 2}]
        )
        mailer = RecordingMailer()

        deliver_order_confirmation(db, order["id"], mailer)
        deliver_shipping(db, order["id"], mailer)

        (_, subject, text), (_, ship_subject, ship_text) = mailer.sent
        assert subject == f"Order #{order['id']} confirmed"
        assert "- Lamp (x2): $30.00" in text
        assert ship_subject == f"Order #{order['id']} has shipped"
        assert "1 Main St, Springfield, IL 62701, US" in ship_text

    def test_low_stock_goes_to_every_active_admin(self, db, make):
        make.admin()
        make.admin(email="broken@example.com")
        make.user(email="former@example.com", role="admin", is_active=False)
        product = make.product(name="Cable", stock=1)
        mailer = RecordingMailer(fail_for={"broken@example.com"})

        result = deliver_low_stock_alert(db, [product.id, 9999], mailer)

        assert result == {"sent": 1}
        assert [to for to, _, _ in mailer.sent] == ["admin@example.com"]
        assert "Cable (id %d): 1 left" % product.id in mailer.sent[0][2]

    def test_abandoned_cart_needs_items(self, db, make, customer):
        mailer = RecordingMailer()
        assert deliver_abandoned_cart(db, customer.id, mailer)["status"] == "skipped"

        CartService(db).add_item(customer.id, make.product(name="Tent").id, 1)

        assert deliver_abandoned_cart(db, customer.id, mailer)["status"] == "sent"
        assert "- Tent (x1)" in mailer.sent[0][2]

    def test_promotional_skips_inactive_users(self, db, make, customer):
        inactive = make.user(email="sleepy@example.com", is_active=False)
        mailer = RecordingMailer()

        result = deliver_promotional(db, [customer.id, inactive.id, 9999], "Sale", "Everything -20%", mailer)

        assert result == {"sent": 1, "requested": 3}


class TestDispatch:
    def test_broker_failure_is_swallowed(self):
        class BrokenTask:
            name = "storefront.services.notification_service.send_welcome_task"

            def delay(self, *args):
                raise ConnectionError("broker down")

        assert NotificationService()._dispatch(BrokenTask(), 1) is False


class TestMailer:
    def test_send_uses_starttls_when_credentials_set(self, monkeypatch):
        FakeSMTP.instances.clear()
        monkeypatch.setattr("storefront.services.mailer.smtplib.SMTP", FakeSMTP)
        mailer = Mailer(host="smtp.test", port=587, user="bot", password="pw", sender="shop@example.com")

        assert mailer.send("jan@example.com", *email_templates.order_status("Jan", 7, "shipped")) is True

        smtp = FakeSMTP.instances[0]
        assert (smtp.host, smtp.port) == ("smtp.test", 587)
        assert smtp.calls[0] == "starttls"
        assert smtp.calls[1] == ("login", "bot")
        _, sender, recipients, message = smtp.calls[2]
        assert sender == "shop@example.com"
        assert recipients == ["jan@example.com"]
        assert "Order #7 is now shipped" in message

    def test_message_has_text_and_html_parts(self):
        msg = Mailer(host="smtp.test", port=25, user="", sender="shop@example.com").build_message(
            "jan@example.com", "Hi", "<p>Hi</p>", "Hi"
        )

        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]

    def test_templates_escape_html(self):
        _, html, _ = email_templates.low_stock([{"id": 1, "name": "<b>Bad</b>", "stock": 0}])

        assert "&lt;b&gt;Bad&lt;/b&gt;" in html


class TestMarkers:
    def test_mark_is_set_if_absent(self):
        markers = MarkerService(client=FakeRedis())
        key = MarkerService.low_stock_key(3)

        assert markers.mark(key, 60) is True
        assert markers.mark(key, 60) is False
        assert markers.clear(key) is True
        assert markers.mark(key, 60) is True


class TestPromotionalApi:
    def test_admin_queues_promotion_once_per_user(self, client, customer, admin, notifier):
        payload = {"user_ids": [customer.id, customer.id, admin.id], "subject": "Sale", "content": "Everything -20%"}

        response = client.post("/api/admin/notifications/promotional", json=payload, headers=auth_headers(admin))

        assert response.status_code == 202
        assert response.json()["data"] == {"queued": True, "recipients": 2}
        assert notifier.sent == [("send_promotional_task", ([customer.id, admin.id], "Sale", "Everything -20%"))]

    def test_broker_outage_is_reported(self, client, customer, admin, notifier):
        notifier.available = False
        payload = {"user_ids": [customer.id], "subject": "Sale", "content": "Hi"}

        body = client.post("/api/admin/notifications/promotional", json=payload, headers=auth_headers(admin)).json()

        assert body["data"]["queued"] is False
        assert body["message"] == "Notification queue unavailable"

    def test_customers_and_empty_audiences_are_refused(self, client, customer, admin):
        payload = {"user_ids": [customer.id], "subject": "Sale", "content": "Hi"}

        assert client.post("/api/admin/notifications/promotional", json=payload, headers=auth_headers(customer)).status_code == 403
        empty = dict(payload, user_ids=[])
        assert client.post("/api/admin/notifications/promotional", json=empty, headers=auth_headers(admin)).status_code == 422
