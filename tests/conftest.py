"""
Shared fixtures: SQLite database, fake gateway, recording publisher, API client
"""
import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="printshop-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'printshop.db')}"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["MAX_RETRIES"] = "1"
os.environ["ADMIN_SECRET"] = "correct-horse"
os.environ["MPESA_CONSUMER_KEY"] = "test-key"
os.environ["MPESA_CONSUMER_SECRET"] = "test-secret"
os.environ["MPESA_PASSKEY"] = "test-passkey"
os.environ["MPESA_SHORTCODE"] = "174379"
os.environ["MPESA_CALLBACK_URL"] = "https://shop.test/payments/callback"
os.environ["MPESA_BASE_URL"] = "https://gateway.test"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from printshop.api.dependencies import get_current_user, get_event_publisher, get_gateway  # noqa: E402
from printshop.database import Base, SessionLocal, engine, init_db  # noqa: E402
from printshop.main import app  # noqa: E402
from printshop.models.product import Product  # noqa: E402
from printshop.publishers.event_publisher import EventPublisher  # noqa: E402
from printshop.repositories.order_repository import OrderRepository  # noqa: E402
from printshop.schemas.order import OrderItemCreate  # noqa: E402
from printshop.services.identity import CurrentUser  # noqa: E402
from printshop.services.mpesa_client import StkPushResult, gateway_amount  # noqa: E402


class FakeGateway:
    """Stands in for MpesaClient; records pushes and queries"""

    def __init__(self):
        self.pushes = []
        self.queries = []
        self.push_error = None
        self.query_error = None
        self.query_response = {}

    async def initiate_stk_push(self, phone, amount, order_ref):
        if self.push_error:
            raise self.push_error
        n = len(self.pushes) + 1
        checkout_ref = f"ws_CO_0000{n}"
        self.pushes.append({
            "phone": phone,
            "amount": gateway_amount(amount),
            "order_ref": order_ref,
            "checkout_ref": checkout_ref,
        })
        return StkPushResult(
            checkout_ref=checkout_ref,
            merchant_ref=f"29115-3462076-{n}",
            description="Success. Request accepted for processing",
        )

    async def query_stk_status(self, checkout_ref):
        self.queries.append(checkout_ref)
        if self.query_error:
            raise self.query_error
        return dict(self.query_response)


class RecordingPublisher(EventPublisher):
    def __init__(self):
        super().__init__(enabled=False)
        self.events = []

    def publish(self, event_type, data):
        self.events.append((event_type, data))
        return True

    def of_type(self, event_type):
        return [data for kind, data in self.events if kind == event_type]


@pytest.fixture
def db_session():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def customer():
    return CurrentUser(id="user-jane", email="jane@example.com", name="Jane Wanjiru")


@pytest.fixture
def other_customer():
    return CurrentUser(id="user-otieno", email="otieno@example.com", name="Otieno")


@pytest.fixture
def admin():
    return CurrentUser(id="user-admin", email="admin@poshprint.test", name="Admin", role="admin")


@pytest.fixture
def products(db_session):
    tshirt = Product(name="Custom T-Shirt", description="Cotton tee with your print", price=Decimal("750.25"),
                     stock=10, sizes=["M", "L"], colors=["Black"], category="Apparel")
    mug = Product(name="Photo Mug", description="Ceramic mug with a photo print", price=Decimal("1500.50"),
                  stock=2, sizes=["M"], colors=["White"], category="Drinkware")
    db_session.add_all([tshirt, mug])
    db_session.commit()
    return {"tshirt": tshirt.id, "mug": mug.id}


@pytest.fixture
def make_order(db_session, products):
    """Factory placing an order directly through the repository"""
    def _make(user, items=None, delivery_method="pickup", delivery_location=None):
        items = items or [(products["mug"], 1)]
        return OrderRepository(db_session).create(
            user_id=user.id,
            customer_name=user.name,
            items=[OrderItemCreate(product_id=pid, quantity=qty) for pid, qty in items],
            delivery_method=delivery_method,
            delivery_location=delivery_location,
        )
    return _make


@pytest.fixture
def callback_payload():
    """Builder for the gateway's STK callback body"""
    def _build(checkout_ref, result_code=0, receipt="QGR7XYZ123", desc=None, amount=1501):
        callback = {
            "MerchantRequestID": "29115-3462076-1",
            "CheckoutRequestID": checkout_ref,
            "ResultCode": result_code,
            "ResultDesc": desc or ("The service request is processed successfully." if result_code == 0
                                   else "Request cancelled by user"),
        }
        if result_code == 0:
            callback["CallbackMetadata"] = {"Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20240115103045},
                {"Name": "PhoneNumber", "Value": 254706276584},
            ]}
        return {"Body": {"stkCallback": callback}}
    return _build


@pytest.fixture
def acting_user(customer):
    """Mutable holder for the user the API client acts as"""
    return {"user": customer}


@pytest.fixture
def client(db_session, gateway, publisher, acting_user):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_current_user] = lambda: acting_user["user"]
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
