from datetime import date

import pytest
from billing.config import BillingSettings
from billing.document.cache import DocumentCacheService
from billing.domain import billing
from billing.invoice.service import InvoiceLifecycle
from billing.rendering.fake_adapter import FakeRenderer
from billing.storage.memory_adapter import InMemoryBlobStore
from protean import current_domain
from protean.integrations.pytest import DomainFixture

ISSUED = date(2025, 1, 15)
DUE = date(2025, 2, 14)

EXAMPLE_ITEMS = [
    {"description": "Consulting", "quantity": 2, "unit_price": 50.0},
    {"description": "Travel", "quantity": 1, "unit_price": 25.0},
]


@pytest.fixture(scope="session")
def billing_bed():
    bed = DomainFixture(billing)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(billing_bed):
    with billing_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()


@pytest.fixture()
def settings():
    return BillingSettings(io_timeout_seconds=2.0)


@pytest.fixture()
def lifecycle(billing_bed, settings):
    return InvoiceLifecycle(billing, settings=settings)


@pytest.fixture()
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture()
def renderer():
    return FakeRenderer()


@pytest.fixture()
def document_cache(billing_bed, blob_store, renderer, settings):
    return DocumentCacheService(billing, blob_store=blob_store, renderer=renderer, settings=settings)


@pytest.fixture()
def make_invoice(lifecycle):
    """Create an invoice through the lifecycle service and return the aggregate."""

    def _make(items=None, **overrides):
        fields = {
            "customer_id": "cust-001",
            "customer_name": "Ada Lovelace",
            "customer_email": "ada@example.com",
            "issued_date": ISSUED,
            "due_date": DUE,
            "gst_percent": 10.0,
            "discount_amount": 5.0,
        }
        fields.update(overrides)
        created = lifecycle.create(items=EXAMPLE_ITEMS if items is None else items, **fields)
        return lifecycle.get(created.id)

    return _make
