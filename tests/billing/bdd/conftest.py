"""Shared BDD fixtures and step definitions for the billing context."""

import pytest
from billing import errors
from protean.exceptions import ProteanException
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for the exception raised by the last action, if any."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run an action, recording a domain exception instead of raising it."""

    def _attempt(action):
        try:
            return action()
        except ProteanException as exc:
            error["exc"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse(
        "a draft invoice for {qty_a:d} x {price_a:f} and {qty_b:d} x {price_b:f} "
        "with GST {gst:g} percent and discount {discount:f}"
    ),
    target_fixture="invoice",
)
def _(make_invoice, qty_a, price_a, qty_b, price_b, gst, discount):
    items = [
        {"description": "Consulting", "quantity": qty_a, "unit_price": price_a},
        {"description": "Travel", "quantity": qty_b, "unit_price": price_b},
    ]
    return make_invoice(items=items, gst_percent=gst, discount_amount=discount)


@given(
    parsers.cfparse("an issued invoice for {qty_a:d} x {price_a:f} and {qty_b:d} x {price_b:f}"),
    target_fixture="invoice",
)
def _(make_invoice, lifecycle, qty_a, price_a, qty_b, price_b):
    items = [
        {"description": "Consulting", "quantity": qty_a, "unit_price": price_a},
        {"description": "Travel", "quantity": qty_b, "unit_price": price_b},
    ]
    return lifecycle.mark_as_pending(make_invoice(items=items).id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the action fails with a {error_type}"))
def _(error, error_type):
    assert error["exc"] is not None, f"Expected {error_type} but nothing was raised"
    assert isinstance(error["exc"], getattr(errors, error_type))
