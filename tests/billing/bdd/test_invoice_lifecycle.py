"""BDD tests for the invoice lifecycle."""

from datetime import date

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/invoice_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the invoice is issued", target_fixture="invoice")
def _(lifecycle, invoice, attempt):
    return attempt(lambda: lifecycle.mark_as_pending(invoice.id)) or lifecycle.get(invoice.id)


@when(parsers.cfparse('the invoice is marked paid on "{paid_on}" by "{method}"'), target_fixture="invoice")
def _(lifecycle, invoice, attempt, paid_on, method):
    paid_date = date.fromisoformat(paid_on)
    return attempt(
        lambda: lifecycle.mark_as_paid(invoice.id, paid_date=paid_date, payment_method=method)
    ) or lifecycle.get(invoice.id)


@when(parsers.cfparse('the invoice is cancelled because "{reason}"'), target_fixture="invoice")
def _(lifecycle, invoice, attempt, reason):
    return attempt(
        lambda: lifecycle.cancel(invoice.id, cancelled_date=date(2025, 1, 20), reason=reason)
    ) or lifecycle.get(invoice.id)


@when(parsers.cfparse("a payment of {amount:f} is recorded"), target_fixture="invoice")
def _(lifecycle, invoice, attempt, amount):
    return attempt(
        lambda: lifecycle.record_payment(invoice.id, amount=amount, method="bank", paid_date=date(2025, 1, 25))
    ) or lifecycle.get(invoice.id)


@when(parsers.cfparse('the invoice is edited with status "{status}"'), target_fixture="invoice")
def _(lifecycle, invoice, attempt, status):
    return attempt(lambda: lifecycle.update_with_items(invoice.id, [], status=status)) or lifecycle.get(
        invoice.id
    )


@when("the invoice is deleted")
def _(lifecycle, invoice, attempt):
    attempt(lambda: lifecycle.soft_delete(invoice.id))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the invoice status is "{status}"'))
def _(lifecycle, invoice, status):
    assert lifecycle.get(invoice.id).status == status


@then(parsers.cfparse("the invoice amount is {amount:f}"))
def _(invoice, amount):
    assert invoice.amount == amount


@then(parsers.cfparse("the total payable is {amount:f}"))
def _(invoice, amount):
    assert invoice.total_payable == amount


@then(parsers.cfparse("the amount due is {amount:f}"))
def _(invoice, amount):
    assert invoice.amount_due == amount


@then("the invoice has a receipt number")
def _(invoice):
    assert invoice.receipt_number.startswith("RCP-")


@then(parsers.cfparse("the status history has {count:d} entries"))
def _(invoice, count):
    assert len(invoice.status_history) == count
