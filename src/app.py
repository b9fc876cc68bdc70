"""Billing FastAPI application.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload

PROTEAN_ENV / ENVIRONMENT select the log renderer; BILLING_* variables
configure numbering, storage and rendering (see billing.config).
"""

from billing.api.application import create_app
from billing.domain import billing
from billing.utils.logging import configure_logging

configure_logging()
billing.init()

app = create_app(billing)
