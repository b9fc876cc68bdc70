"""Billing domain API package."""

from billing.api.errors import register_error_handlers
from billing.api.routes import invoice_router

__all__ = ["invoice_router", "register_error_handlers"]
