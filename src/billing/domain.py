"""Billing bounded context — invoice lifecycle and document artifacts.

Handles the invoice status machine, sequential document numbering, payment
recording, and the content-addressed cache of rendered invoice/receipt PDFs.
"""

import structlog
from protean.domain import Domain

billing = Domain(name="billing")

logger = structlog.get_logger(__name__)
