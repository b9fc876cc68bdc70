"""Document renderers."""

from billing.config import BillingSettings
from billing.rendering.fake_adapter import FakeRenderer
from billing.rendering.port import DocumentRenderer
from billing.rendering.reportlab_adapter import ReportLabRenderer


def build_renderer(settings: BillingSettings) -> DocumentRenderer:
    if settings.renderer == "fake":
        return FakeRenderer()
    return ReportLabRenderer()


__all__ = ["DocumentRenderer", "FakeRenderer", "ReportLabRenderer", "build_renderer"]
