# studiobook/services/payment_gateway.py
"""
Payment gateway port and its Xendit adapter.

The engine only reacts to three invoice states: PENDING, SETTLED and
EXPIRED. Xendit reports a settled invoice as either PAID or SETTLED.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional, Protocol

from ..core.config import Settings, settings as default_settings
from ..core.enums import InvoiceStatus
from ..core.exceptions import GatewayException
from ..integrations.xendit_client import XenditClient, XenditError
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.payment import InvoiceCustomer

logger = logging.getLogger(__name__)

_XENDIT_STATUS_MAP: Dict[str, InvoiceStatus] = {
    "PENDING": InvoiceStatus.PENDING,
    "PAID": InvoiceStatus.SETTLED,
    "SETTLED": InvoiceStatus.SETTLED,
    "EXPIRED": InvoiceStatus.EXPIRED,
}


def map_invoice_status(raw_status: Optional[str]) -> InvoiceStatus:
    """
    Map a gateway invoice status onto InvoiceStatus.

    Raises:
        GatewayException: For statuses the engine does not know how to handle
    """
    status = _XENDIT_STATUS_MAP.get((raw_status or "").strip().upper())
    if status is None:
        raise GatewayException(
            f"Unexpected invoice status from gateway: {raw_status!r}",
            details={"gateway_status": raw_status},
        )
    return status


@dataclass(frozen=True)
class GatewayInvoice:
    invoice_id: str
    invoice_url: Optional[str]
    status: InvoiceStatus
    external_id: Optional[str] = None
    amount: Optional[int] = None


class PaymentGateway(Protocol):
    def create_invoice(
        self,
        external_id: str,
        amount: int,
        description: str,
        customer: Optional[InvoiceCustomer] = None,
    ) -> GatewayInvoice:
        ...

    def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        ...


class XenditPaymentGateway:
    """PaymentGateway backed by the Xendit invoice API."""

    def __init__(self, client: Optional[XenditClient] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.client = client or XenditClient(
            secret_key=self.config.xendit_secret_key,
            base_url=self.config.xendit_api_url,
            timeout=self.config.gateway_timeout_seconds,
        )

    def create_invoice(
        self,
        external_id: str,
        amount: int,
        description: str,
        customer: Optional[InvoiceCustomer] = None,
    ) -> GatewayInvoice:
        try:
            payload = self.client.create_invoice(
                external_id=external_id,
                amount=amount,
                description=description,
                currency=self.config.currency,
                invoice_duration=self.config.invoice_duration_seconds,
                customer=customer.to_gateway_payload() if customer else None,
            )
        except XenditError as exc:
            prometheus_metrics.record_gateway_request("create_invoice", "error")
            raise GatewayException(
                "Payment gateway could not create the invoice",
                status_code=exc.status_code,
                details={"external_id": external_id, "error_code": exc.error_code},
            ) from exc
        prometheus_metrics.record_gateway_request("create_invoice", "success")
        return self._to_invoice(payload)

    def get_invoice_status(self, invoice_id: str) -> InvoiceStatus:
        try:
            payload = self.client.get_invoice(invoice_id)
        except XenditError as exc:
            prometheus_metrics.record_gateway_request("get_invoice", "error")
            raise GatewayException(
                "Payment gateway could not return the invoice",
                status_code=exc.status_code,
                details={"invoice_id": invoice_id, "error_code": exc.error_code},
            ) from exc
        prometheus_metrics.record_gateway_request("get_invoice", "success")
        return map_invoice_status(payload.get("status"))

    @staticmethod
    def _to_invoice(payload: Dict[str, Any]) -> GatewayInvoice:
        invoice_id = payload.get("id")
        if not invoice_id:
            raise GatewayException("Gateway response is missing the invoice id", details=payload)
        amount = payload.get("amount")
        return GatewayInvoice(
            invoice_id=str(invoice_id),
            invoice_url=payload.get("invoice_url"),
            status=map_invoice_status(payload.get("status", "PENDING")),
            external_id=payload.get("external_id"),
            amount=int(amount) if amount is not None else None,
        )
