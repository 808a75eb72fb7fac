"""Minimal Xendit invoice API client."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class XenditError(RuntimeError):
    """Raised when the Xendit API responds with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_code: str | None = None,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.error_body = error_body


class XenditClient:
    """Thin client for the Xendit v2 invoice endpoints."""

    def __init__(
        self,
        *,
        secret_key: str | SecretStr,
        base_url: str = "https://api.xendit.co",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        )
        if not secret_value:
            raise ValueError("Xendit secret key must be provided")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        # Secret key as the Basic auth username, blank password
        self._auth = httpx.BasicAuth(secret_value, "")

    def create_invoice(
        self,
        *,
        external_id: str,
        amount: int,
        description: str,
        currency: str = "IDR",
        invoice_duration: int = 86400,
        customer: Dict[str, Any] | None = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Create a hosted invoice and return the invoice object."""
        if not external_id:
            raise ValueError("external_id must be provided")
        if amount <= 0:
            raise ValueError("amount must be positive")
        body: Dict[str, Any] = {
            "external_id": external_id,
            "amount": amount,
            "description": description,
            "currency": currency,
            "invoice_duration": invoice_duration,
        }
        if customer:
            body["customer"] = customer
        body.update({key: value for key, value in extra.items() if value is not None})
        return self.request("POST", "/v2/invoices", json_body=body)

    def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        if not invoice_id:
            raise ValueError("invoice_id must be provided")
        return self.request("GET", f"/v2/invoices/{invoice_id}")

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Xendit API request and return the parsed JSON payload."""
        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            auth=self._auth,
            headers={"Accept": "application/json"},
        ) as client:
            logger.debug(
                "XenditClient request",
                extra={"evt": "xendit_request", "method": method, "path": path},
            )
            try:
                response = client.request(method, url, json=json_body, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None = None
                error_code: str | None = None
                try:
                    error_payload = exc.response.json()
                    if isinstance(error_payload, dict):
                        error_code = error_payload.get("error_code")
                except json.JSONDecodeError:
                    error_payload = exc.response.text

                logger.error(
                    "Xendit API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise XenditError(
                    f"Xendit API responded with status {status}",
                    status_code=status,
                    error_code=error_code,
                    error_body=error_payload,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Xendit request failure for %s %s: %s", method, path, str(exc))
                raise XenditError("Failed to reach Xendit API") from exc

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Xendit for %s %s: %s", method, path, response.text)
            raise XenditError("Received malformed JSON from Xendit") from exc
        if not isinstance(payload, dict):
            raise XenditError("Unexpected response shape from Xendit", error_body=payload)
        return cast(Dict[str, Any], payload)
