"""
Paystack API client: payment collection, refunds and payouts.

One client covers both gateway roles the escrow engine needs: the payment
gateway (initialize checkout, verify, refund) and the payout gateway
(transfer recipients, transfers). Amounts are Decimal major units at the
interface and integer minor units on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional, cast
from uuid import uuid4

import httpx
from pydantic import SecretStr

from ..core.exceptions import GatewayException

logger = logging.getLogger(__name__)

_MINOR_UNITS = Decimal("100")


def to_minor_units(amount: Decimal) -> int:
    return int((amount * _MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value: Any) -> Decimal:
    return (Decimal(str(value)) / _MINOR_UNITS).quantize(Decimal("0.01"))


class PaystackError(GatewayException):
    """Raised when the Paystack API responds with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        reference: Optional[str] = None,
        amount: Optional[Decimal] = None,
        retryable: bool = True,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            reference=reference,
            amount=amount,
            retryable=retryable,
            code="PAYSTACK_ERROR",
            details={"status_code": status_code},
        )
        self.status_code = status_code
        self.error_body = error_body


@dataclass(frozen=True)
class CheckoutHandle:
    reference: str
    authorization_url: str
    access_code: str


@dataclass(frozen=True)
class VerifiedPayment:
    reference: str
    status: str
    amount: Decimal
    currency: str
    gateway_transaction_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    status: str


def parse_payout_handle(handle: str) -> tuple[str, str]:
    """Split a ``BANK_CODE:ACCOUNT_NUMBER`` payout handle."""
    bank_code, sep, account_number = (handle or "").partition(":")
    if not sep or not bank_code.strip() or not account_number.strip():
        raise ValueError("payout handle must look like BANK_CODE:ACCOUNT_NUMBER")
    return bank_code.strip(), account_number.strip()


class PaystackClient:
    """Thin client for the Paystack REST API."""

    def __init__(
        self,
        *,
        secret_key: str | SecretStr,
        base_url: str = "https://api.paystack.co",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            secret_key.get_secret_value() if isinstance(secret_key, SecretStr) else secret_key
        )
        if not secret_value:
            raise ValueError("Paystack secret key must be provided")

        self._secret_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    # Payment gateway

    def initialize_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        reference: str,
        callback_url: str,
        email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CheckoutHandle:
        body = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "reference": reference,
            "callback_url": callback_url,
            "email": email,
            "metadata": metadata or {},
        }
        data = self.request("POST", "/transaction/initialize", json_body=body, reference=reference)
        return CheckoutHandle(
            reference=str(data.get("reference") or reference),
            authorization_url=str(data.get("authorization_url", "")),
            access_code=str(data.get("access_code", "")),
        )

    def verify_transaction(self, reference: str) -> VerifiedPayment:
        data = self.request("GET", f"/transaction/verify/{reference}", reference=reference)
        return VerifiedPayment(
            reference=str(data.get("reference") or reference),
            status=str(data.get("status", "")).lower(),
            amount=from_minor_units(data.get("amount", 0)),
            currency=str(data.get("currency", "")).upper(),
            gateway_transaction_id=str(data["id"]) if data.get("id") is not None else None,
        )

    def refund(self, *, reference: str, amount: Decimal, idempotency_key: str) -> str:
        """Refund part or all of the charge identified by ``reference``; returns the refund id."""
        body = {"transaction": reference, "amount": to_minor_units(amount)}
        data = self.request(
            "POST",
            "/refund",
            json_body=body,
            headers={"Idempotency-Key": idempotency_key},
            reference=idempotency_key,
            amount=amount,
        )
        return str(data.get("id") or data.get("refund_reference") or idempotency_key)

    # Payout gateway

    def resolve_recipient(self, payout_account_handle: str, *, name: str, currency: str) -> str:
        try:
            bank_code, account_number = parse_payout_handle(payout_account_handle)
        except ValueError as exc:
            raise PaystackError(str(exc), retryable=False) from exc
        body = {
            "type": "mobile_money" if bank_code.upper() == "MPESA" else "kepss",
            "name": name,
            "account_number": account_number,
            "bank_code": bank_code,
            "currency": currency,
        }
        data = self.request("POST", "/transferrecipient", json_body=body)
        recipient = data.get("recipient_code")
        if not recipient:
            raise PaystackError("Paystack returned no recipient code", retryable=False)
        return str(recipient)

    def transfer(
        self,
        *,
        recipient_id: str,
        amount: Decimal,
        reference: str,
        currency: str,
        reason: str = "",
    ) -> TransferResult:
        body = {
            "source": "balance",
            "amount": to_minor_units(amount),
            "recipient": recipient_id,
            "reference": reference,
            "currency": currency,
            "reason": reason,
        }
        data = self.request("POST", "/transfer", json_body=body, reference=reference, amount=amount)
        status = str(data.get("status", "")).lower()
        if status in {"failed", "reversed", "abandoned"}:
            raise PaystackError(
                f"Transfer {reference} was {status}",
                reference=reference,
                amount=amount,
                retryable=False,
            )
        return TransferResult(
            transfer_id=str(data.get("transfer_code") or data.get("id") or reference),
            status=status or "pending",
        )

    # Webhooks

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Paystack signs the raw body with HMAC-SHA512 keyed by the secret key."""
        if not signature:
            return False
        expected = hmac.new(self._secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature.strip())

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
        reference: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Dict[str, Any]:
        """Perform a Paystack request and return the ``data`` member of the envelope."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Accept": "application/json",
            },
        ) as client:
            try:
                response = client.request(method, url, json=json_body, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "Paystack API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                    extra={"reference": reference},
                )
                raise PaystackError(
                    f"Paystack responded with status {status}",
                    status_code=status,
                    reference=reference,
                    amount=amount,
                    retryable=status >= 500 or status == 429,
                    error_body=exc.response.text[:500],
                ) from exc
            except httpx.TimeoutException as exc:
                logger.warning(
                    "Paystack timeout for %s %s", method, path, extra={"reference": reference}
                )
                raise PaystackError(
                    "Timed out waiting for Paystack",
                    reference=reference,
                    amount=amount,
                    retryable=True,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Paystack request failure for %s %s: %s", method, path, str(exc))
                raise PaystackError(
                    "Failed to reach Paystack", reference=reference, amount=amount, retryable=True
                ) from exc

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Paystack for %s %s", method, path)
            raise PaystackError(
                "Received malformed JSON from Paystack", reference=reference, amount=amount
            ) from exc

        if not isinstance(payload, dict) or payload.get("status") is False:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise PaystackError(
                f"Paystack rejected request: {message or 'unknown error'}",
                reference=reference,
                amount=amount,
                retryable=False,
                error_body=payload,
            )
        return cast(Dict[str, Any], payload.get("data") or {})


class FakePaystackClient(PaystackClient):
    """
    In-memory stand-in for Paystack used in development and tests.

    Checkouts verify as successful by default. Failures are injected by
    setting ``refund_error``, ``transfer_error`` or ``recipient_error``.
    Repeating a refund or transfer reference returns the original id, the
    same collapse the real gateway performs on idempotency keys.
    """

    def __init__(self, secret_key: str = "sk_test_fake_paystack") -> None:
        super().__init__(secret_key=secret_key, base_url="https://api.paystack.co")
        self._logger = logging.getLogger(self.__class__.__name__)
        self.checkouts: Dict[str, Dict[str, Any]] = {}
        self.verify_overrides: Dict[str, VerifiedPayment] = {}
        self.refunds: Dict[str, Dict[str, Any]] = {}
        self.transfers: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.auto_succeed = True
        self.checkout_error: Optional[GatewayException] = None
        self.verify_error: Optional[GatewayException] = None
        self.refund_error: Optional[GatewayException] = None
        self.transfer_error: Optional[GatewayException] = None
        self.recipient_error: Optional[GatewayException] = None

    def initialize_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        reference: str,
        callback_url: str,
        email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CheckoutHandle:
        self.calls.append(f"initialize:{reference}")
        if self.checkout_error is not None:
            raise self.checkout_error
        access_code = f"fake_access_{uuid4().hex[:12]}"
        self.checkouts[reference] = {
            "amount": amount,
            "currency": currency,
            "email": email,
            "callback_url": callback_url,
            "metadata": metadata or {},
        }
        return CheckoutHandle(
            reference=reference,
            authorization_url=f"https://checkout.paystack.test/{access_code}",
            access_code=access_code,
        )

    def verify_transaction(self, reference: str) -> VerifiedPayment:
        self.calls.append(f"verify:{reference}")
        if self.verify_error is not None:
            raise self.verify_error
        if reference in self.verify_overrides:
            return self.verify_overrides[reference]
        checkout = self.checkouts.get(reference)
        if checkout is None:
            return VerifiedPayment(reference, "abandoned", Decimal("0.00"), "")
        return VerifiedPayment(
            reference=reference,
            status="success" if self.auto_succeed else "pending",
            amount=Decimal(checkout["amount"]).quantize(Decimal("0.01")),
            currency=str(checkout["currency"]),
            gateway_transaction_id=f"fake_trx_{reference}",
        )

    def refund(self, *, reference: str, amount: Decimal, idempotency_key: str) -> str:
        self.calls.append(f"refund:{idempotency_key}")
        if self.refund_error is not None:
            raise self.refund_error
        existing = self.refunds.get(idempotency_key)
        if existing is not None:
            return str(existing["id"])
        refund_id = f"fake_refund_{uuid4().hex[:12]}"
        self.refunds[idempotency_key] = {"id": refund_id, "reference": reference, "amount": amount}
        return refund_id

    def resolve_recipient(self, payout_account_handle: str, *, name: str, currency: str) -> str:
        self.calls.append(f"recipient:{payout_account_handle}")
        if self.recipient_error is not None:
            raise self.recipient_error
        try:
            bank_code, account_number = parse_payout_handle(payout_account_handle)
        except ValueError as exc:
            raise PaystackError(str(exc), retryable=False) from exc
        return f"RCP_fake_{bank_code}_{account_number}"

    def transfer(
        self,
        *,
        recipient_id: str,
        amount: Decimal,
        reference: str,
        currency: str,
        reason: str = "",
    ) -> TransferResult:
        self.calls.append(f"transfer:{reference}")
        if self.transfer_error is not None:
            raise self.transfer_error
        existing = self.transfers.get(reference)
        if existing is None:
            existing = {
                "id": f"TRF_fake_{uuid4().hex[:12]}",
                "recipient": recipient_id,
                "amount": amount,
                "currency": currency,
            }
            self.transfers[reference] = existing
        return TransferResult(transfer_id=str(existing["id"]), status="success")

    def sign(self, raw_body: bytes) -> str:
        """Produce the signature Paystack would send for ``raw_body``."""
        return hmac.new(self._secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
