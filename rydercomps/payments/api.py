import os
import logging
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import urljoin
from dotenv import load_dotenv
from typing import Any, Optional, Mapping

import requests

from ..errors import PaymentRejected
from ..models.utils import to_money
from .utils import open_session, to_minor_units

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentConfirmation:
    """A payment the collaborator has confirmed as captured."""

    reference: str
    amount: Decimal
    currency: str


class PaymentClient:
    """HTTP client for the external card-payment collaborator.

    Amounts are sent in minor units (pence) of ``currency``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 30,
        currency: str = "gbp",
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        base = base_url or os.getenv("PAYMENT_API_BASE_URL")
        if not base:
            raise ValueError("Environment variable 'PAYMENT_API_BASE_URL' is not set")

        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        self.base_url = base.rstrip("/")
        self.session = session or open_session(api_key)
        self.timeout = timeout
        self.currency = currency

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or {"Accept": "application/json"},
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def confirm_payment(
        self,
        payment_token: str,
        amount: "Decimal | int | str",
        *,
        reference: Optional[str] = None,
    ) -> PaymentConfirmation:
        """Capture ``amount`` against ``payment_token``.

        Raises
        ------
        PaymentRejected
            If the token is missing, the collaborator declines the payment
            (4xx or a non-``succeeded`` status), or it captured a different amount.
        requests.RequestException
            On transport failures and 5xx responses.
        """
        if not payment_token:
            raise PaymentRejected("A payment token is required")

        expected = to_money(amount)
        payload = {
            "token": payment_token,
            "amount": to_minor_units(expected),
            "currency": self.currency,
            "reference": reference,
        }
        # The payment token is a secret; log only the amount.
        logger.debug("Confirming payment of %s %s", expected, self.currency)
        try:
            data = self._request("POST", "/v1/payments/confirm", json=payload)
        except requests.HTTPError as exc:
            response = exc.response
            if response is not None and 400 <= response.status_code < 500:
                raise PaymentRejected(
                    f"Payment declined (HTTP {response.status_code})"
                ) from exc
            raise

        if not isinstance(data, dict):
            raise PaymentRejected(f"Unexpected payment response: {data!r}")

        status = data.get("status")
        if status != SUCCEEDED:
            message = data.get("message")
            raise PaymentRejected(
                f"Payment {status or 'failed'}" + (f": {message}" if message else "")
            )

        captured = data.get("amount")
        if captured is not None:
            try:
                captured_minor = int(captured)
            except (TypeError, ValueError):
                raise PaymentRejected(f"Unexpected captured amount: {captured!r}") from None
            if captured_minor != payload["amount"]:
                raise PaymentRejected(
                    f"Captured amount {captured} does not match expected {payload['amount']}"
                )

        payment_id = data.get("id")
        if not payment_id:
            raise PaymentRejected("Payment response did not include an id")

        logger.debug("Payment confirmed")
        return PaymentConfirmation(
            reference=str(payment_id),
            amount=expected,
            currency=data.get("currency") or self.currency,
        )

    def refund_payment(self, payment_reference: str, amount: "Decimal | int | str") -> dict:
        """Refund ``amount`` of a previously confirmed payment."""
        return self._request(
            "POST",
            f"/v1/payments/{payment_reference}/refund",
            json={"amount": to_minor_units(to_money(amount))},
        )
