"""Claims spend against the Coral session budget."""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from .config import Settings
from .errors import PaymentClaimError, PaymentRequestError

logger = logging.getLogger(__name__)


@dataclass
class PaymentClaimResult:
    remaining_budget: float
    coral_usd_price: float

    def to_dict(self):
        return {"remainingBudget": self.remaining_budget, "coralUsdPrice": self.coral_usd_price}


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def claim_url(api_url: str, session_id: str) -> str:
    return f"{api_url.rstrip('/')}/api/v1/internal/claim/{quote(session_id, safe='')}"


class PaymentService:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def claim(self, amount: float) -> PaymentClaimResult:
        """Claim amount (in coral) from the session budget.

        Raises:
            ConfigurationError: CORAL_API_URL or CORAL_SESSION_ID is unset.
            PaymentRequestError: the payment API could not be reached.
            PaymentClaimError: the claim was refused or the reply is malformed.
        """
        self.settings.require("coral_api_url", "coral_session_id")
        url = claim_url(self.settings.coral_api_url, self.settings.coral_session_id)
        body = {"amount": {"type": "coral", "amount": amount}}

        try:
            resp = self.session.post(url, json=body, timeout=self.settings.timeout)
        except requests.exceptions.RequestException as e:
            raise PaymentRequestError(str(e)) from e

        try:
            payload = resp.json() if resp.text else {}
        except ValueError:
            payload = {}

        if resp.ok:
            if not isinstance(payload, dict) or not (
                    _is_number(payload.get("remainingBudget")) and _is_number(payload.get("coralUsdPrice"))):
                raise PaymentClaimError(f"Invalid success payload shape (status {resp.status_code})")
            result = PaymentClaimResult(payload["remainingBudget"], payload["coralUsdPrice"])
            logger.info("Claimed %s coral, %s remaining", amount, result.remaining_budget)
            return result

        message = payload.get("message") if isinstance(payload, dict) else None
        if not isinstance(message, str):
            message = f"HTTP {resp.status_code}"
        raise PaymentClaimError(f"{message} (status {resp.status_code})")


class MockPaymentService:
    def claim(self, amount: float) -> PaymentClaimResult:
        return PaymentClaimResult(remaining_budget=100, coral_usd_price=1)


def payment_service_for(settings: Settings):
    return MockPaymentService() if settings.offline else PaymentService(settings)
