import hashlib
import hmac
import logging
from dataclasses import dataclass
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


@dataclass
class PaystackConfig:
    secret_key: str                          # sk_test_... / sk_live_...
    base_url: str = "https://api.paystack.co"
    timeout: int = 25
    sandbox: bool = False                    # canned replies, no network


class PaystackError(RuntimeError):
    pass


def sign_payload(secret: str, payload: bytes) -> str:
    """x-paystack-signature: hex HMAC-SHA512 of the raw request body keyed with the secret key."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_webhook_signature(secret: str, payload: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = sign_payload(secret, payload)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("ascii", "ignore"))


class PaystackClient:
    def __init__(self, cfg: PaystackConfig):
        self.cfg = cfg

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.cfg.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.cfg.base_url.rstrip('/')}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                json=payload,
                headers=self._headers(),
                timeout=self.cfg.timeout,
            )
        except requests.Timeout as e:
            raise PaystackError(f"Paystack timed out after {self.cfg.timeout}s: {method.upper()} {path}") from e
        except requests.RequestException as e:
            raise PaystackError(f"Paystack unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            logger.warning("paystack %s %s -> %s", method.upper(), path, r.status_code)
            raise PaystackError(f"Paystack {r.status_code}: {data.get('message') or data}")
        if not data.get("status"):
            raise PaystackError(data.get("message") or "Paystack rejected the request")
        return data

    def initialize_transaction(self, *, email: str, amount: int, reference: str, currency: str,
                               metadata: dict | None = None, callback_url: str | None = None) -> dict:
        if self.cfg.sandbox:
            return {
                "status": True,
                "message": "Authorization URL created",
                "data": {
                    "authorization_url": f"{callback_url or ''}?reference={reference}&sandbox=1",
                    "access_code": f"sandbox-{reference}",
                    "reference": reference,
                },
            }
        payload = {
            "email": email,
            "amount": int(amount),
            "currency": currency,
            "reference": reference,
            "metadata": metadata or {},
        }
        if callback_url:
            payload["callback_url"] = callback_url
        return self.request("POST", "/transaction/initialize", payload)

    def verify_transaction(self, reference: str) -> dict:
        if self.cfg.sandbox:
            return {
                "status": True,
                "message": "Verification successful",
                "data": {"reference": reference, "status": "success", "gateway_response": "Sandbox", "id": 0},
            }
        return self.request("GET", f"/transaction/verify/{quote(reference, safe='')}")

    def refund(self, *, reference: str, amount: int | None = None) -> dict:
        if self.cfg.sandbox:
            return {"status": True, "message": "Refund has been queued for processing",
                    "data": {"transaction": {"reference": reference}, "status": "pending"}}
        payload: dict = {"transaction": reference}
        if amount is not None:
            payload["amount"] = int(amount)
        return self.request("POST", "/refund", payload)
