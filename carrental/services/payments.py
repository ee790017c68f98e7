"""
Payment collaborator boundary. Real processing is out of scope; the ledger
only needs a success/failure answer within a bounded time.
"""
from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentOutcome:
    success: bool
    reference: Optional[str] = None
    message: str = ""


class PaymentProcessor(Protocol):
    def charge(self, amount: float, method: str) -> PaymentOutcome: ...

    def refund(self, amount: float, reference: Optional[str]) -> PaymentOutcome: ...


class AcceptAllProcessor:
    """Development processor: every charge and refund succeeds."""

    def charge(self, amount: float, method: str) -> PaymentOutcome:
        return PaymentOutcome(True, reference=f"txn_{uuid.uuid4().hex[:12]}")

    def refund(self, amount: float, reference: Optional[str]) -> PaymentOutcome:
        return PaymentOutcome(True, reference=f"rfd_{uuid.uuid4().hex[:12]}")


class TimeoutPaymentGateway:
    """
    Wraps a processor so that every call returns within `timeout` seconds.
    A timeout or a raised error is reported as an unsuccessful outcome.
    """

    def __init__(self, processor: PaymentProcessor, timeout: float = 10.0, max_workers: int = 4):
        self.processor = processor
        self.timeout = timeout
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="payment")

    def _call(self, op: str, fn, *args) -> PaymentOutcome:
        future = self._pool.submit(fn, *args)
        try:
            outcome = future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning("payment_timeout", op=op, timeout=self.timeout)
            return PaymentOutcome(False, message="Payment processor timed out")
        except Exception as e:
            logger.warning("payment_error", op=op, error=str(e))
            return PaymentOutcome(False, message="Payment processor error")
        if not isinstance(outcome, PaymentOutcome):
            return PaymentOutcome(bool(outcome))
        return outcome

    def charge(self, amount: float, method: str) -> PaymentOutcome:
        return self._call("charge", self.processor.charge, amount, method)

    def refund(self, amount: float, reference: Optional[str]) -> PaymentOutcome:
        return self._call("refund", self.processor.refund, amount, reference)

    def shutdown(self):
        self._pool.shutdown(wait=False, cancel_futures=True)
