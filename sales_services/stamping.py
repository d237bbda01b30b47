"""
sales_services.stamping -- Timed wrapper around the tax-authority gateway.

Responsibility:
    Runs a ``StampingGateway.stamp_invoice`` call on a worker thread and
    waits at most ``timeout_seconds`` for it.  Every failure mode surfaces
    as ``ExternalServiceError`` so the orchestrator can leave the invoice in
    DRAFT without guessing.

Architecture position:
    Services layer.  Wraps whatever transport the caller injects; the
    transport itself is out of scope.

Invariants enforced:
    - No automatic retry.  A timed-out call is abandoned, not repeated.
    - A rejected receipt (``accepted=False``) is returned as-is; deciding
      what a rejection means is the orchestrator's job.
"""

from concurrent.futures import ThreadPoolExecutor

from sales_kernel.domain.documents import Invoice
from sales_kernel.exceptions import ExternalServiceError
from sales_kernel.logging_config import get_logger
from sales_kernel.ports import StampingGateway, StampingReceipt

logger = get_logger("services.stamping")

SERVICE_NAME = "stamping"


class TimedStampingGateway:
    """
    StampingGateway that bounds the inner call with a timeout.

    Usage:
        with TimedStampingGateway(transport, timeout_seconds=30) as gateway:
            receipt = gateway.stamp_invoice(invoice)
    """

    def __init__(
        self,
        inner: StampingGateway,
        timeout_seconds: float = 30.0,
        max_workers: int = 2,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._inner = inner
        self._timeout = timeout_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="stamping"
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def stamp_invoice(self, invoice: Invoice) -> StampingReceipt:
        logger.info(
            "stamping_requested",
            extra={"invoice_id": invoice.id, "invoice_number": invoice.number},
        )
        future = self._executor.submit(self._inner.stamp_invoice, invoice)
        try:
            receipt = future.result(timeout=self._timeout)
        except TimeoutError as exc:
            future.cancel()
            logger.warning(
                "stamping_timed_out",
                extra={"invoice_number": invoice.number, "timeout_seconds": self._timeout},
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                "stamp_invoice",
                f"no response within {self._timeout}s",
                timed_out=True,
                document_number=invoice.number,
            ) from exc
        except ExternalServiceError:
            raise
        except Exception as exc:
            logger.warning(
                "stamping_failed",
                extra={"invoice_number": invoice.number, "error": str(exc)},
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                "stamp_invoice",
                str(exc) or type(exc).__name__,
                document_number=invoice.number,
            ) from exc

        logger.info(
            "stamping_completed",
            extra={
                "invoice_number": invoice.number,
                "accepted": receipt.accepted,
                "reference": receipt.reference,
            },
        )
        return receipt

    def close(self) -> None:
        """Stop accepting calls; an abandoned call is not waited for."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "TimedStampingGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
