"""
Payment Service for Zule Mesh Store
Issues Solana Pay requests and confirms them against the ledger
"""
import logging
import random
from typing import Any, Optional

from config import (
    DEFAULT_AMOUNT,
    PAYMENT_MEMO,
    PAYMENT_MESSAGE,
    STORE_LABEL,
    STORE_WALLET,
)
from errors import StoreError, ValidationError
from payment_registry import PaymentRegistry, PendingPayment
from solana_pay import encode_url, new_reference, parse_amount, render_qr_data_url

logger = logging.getLogger(__name__)

STATUS_VERIFIED = "verified"
STATUS_NOT_FOUND = "not found"


class PaymentResult:
    """Result of a payment operation"""
    def __init__(
        self,
        success: bool,
        message: str,
        reference: Optional[str] = None,
        url: Optional[str] = None,
        qr_code: Optional[str] = None,
        signature: Optional[str] = None
    ):
        self.success = success
        self.message = message
        self.reference = reference
        self.url = url
        self.qr_code = qr_code
        self.signature = signature

    @property
    def status(self) -> str:
        return STATUS_VERIFIED if self.success else STATUS_NOT_FOUND


def create_payment_request(
    registry: PaymentRegistry,
    total: Any,
    with_qr: bool = False,
    recipient: str = STORE_WALLET
) -> PaymentResult:
    """
    Create a Solana Pay transfer request.

    Flow:
    1. Validate the requested total (before any state changes)
    2. Generate a fresh reference and the payment URL
    3. Optionally render the URL as a QR code
    4. Register the reference so it can be verified later

    The order number in the message is random and unrelated to the
    store's orderId.
    """
    if total is None:
        raise ValidationError("Missing total amount in request body")
    amount = parse_amount(total, DEFAULT_AMOUNT)

    if not recipient:
        raise StoreError("Store wallet is not configured")

    reference = new_reference()
    order_number = random.randint(1, 999999)
    url = encode_url(
        recipient=recipient,
        amount=amount,
        reference=reference,
        label=STORE_LABEL,
        message=PAYMENT_MESSAGE.format(order_number=order_number),
        memo=PAYMENT_MEMO
    )

    qr_code = render_qr_data_url(url) if with_qr else None

    registry.put(PendingPayment(
        reference=reference,
        recipient=recipient,
        amount=amount,
        memo=PAYMENT_MEMO
    ))
    logger.info("Payment request %s created for %s SOL", reference, amount)

    return PaymentResult(
        success=True,
        message="Payment request created",
        reference=reference,
        url=url,
        qr_code=qr_code
    )


async def verify_payment(registry: PaymentRegistry, ledger, reference: str) -> PaymentResult:
    """
    Confirm that the transfer for a reference landed on chain.

    An unknown reference, a missing transaction or a transfer that does
    not validate all come back as "not found". Only a validated transfer
    consumes the registry entry, so clients can keep polling until then.
    Ledger failures propagate as UpstreamError.
    """
    pending = registry.get(reference)
    if pending is None:
        logger.info("Payment request %s not found", reference)
        return PaymentResult(success=False, message="Payment request not found", reference=reference)

    signature = await ledger.find_reference(reference)
    if signature is None:
        logger.info("No transaction yet for reference %s", reference)
        return PaymentResult(success=False, message="Transaction not found", reference=reference)

    logger.info("Found transaction %s for reference %s", signature, reference)
    valid = await ledger.validate_transfer(signature, pending.recipient, pending.amount, reference)
    if not valid:
        return PaymentResult(
            success=False,
            message="Transfer did not validate",
            reference=reference,
            signature=signature
        )

    # Concurrent verifications can all reach this point; only the one
    # that removes the entry reports success.
    if registry.pop(reference) is None:
        logger.info("Reference %s was already claimed", reference)
        return PaymentResult(success=False, message="Payment request not found", reference=reference)

    logger.info("Payment %s verified (%s SOL to %s)", reference, pending.amount, pending.recipient)
    return PaymentResult(
        success=True,
        message="Payment verified",
        reference=reference,
        signature=signature
    )
