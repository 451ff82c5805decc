"""
Solana Pay transfer-request URLs and QR codes
"""
import base64
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from io import BytesIO
from typing import Any, Optional
from urllib.parse import urlencode

import qrcode
from PIL import Image
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from errors import ValidationError

LAMPORTS_PER_SOL = 10 ** 9
SOL_DECIMALS = 9
LAMPORT = Decimal(1).scaleb(-SOL_DECIMALS)

QR_SIZE_PX = 200
QR_BORDER_MODULES = 2


def new_reference() -> str:
    """
    Fresh random reference for one purchase.

    Only the public key of a throwaway keypair is kept; it is never
    used to sign anything.
    """
    return str(Keypair().pubkey())


def parse_public_key(value: str, field_name: str = "reference") -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: not a base58 public key")


def parse_amount(value: Any, default: Decimal) -> Decimal:
    """
    Turn a request ``total`` into a SOL amount.

    Non-numeric values are rejected; zero or negative totals fall back to
    the store default. Precision beyond one lamport is rounded away, since
    float cart totals often carry it.
    """
    if isinstance(value, bool):
        raise ValidationError("Invalid total amount in request body")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid total amount in request body")
    if not amount.is_finite():
        raise ValidationError("Invalid total amount in request body")
    try:
        amount = amount.quantize(LAMPORT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Total amount is too large")
    if amount <= 0:
        return default
    return amount


def format_amount(amount: Decimal) -> str:
    return format(amount.normalize(), "f")


def to_lamports(amount: Decimal) -> int:
    return int(amount * LAMPORTS_PER_SOL)


def encode_url(
    recipient: str,
    amount: Optional[Decimal] = None,
    reference: Optional[str] = None,
    label: Optional[str] = None,
    message: Optional[str] = None,
    memo: Optional[str] = None,
) -> str:
    """Build a ``solana:`` transfer request URL"""
    params = []
    if amount is not None:
        params.append(("amount", format_amount(amount)))
    if reference:
        params.append(("reference", reference))
    if label:
        params.append(("label", label))
    if message:
        params.append(("message", message))
    if memo:
        params.append(("memo", memo))

    url = f"solana:{recipient}"
    if params:
        url += "?" + urlencode(params)
    return url


def render_qr_data_url(url: str) -> str:
    """Render a URL as a 200x200 black-on-white PNG data URL"""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=QR_BORDER_MODULES,
    )
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.convert("RGB").resize((QR_SIZE_PX, QR_SIZE_PX), Image.Resampling.NEAREST)

    bio = BytesIO()
    img.save(bio, "PNG")
    encoded = base64.b64encode(bio.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
