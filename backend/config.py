"""
Configuration for Zule Mesh Store
"""
import os
from decimal import Decimal

from dotenv import load_dotenv

# Load environment variables before anything below reads them
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Server
PORT = int(os.getenv("PORT", "5000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# MongoDB Configuration
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "zule_store")

# Solana Pay
STORE_WALLET = os.getenv("STORE_WALLET", "")
SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
STORE_LABEL = os.getenv("STORE_LABEL", "Zule Mesh Store")
PAYMENT_MEMO = os.getenv(
    "PAYMENT_MEMO", "Payment for Zule Mesh AI Agent - Twitter reCAPTCHA Solution"
)
PAYMENT_MESSAGE = os.getenv(
    "PAYMENT_MESSAGE",
    "Purchase of Zule Mesh AI - Twitter reCAPTCHA Solver (Order #{order_number})",
)
DEFAULT_AMOUNT = Decimal(os.getenv("DEFAULT_AMOUNT", "0.005"))
LEDGER_TIMEOUT_SECONDS = float(os.getenv("LEDGER_TIMEOUT_SECONDS", "15"))
PAYMENT_REQUEST_TTL_SECONDS = int(os.getenv("PAYMENT_REQUEST_TTL_SECONDS", "0"))

# Email Configuration
EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.zoho.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "15"))
EMAIL_TIMEZONE = os.getenv("EMAIL_TIMEZONE", "Africa/Lagos")
TRACKING_URL = os.getenv("TRACKING_URL", "https://mesh.zuleai.xyz/tracking")

# Feature flags (the QR service and the older route names)
ENABLE_QR = _flag("ENABLE_QR", "true")
ENABLE_LEGACY_ROUTES = _flag("ENABLE_LEGACY_ROUTES", "true")
