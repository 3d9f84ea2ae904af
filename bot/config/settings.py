import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str):
    return [item.strip().upper() for item in value.split(",") if item.strip()]


# Binance
BINANCE_API_URL = os.getenv("BINANCE_API_URL", "https://api.binance.com")
BINANCE_ACCOUNT_PATH = "/api/v3/account"
BINANCE_ORDER_PATH = "/api/v3/order"
BINANCE_API_KEY = os.getenv("BINANCE_API_KEY")
BINANCE_SECRET_KEY = os.getenv("BINANCE_SECRET_KEY")

# Trading
QUOTE_ASSET = os.getenv("QUOTE_ASSET", "BRL").upper()
FIAT_ASSETS = _csv(os.getenv("FIAT_ASSETS", "BRL,USD,EUR"))
SUPPORTED_ASSETS = _csv(os.getenv("SUPPORTED_ASSETS", ""))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

# Credentials
CREDENTIALS_SOURCE = os.getenv("CREDENTIALS_SOURCE", "env").lower()  # "env|file"
CREDENTIALS_FILE = os.getenv("CREDENTIALS_FILE", "credentials.json")
DEFAULT_ACCOUNT_ID = os.getenv("DEFAULT_ACCOUNT_ID", "default")

# WhatsApp
WHATSAPP_API_URL = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v21.0")
WHATSAPP_PHONE_ID = os.getenv("WHATSAPP_PHONE_ID")
WHATSAPP_TOKEN = os.getenv("WHATSAPP_TOKEN")
WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN", WHATSAPP_TOKEN)

# Server
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
