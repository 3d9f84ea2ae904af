import hmac
import hashlib


def sign(secret: str, payload: str) -> str:
    """HMAC-SHA256 of the exact query/body string that will be transmitted, hex encoded"""
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
