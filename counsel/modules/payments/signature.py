import hashlib
import hmac

def compute_signature(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

def verify_signature(secret: str | None, payload: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    # some providers prefix the digest with the algorithm name
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    return hmac.compare_digest(compute_signature(secret, payload), signature.strip().lower())
