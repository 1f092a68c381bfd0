import hashlib


def hash_str(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_bytes(data: bytes) -> str:
    """Content fingerprint of a raw file: identical bytes -> identical digest."""
    return hashlib.sha256(data).hexdigest()
