"""
AES-256-GCM encryption for third-party OAuth tokens at rest.

Encrypted values are base64 of a JSON envelope::

    {"alg": "aes-256-gcm", "iv": <b64>, "tag": <b64>, "data": <b64>}

Every call uses a fresh 12-byte nonce. Decryption raises
``cryptography.exceptions.InvalidTag`` when the tag does not verify.
"""
import base64
import json
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from cutflow.config import settings

ALGORITHM = "aes-256-gcm"
NONCE_BYTES = 12
TAG_BYTES = 16


def _get_key() -> bytes:
    key = settings.TOKEN_ENCRYPTION_KEY
    if not key:
        raise ValueError("TOKEN_ENCRYPTION_KEY is not defined")

    try:
        raw = base64.b64decode(key, validate=True)
    except ValueError:
        raise ValueError("TOKEN_ENCRYPTION_KEY must be base64-encoded")

    if len(raw) != 32:
        raise ValueError(
            "TOKEN_ENCRYPTION_KEY must be 32 bytes base64-encoded (44 chars)"
        )

    return raw


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def encrypt_token(token: str) -> str:
    iv = os.urandom(NONCE_BYTES)

    # AESGCM appends the 16-byte tag to the ciphertext
    sealed = AESGCM(_get_key()).encrypt(iv, token.encode("utf-8"), None)
    data, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]

    payload = {
        "alg": ALGORITHM,
        "iv": _b64(iv),
        "tag": _b64(tag),
        "data": _b64(data),
    }
    return _b64(json.dumps(payload).encode("utf-8"))


def decrypt_token(enc_token: str) -> str:
    payload = json.loads(base64.b64decode(enc_token).decode("utf-8"))

    if payload.get("alg") != ALGORITHM:
        raise ValueError("Unsupported encryption algorithm")

    iv = base64.b64decode(payload["iv"])
    tag = base64.b64decode(payload["tag"])
    data = base64.b64decode(payload["data"])

    plain = AESGCM(_get_key()).decrypt(iv, data + tag, None)
    return plain.decode("utf-8")
