"""
ECDSA helpers for the DID QR flow (NIST P-256, SHA-256).

Wallet side: the wallet signs SHA-256 of the exact ``Data`` string it posts and
sends the signature as ``r || s`` in fixed-width hex. The digest must be taken
over the raw wire string; re-serializing the JSON changes the bytes and breaks
verification.

Application side: the app id is signed with the deployment's private key and
shipped inside the QR descriptor as hex DER.
"""

from __future__ import annotations

import hashlib
import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    encode_dss_signature,
)

CURVE = ec.SECP256R1()
COMPONENT_HEX_LENGTH = 64


def digest_message(raw_data: str) -> bytes:
    return hashlib.sha256(raw_data.encode("utf-8")).digest()


def split_signature(sign_hex: str, component_length: int = COMPONENT_HEX_LENGTH) -> tuple[str, str] | None:
    """Split ``r || s`` into halves; ``None`` unless the width is exact."""
    if not isinstance(sign_hex, str) or len(sign_hex) != 2 * component_length:
        return None
    return sign_hex[:component_length], sign_hex[component_length:]


def verify_signature(digest: bytes, r_hex: str, s_hex: str, public_key_hex: str) -> bool:
    """
    Verify an ECDSA signature over an already-hashed message.

    Malformed keys, malformed components and mismatches all return False.
    """
    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes.fromhex(public_key_hex))
        r = int.from_bytes(bytes.fromhex(r_hex), "big")
        s = int.from_bytes(bytes.fromhex(s_hex), "big")
        key.verify(encode_dss_signature(r, s), digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        return False
    except (ValueError, TypeError):
        return False
    return True


def verify_payload(
    raw_data: str,
    sign_hex: str,
    public_key_hex: str,
    component_length: int = COMPONENT_HEX_LENGTH,
) -> bool:
    parts = split_signature(sign_hex, component_length)
    if parts is None:
        return False
    r_hex, s_hex = parts
    try:
        digest = digest_message(raw_data)
    except UnicodeEncodeError:
        # Lone surrogates survive json.loads but have no UTF-8 encoding.
        return False
    return verify_signature(digest, r_hex, s_hex, public_key_hex)


# ---------------------------------------------------------------------------
# Key handling
# ---------------------------------------------------------------------------


def generate_private_key_hex() -> str:
    # P-256 group order; the scalar must lie in [1, n).
    order = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
    return format(secrets.randbelow(order - 1) + 1, "064x")


def load_private_key(private_key_hex: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int(private_key_hex, 16), CURVE)


def public_key_hex(private_key: ec.EllipticCurvePrivateKey, *, compressed: bool = True) -> str:
    fmt = serialization.PublicFormat.CompressedPoint if compressed else serialization.PublicFormat.UncompressedPoint
    return private_key.public_key().public_bytes(serialization.Encoding.X962, fmt).hex()


def sign_app_id(private_key_hex: str, app_id: str) -> str:
    """Hex DER signature over SHA-256 of the application id."""
    key = load_private_key(private_key_hex)
    return key.sign(app_id.encode("utf-8"), ec.ECDSA(hashes.SHA256())).hex()
