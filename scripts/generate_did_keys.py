#!/usr/bin/env python3
"""Generate a P-256 signing key pair for the DID_* settings."""
from didauth.domains.did_auth.signing import generate_private_key_hex, load_private_key, public_key_hex


def main() -> None:
    private_hex = generate_private_key_hex()
    print(f"DID_PRIVATE_KEY={private_hex}")
    print(f"DID_PUBLIC_KEY={public_key_hex(load_private_key(private_hex))}")


if __name__ == "__main__":
    main()
