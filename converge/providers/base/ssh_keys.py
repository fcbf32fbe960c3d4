"""SSH key material helpers shared by backends and tests."""

from __future__ import annotations

import base64
import binascii
import hashlib
from pathlib import Path

from converge.core.exceptions import ConfigurationError


def read_public_key(path: str | Path) -> str:
    """Read an SSH public key from disk, without trailing newlines.

    Raises:
        ConfigurationError: If the file is missing or empty.
    """
    key_path = Path(path).expanduser()
    if not key_path.is_file():
        raise ConfigurationError(f"SSH public key not found: {key_path}")
    content = key_path.read_text().strip("\n").strip()
    if not content:
        raise ConfigurationError(f"SSH public key is empty: {key_path}")
    return content


def compute_fingerprint(public_key: str) -> str:
    """Compute MD5 fingerprint of an SSH public key.

    Args:
        public_key: SSH public key string (e.g., "ssh-ed25519 AAAA... user@host")

    Returns:
        MD5 fingerprint in colon-separated format (e.g., "ab:cd:ef:...")

    Raises:
        ValueError: If public key format is invalid.
    """
    parts = public_key.split()
    if len(parts) < 2:
        raise ValueError(f"Invalid SSH public key format: {public_key[:50]}...")

    try:
        decoded = base64.b64decode(parts[1], validate=True)
    except binascii.Error as e:
        raise ValueError(f"Could not decode SSH key: {e}") from e

    md5_hash = hashlib.md5(decoded).hexdigest()
    return ":".join(md5_hash[i : i + 2] for i in range(0, len(md5_hash), 2))
