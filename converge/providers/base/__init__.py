"""Base infrastructure for remote backends.

Public API:
    # Capability protocols
    Reclaimable - list + delete, all the sweeper needs
    GuestApi    - virtual guests (create, power state, transactions, label)
    SSHKeyApi   - SSH key records
    AccountApi  - read-only account inventory

    # SSH key helpers
    compute_fingerprint - MD5 fingerprint of a public key
    read_public_key     - load key material from disk
"""

from converge.providers.base.capabilities import (
    AccountApi,
    GuestApi,
    Reclaimable,
    SSHKeyApi,
)
from converge.providers.base.ssh_keys import (
    compute_fingerprint,
    read_public_key,
)

__all__ = [
    # Capabilities
    "Reclaimable",
    "GuestApi",
    "SSHKeyApi",
    "AccountApi",
    # SSH keys
    "compute_fingerprint",
    "read_public_key",
]
