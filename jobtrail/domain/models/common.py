"""Defines common Value Objects used across the resilience contexts.

These objects represent the identities a throttle key is built from.
"""

from typing import NewType

# === Identity Context ===
ClientIdentity = NewType("ClientIdentity", str)    # Network identity of the caller (usually an IP)
AccountIdentity = NewType("AccountIdentity", str)  # Normalized account name (email)
