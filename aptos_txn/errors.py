# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Errors raised by the serialization and signing core.

None of these imply anything about network state: they are local validation
failures. Network level failures are reported by
:class:`aptos_txn.async_client.ApiError`.
"""

from typing import Optional


class AptosTxnError(Exception):
    """Base class for every error raised by the core."""


class DecodeError(AptosTxnError):
    """Malformed, truncated or non-canonical BCS input."""


class InvalidKeyConfiguration(AptosTxnError):
    """A multi-key identity was configured outside the scheme bounds."""


class InsufficientSignatures(AptosTxnError):
    """Fewer signer shares than the threshold were supplied."""

    def __init__(self, required: int, provided: int):
        self.required = required
        self.provided = provided
        super().__init__(
            f"Insufficient signatures, {required} required but {provided} provided"
        )


class MissingField(AptosTxnError):
    """A transaction was built before every required field was set."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class OrderMismatch(AptosTxnError):
    """Authenticator components diverge from the declared signer order."""


class VerificationFailure(AptosTxnError):
    """A freshly produced signature did not verify against its message."""
