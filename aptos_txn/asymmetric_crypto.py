# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Structural interfaces shared by every key scheme the signing core supports.

Concrete schemes live in their own modules (see :mod:`aptos_txn.ed25519`).
Everything that signs or verifies in the rest of the package is written
against these protocols, so a new scheme only has to provide ``sign``,
``verify``, ``to_crypto_bytes`` and BCS serialization.

Private keys can be written and read in the AIP-80 string form
``"{scheme}-priv-0x{hex}"``. Plain hex is still accepted unless ``strict`` is
requested, with a logged recommendation to migrate.

See https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-80.md
"""

from __future__ import annotations

import logging
from enum import Enum

from typing_extensions import Protocol

from .bcs import Deserializable, Serializable

logger = logging.getLogger(__name__)


class PrivateKeyVariant(Enum):
    """Key schemes with an AIP-80 string prefix."""

    Ed25519 = "ed25519"


class PrivateKey(Deserializable, Serializable, Protocol):
    """A secret signing key.

    Implementations never expose key material through ``__repr__`` or logs;
    ``hex()`` and ``aip80()`` are the only ways out.
    """

    def hex(self) -> str:
        """Return the key as a ``0x`` prefixed hex string."""
        ...

    def public_key(self) -> PublicKey:
        """Derive the matching public key."""
        ...

    def sign(self, data: bytes) -> Signature:
        """Sign ``data`` and return the scheme's signature object."""
        ...

    AIP80_PREFIXES: dict[PrivateKeyVariant, str] = {
        PrivateKeyVariant.Ed25519: "ed25519-priv-",
    }

    @staticmethod
    def format_private_key(
        private_key: bytes | str, key_type: PrivateKeyVariant
    ) -> str:
        """Format a private key as an AIP-80 string.

        Args:
            private_key: Raw key bytes, a hex string, or a string that is
                already AIP-80 formatted for ``key_type``.
            key_type: The key scheme.

        Raises:
            ValueError: If the key scheme has no AIP-80 prefix.
            TypeError: If ``private_key`` is neither ``str`` nor ``bytes``.
        """
        if key_type not in PrivateKey.AIP80_PREFIXES:
            raise ValueError(f"Unknown private key type: {key_type}")
        aip80_prefix = PrivateKey.AIP80_PREFIXES[key_type]

        if isinstance(private_key, str):
            if private_key.startswith(aip80_prefix):
                key_value = private_key[len(aip80_prefix) :]
            else:
                key_value = private_key
        elif isinstance(private_key, bytes):
            key_value = f"0x{private_key.hex()}"
        else:
            raise TypeError("Input value must be a string or bytes.")

        if not key_value.startswith("0x"):
            key_value = f"0x{key_value}"
        return f"{aip80_prefix}{key_value}"

    @staticmethod
    def parse_hex_input(
        value: str | bytes, key_type: PrivateKeyVariant, strict: bool | None = None
    ) -> bytes:
        """Parse a private key given as bytes, hex or an AIP-80 string.

        Args:
            value: The key in any accepted form.
            key_type: The expected key scheme.
            strict: ``True`` accepts AIP-80 strings only, ``False`` accepts
                plain hex silently and ``None`` accepts plain hex with a
                logged recommendation.

        Raises:
            ValueError: For an unknown scheme, malformed hex, or a non AIP-80
                string in strict mode.
            TypeError: If ``value`` is neither ``str`` nor ``bytes``.
        """
        if key_type not in PrivateKey.AIP80_PREFIXES:
            raise ValueError(f"Unknown private key type: {key_type}")
        aip80_prefix = PrivateKey.AIP80_PREFIXES[key_type]

        if isinstance(value, bytes):
            return value
        if not isinstance(value, str):
            raise TypeError("Input value must be a string or bytes.")

        if value.startswith(aip80_prefix):
            value = value[len(aip80_prefix) :]
        elif strict:
            raise ValueError(
                "Invalid HexString input. Must be AIP-80 compliant string."
            )
        elif strict is None:
            logger.warning(
                "It is recommended that private keys are AIP-80 compliant "
                "(https://github.com/aptos-foundation/AIPs/blob/main/aips/aip-80.md)."
            )

        if value[0:2] == "0x":
            value = value[2:]
        try:
            return bytes.fromhex(value)
        except ValueError as e:
            raise ValueError("Invalid HexString input.") from e


class PublicKey(Deserializable, Serializable, Protocol):
    """A verifying key, single or aggregated."""

    def to_crypto_bytes(self) -> bytes:
        """
        The bytes the authentication key is derived from.

        For a single key this is the raw key. MultiEd25519 uses its own
        concatenated layout, so each key type defines its encoding here.
        """
        ...

    def verify(self, data: bytes, signature: Signature) -> bool:
        """Return True if ``signature`` is valid for ``data``.

        Verification failures are reported as ``False``, never raised.
        """
        ...


class Signature(Deserializable, Serializable, Protocol):
    """A signature produced by a :class:`PrivateKey`."""

    ...
