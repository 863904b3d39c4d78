# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 key derivation from BIP-39 mnemonics (SLIP-0010).

Ed25519 only supports hardened derivation, so every segment of a path must
carry the ``'`` marker. Aptos accounts use the path
``m/44'/637'/{index}'/0'/0'``.
"""

import hashlib
import hmac
import re
import unittest
from typing import List, Tuple

from mnemonic import Mnemonic

APTOS_BIP44_PATH = "m/44'/637'/{index}'/0'/0'"
ED25519_CURVE_SEED = b"ed25519 seed"
HARDENED_OFFSET = 0x80000000

_HARDENED_PATH = re.compile(r"^m(/[0-9]+')+$")


def default_path(index: int = 0) -> str:
    if index < 0:
        raise ValueError(f"Derivation index must be non-negative, got {index}")
    return APTOS_BIP44_PATH.format(index=index)


def is_valid_hardened_path(path: str) -> bool:
    return _HARDENED_PATH.match(path) is not None


def normalize_mnemonic(phrase: str) -> str:
    return " ".join(word.lower() for word in phrase.split())


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytes:
    """Validate a BIP-39 phrase and stretch it into a 64-byte seed.

    Raises:
        ValueError: If the phrase fails the BIP-39 word list or checksum test.
    """
    phrase = normalize_mnemonic(phrase)
    mnemo = Mnemonic("english")
    if not mnemo.check(phrase):
        raise ValueError("Invalid mnemonic")
    return Mnemonic.to_seed(phrase, passphrase)


def master_key(seed: bytes) -> Tuple[bytes, bytes]:
    """Return ``(key, chain_code)`` for the root of the tree."""
    digest = hmac.new(ED25519_CURVE_SEED, seed, hashlib.sha512).digest()
    return digest[:32], digest[32:]


def child_key(key: bytes, chain_code: bytes, index: int) -> Tuple[bytes, bytes]:
    """Derive the hardened child ``index`` (already offset) of a node."""
    data = b"\x00" + key + index.to_bytes(4, "big")
    digest = hmac.new(chain_code, data, hashlib.sha512).digest()
    return digest[:32], digest[32:]


def parse_path(path: str) -> List[int]:
    """Split a hardened path into offset child indices.

    Raises:
        ValueError: If the path is malformed or contains a non-hardened segment.
    """
    if not is_valid_hardened_path(path):
        raise ValueError(f"Invalid derivation path {path}")
    indices = []
    for segment in path.split("/")[1:]:
        value = int(segment[:-1])
        if value >= HARDENED_OFFSET:
            raise ValueError(f"Path segment {segment} is out of range")
        indices.append(value + HARDENED_OFFSET)
    return indices


def derive_path(path: str, seed: bytes) -> Tuple[bytes, bytes]:
    key, chain_code = master_key(seed)
    for index in parse_path(path):
        key, chain_code = child_key(key, chain_code, index)
    return key, chain_code


def private_key_from_mnemonic(phrase: str, derivation_index: int = 0) -> bytes:
    """Return the 32-byte Ed25519 seed for account ``derivation_index``."""
    key, _ = derive_path(default_path(derivation_index), mnemonic_to_seed(phrase))
    return key


class Test(unittest.TestCase):
    def test_slip10_vector(self):
        seed = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
        key, chain_code = master_key(seed)
        self.assertEqual(
            key.hex(),
            "2b4be7f19ee27bbf30c667b642d5f4aa69fd169872f8fc3059c08ebae2eb19e7",
        )
        self.assertEqual(
            chain_code.hex(),
            "90046a93de5380a72b5e45010748567d5ea02bbf6522f979e05c0d8d8ca9fffb",
        )

        key, chain_code = derive_path("m/0'", seed)
        self.assertEqual(
            key.hex(),
            "68e0fe46dfb67e368c75379acec591dad19df3cde26e63b93a8e704f1dade7a3",
        )
        self.assertEqual(
            chain_code.hex(),
            "8b59aa11380b624e81507a27fedda59fea6d0b779a778918a2fd3590e16e9c69",
        )

    def test_aptos_mnemonic(self):
        phrase = "shoot island position soft burden budget tooth cruel issue economy destroy above"
        self.assertEqual(
            private_key_from_mnemonic(phrase).hex(),
            "5d996aa76b3212142792d9130796cd2e11e3c445a93118c08414df4f66bc60ec",
        )
        # Whitespace and case do not change the derived key.
        self.assertEqual(
            private_key_from_mnemonic("  " + phrase.upper().replace(" ", "   ")),
            private_key_from_mnemonic(phrase),
        )
        self.assertNotEqual(
            private_key_from_mnemonic(phrase, 1), private_key_from_mnemonic(phrase, 0)
        )

    def test_invalid_mnemonic(self):
        with self.assertRaises(ValueError):
            mnemonic_to_seed("shoot island position soft burden budget tooth cruel")

    def test_paths(self):
        self.assertEqual(default_path(3), "m/44'/637'/3'/0'/0'")
        self.assertTrue(is_valid_hardened_path("m/44'/637'/0'/0'/0'"))
        self.assertFalse(is_valid_hardened_path("m/44'/637'/0'/0/0"))
        with self.assertRaises(ValueError):
            parse_path("m/44'/637'/0'/0/0")
        with self.assertRaises(ValueError):
            parse_path("44'/637'")
        with self.assertRaises(ValueError):
            default_path(-1)


if __name__ == "__main__":
    unittest.main()
