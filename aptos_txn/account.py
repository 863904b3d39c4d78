# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Key pairs able to sign for an on-chain account.

:class:`Account` holds a single Ed25519 key. :class:`MultiEd25519Account`
holds the full ordered key set of a threshold account plus whichever private
keys this holder controls; one party rarely holds them all, so signing takes
an explicit list of indices and fails early when they cannot reach the
threshold.
"""

from __future__ import annotations

import unittest
from typing import Dict, List, Optional, Union

from . import ed25519, hd_key
from .account_address import AccountAddress
from .authenticator import (
    AccountAuthenticator,
    Ed25519Authenticator,
    MultiEd25519Authenticator,
)
from .errors import InsufficientSignatures, InvalidKeyConfiguration
from .transactions import RawTransactionInternal


class Account:
    account_address: AccountAddress
    private_key: ed25519.PrivateKey

    def __init__(
        self, account_address: AccountAddress, private_key: ed25519.PrivateKey
    ):
        self.account_address = account_address
        self.private_key = private_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return (
            self.account_address == other.account_address
            and self.private_key == other.private_key
        )

    def __repr__(self) -> str:
        return f"Account({self.account_address})"

    @staticmethod
    def _from_private_key(private_key: ed25519.PrivateKey) -> Account:
        account_address = AccountAddress.from_key(private_key.public_key())
        return Account(account_address, private_key)

    @staticmethod
    def generate() -> Account:
        return Account._from_private_key(ed25519.PrivateKey.random())

    @staticmethod
    def from_seed(seed: bytes) -> Account:
        """Deterministically create an account from a 32-byte seed."""
        return Account._from_private_key(ed25519.PrivateKey.from_seed(seed))

    @staticmethod
    def from_mnemonic(phrase: str, derivation_index: int = 0) -> Account:
        """Derive the account at ``m/44'/637'/{derivation_index}'/0'/0'``.

        Raises:
            ValueError: If the phrase is not a valid BIP-39 mnemonic.
        """
        seed = hd_key.private_key_from_mnemonic(phrase, derivation_index)
        return Account.from_seed(seed)

    @staticmethod
    def load_key(key: str) -> Account:
        """Load from a hex or AIP-80 private key string."""
        return Account._from_private_key(ed25519.PrivateKey.from_str(key))

    def address(self) -> AccountAddress:
        """Returns the address associated with the given account"""

        return self.account_address

    def derive_address(self) -> AccountAddress:
        """Recompute the address from the public key.

        Equal to :meth:`address` unless the account's key has been rotated.
        """
        return AccountAddress.from_key(self.public_key())

    def auth_key(self) -> str:
        """Returns the auth_key for the associated account"""

        return str(self.derive_address())

    def sign(self, data: bytes) -> ed25519.Signature:
        return self.private_key.sign(data)

    def verify(self, data: bytes, signature: ed25519.Signature) -> bool:
        return self.public_key().verify(data, signature)

    def authenticate(self, data: bytes) -> AccountAuthenticator:
        return AccountAuthenticator(
            Ed25519Authenticator(self.public_key(), self.sign(data))
        )

    def sign_transaction(
        self, transaction: RawTransactionInternal
    ) -> AccountAuthenticator:
        return self.authenticate(transaction.keyed())

    def public_key(self) -> ed25519.PublicKey:
        """Returns the public key for the associated account"""

        return self.private_key.public_key()


class MultiEd25519Account:
    """A threshold account and the subset of its private keys held locally.

    Args:
        public_key: The full, ordered MultiEd25519 key set.
        private_keys: Held private keys by their index in ``public_key.keys``.
        account_address: Defaults to the address derived from ``public_key``.

    Raises:
        InvalidKeyConfiguration: If a held key does not match the public key
            at its index.
    """

    multi_public_key: ed25519.MultiPublicKey
    private_keys: Dict[int, ed25519.PrivateKey]
    account_address: AccountAddress

    def __init__(
        self,
        public_key: ed25519.MultiPublicKey,
        private_keys: Dict[int, ed25519.PrivateKey],
        account_address: Optional[AccountAddress] = None,
    ):
        for index, private_key in private_keys.items():
            if not 0 <= index < len(public_key.keys):
                raise InvalidKeyConfiguration(
                    f"Key index {index} is outside of {public_key}"
                )
            if private_key.public_key() != public_key.keys[index]:
                raise InvalidKeyConfiguration(
                    f"Private key for index {index} does not match the public key"
                )

        self.multi_public_key = public_key
        self.private_keys = dict(private_keys)
        self.account_address = account_address or AccountAddress.from_key(public_key)

    def __repr__(self) -> str:
        return f"MultiEd25519Account({self.account_address}, {self.multi_public_key})"

    @staticmethod
    def from_private_keys(
        private_keys: List[ed25519.PrivateKey], threshold: int
    ) -> MultiEd25519Account:
        """Build an account whose holder controls every key."""
        public_key = ed25519.MultiPublicKey(
            [key.public_key() for key in private_keys], threshold
        )
        return MultiEd25519Account(public_key, dict(enumerate(private_keys)))

    @property
    def threshold(self) -> int:
        return self.multi_public_key.threshold

    def address(self) -> AccountAddress:
        return self.account_address

    def derive_address(self) -> AccountAddress:
        return AccountAddress.from_key(self.multi_public_key)

    def auth_key(self) -> str:
        return str(self.derive_address())

    def public_key(self) -> ed25519.MultiPublicKey:
        return self.multi_public_key

    def sign(
        self, data: bytes, indices: Optional[List[int]] = None
    ) -> ed25519.MultiSignature:
        """Sign with the keys at ``indices``, every held key by default.

        Raises:
            InsufficientSignatures: If fewer than ``threshold`` keys would sign.
            InvalidKeyConfiguration: If an index names a key that is not held.
        """
        if indices is None:
            indices = sorted(self.private_keys)
        indices = sorted(set(indices))

        if len(indices) < self.threshold:
            raise InsufficientSignatures(self.threshold, len(indices))
        for index in indices:
            if index not in self.private_keys:
                raise InvalidKeyConfiguration(f"No private key held for index {index}")

        return ed25519.MultiSignature(
            [(index, self.private_keys[index].sign(data)) for index in indices]
        )

    def verify(self, data: bytes, signature: ed25519.MultiSignature) -> bool:
        return self.multi_public_key.verify(data, signature)

    def authenticate(
        self, data: bytes, indices: Optional[List[int]] = None
    ) -> AccountAuthenticator:
        return AccountAuthenticator(
            MultiEd25519Authenticator(self.multi_public_key, self.sign(data, indices))
        )

    def sign_transaction(
        self, transaction: RawTransactionInternal, indices: Optional[List[int]] = None
    ) -> AccountAuthenticator:
        return self.authenticate(transaction.keyed(), indices)


KeyPair = Union[Account, MultiEd25519Account]


class Test(unittest.TestCase):
    def test_key(self):
        message = b"test message"
        account = Account.generate()
        signature = account.sign(message)
        self.assertTrue(account.public_key().verify(message, signature))
        self.assertTrue(account.verify(message, signature))
        self.assertEqual(str(account.address()), account.auth_key())

    def test_load_key(self):
        account = Account.load_key(
            "ed25519-priv-0x9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f"
        )
        self.assertEqual(
            str(account.address()),
            "0x7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d6",
        )
        self.assertEqual(account.address(), account.derive_address())

    def test_from_seed_is_deterministic(self):
        seed = bytes(range(32))
        self.assertEqual(Account.from_seed(seed), Account.from_seed(seed))
        with self.assertRaises(ValueError):
            Account.from_seed(b"short")

    def test_from_mnemonic(self):
        phrase = "shoot island position soft burden budget tooth cruel issue economy destroy above"
        account = Account.from_mnemonic(phrase)
        self.assertEqual(
            str(account.address()),
            "0x07968dab936c1bad187c60ce4082f307d030d780e91e694ae03aef16aba73f30",
        )
        self.assertNotEqual(Account.from_mnemonic(phrase, 1).address(), account.address())
        with self.assertRaises(ValueError):
            Account.from_mnemonic("not a valid mnemonic phrase")

    def test_multi_ed25519_signing(self):
        private_keys = [ed25519.PrivateKey.random() for _ in range(3)]
        account = MultiEd25519Account.from_private_keys(private_keys, 2)

        signature = account.sign(b"data", [2, 0])
        self.assertEqual([index for index, _ in signature.signatures], [0, 2])
        self.assertTrue(account.verify(b"data", signature))
        self.assertEqual(account.address(), account.derive_address())

        authenticator = account.authenticate(b"data", [0, 1])
        self.assertTrue(authenticator.verify(b"data"))
        self.assertEqual(authenticator.address(), account.address())

    def test_multi_ed25519_insufficient(self):
        private_keys = [ed25519.PrivateKey.random() for _ in range(3)]
        public_key = ed25519.MultiPublicKey([key.public_key() for key in private_keys], 2)
        account = MultiEd25519Account(public_key, {1: private_keys[1]})

        with self.assertRaises(InsufficientSignatures) as context:
            account.sign(b"data")
        self.assertEqual(context.exception.required, 2)
        self.assertEqual(context.exception.provided, 1)

        with self.assertRaises(InvalidKeyConfiguration):
            account.sign(b"data", [0, 1])

    def test_multi_ed25519_mismatched_key(self):
        private_keys = [ed25519.PrivateKey.random() for _ in range(2)]
        public_key = ed25519.MultiPublicKey([key.public_key() for key in private_keys], 1)
        with self.assertRaises(InvalidKeyConfiguration):
            MultiEd25519Account(public_key, {0: private_keys[1]})
        with self.assertRaises(InvalidKeyConfiguration):
            MultiEd25519Account(public_key, {5: private_keys[0]})


if __name__ == "__main__":
    unittest.main()
