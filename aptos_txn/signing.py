# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Turn raw transactions and key pairs into verified signed transactions.

The authenticator order for multi-agent and fee-payer transactions always comes
from the secondary signer list recorded in the envelope. Keys are looked up by
address, so the order a caller supplies them in never leaks into the signed
bytes. Every ``sign_*`` and ``assemble_*`` helper verifies its result before
returning it.
"""

from __future__ import annotations

import logging
import unittest
from typing import Dict, List, Optional, Tuple, Union

from . import ed25519
from .account import Account, KeyPair, MultiEd25519Account
from .account_address import AccountAddress
from .authenticator import (
    AccountAuthenticator,
    Authenticator,
    Ed25519Authenticator,
    FeePayerAuthenticator,
    MultiAgentAuthenticator,
)
from .bcs import Serializer
from .errors import (
    InsufficientSignatures,
    MissingField,
    OrderMismatch,
    VerificationFailure,
)
from .transactions import (
    EntryFunction,
    FeePayerRawTransaction,
    MultiAgentRawTransaction,
    RawTransaction,
    SignedTransaction,
    TransactionArgument,
    TransactionPayload,
    ensure_distinct_signers,
)

logger = logging.getLogger(__name__)


def verify_envelope(signed_transaction: SignedTransaction) -> bool:
    """Recompute the signing message and check every signature against it."""
    return signed_transaction.verify()


def ensure_verified(signed_transaction: SignedTransaction) -> SignedTransaction:
    """
    :return: ``signed_transaction`` unchanged.
    :raises VerificationFailure: If any signature does not cover the envelope.
    """
    if not verify_envelope(signed_transaction):
        logger.warning(
            "Signed transaction from %s with sequence number %d failed verification",
            signed_transaction.transaction.sender,
            signed_transaction.transaction.sequence_number,
        )
        raise VerificationFailure(
            f"Signed transaction from {signed_transaction.transaction.sender} does not verify"
        )
    return signed_transaction


def sign_transaction(
    transaction: RawTransaction,
    keypair: KeyPair,
    indices: Optional[List[int]] = None,
) -> SignedTransaction:
    """
    Sign a single-signer transaction. ``indices`` selects the keys of a
    MultiEd25519 account and is ignored for a single key.
    """
    authenticator = _authenticate(keypair, transaction, indices)
    logger.debug(
        "Signed single signer transaction for %s with %s",
        transaction.sender,
        _scheme(authenticator),
    )
    return ensure_verified(SignedTransaction(transaction, authenticator))


def sign_multi_agent(
    transaction: Union[RawTransaction, MultiAgentRawTransaction],
    sender: KeyPair,
    secondary_keypairs: Dict[AccountAddress, KeyPair],
    secondary_signers: Optional[List[AccountAddress]] = None,
) -> SignedTransaction:
    """
    Sign a multi-agent transaction with the sender and every secondary signer.

    :param transaction: A wrapped transaction, or a raw one together with
        ``secondary_signers``.
    :param secondary_keypairs: Key pairs of the secondary signers by address.
    :param secondary_signers: The declared signer order. When ``transaction``
        is already wrapped this must match its recorded order if given.
    :raises OrderMismatch: If the keys supplied do not match the declared
        secondary signers.
    """
    wrapper = _wrap_multi_agent(transaction, secondary_signers)
    secondary_pairs = _keypairs_in_order(wrapper.secondary_signers, secondary_keypairs)

    sender_authenticator = _authenticate(sender, wrapper)
    secondary_authenticators = [
        (address, _authenticate(keypair, wrapper))
        for address, keypair in secondary_pairs
    ]
    return assemble_multi_agent(wrapper, sender_authenticator, secondary_authenticators)


def sign_fee_payer(
    transaction: Union[RawTransaction, FeePayerRawTransaction],
    sender: KeyPair,
    secondary_keypairs: Dict[AccountAddress, KeyPair],
    fee_payer: KeyPair,
    secondary_signers: Optional[List[AccountAddress]] = None,
) -> SignedTransaction:
    """
    Sign a sponsored transaction. A placeholder fee payer in the envelope is
    replaced by ``fee_payer``'s address before anything is signed.

    :raises OrderMismatch: If the keys supplied do not match the declared
        secondary signers, or the envelope names a different fee payer.
    """
    if isinstance(transaction, FeePayerRawTransaction):
        wrapper = transaction
        _check_declared_order(wrapper.secondary_signers, secondary_signers)
    else:
        wrapper = FeePayerRawTransaction(transaction, secondary_signers or [], None)

    if wrapper.has_placeholder_fee_payer():
        wrapper = wrapper.with_fee_payer(fee_payer.address())
        logger.debug("Resolved placeholder fee payer to %s", fee_payer.address())
    elif wrapper.fee_payer_address() != fee_payer.address():
        raise OrderMismatch(
            f"Transaction names fee payer {wrapper.fee_payer_address()}, "
            f"but the key supplied is for {fee_payer.address()}"
        )

    secondary_pairs = _keypairs_in_order(wrapper.secondary_signers, secondary_keypairs)

    sender_authenticator = _authenticate(sender, wrapper)
    secondary_authenticators = [
        (address, _authenticate(keypair, wrapper))
        for address, keypair in secondary_pairs
    ]
    fee_payer_authenticator = _authenticate(fee_payer, wrapper)
    return assemble_fee_payer(
        wrapper,
        sender_authenticator,
        secondary_authenticators,
        fee_payer_authenticator,
    )


def assemble_multi_agent(
    transaction: MultiAgentRawTransaction,
    sender: AccountAuthenticator,
    secondary_signers: List[Tuple[AccountAddress, AccountAuthenticator]],
) -> SignedTransaction:
    """
    Combine account authenticators gathered independently, for instance from
    co-signers on other machines, into a signed transaction.

    :raises OrderMismatch: If the authenticators are not in the envelope's
        declared signer order, or the envelope repeats a signer.
    """
    ensure_distinct_signers(transaction.inner().sender, transaction.secondary_signers)
    _check_authenticator_order(transaction.secondary_signers, secondary_signers)
    authenticator = Authenticator(MultiAgentAuthenticator(sender, secondary_signers))
    logger.debug(
        "Assembled multi-agent transaction for %s with %d secondary signers",
        transaction.inner().sender,
        len(secondary_signers),
    )
    return ensure_verified(SignedTransaction(transaction.inner(), authenticator))


def assemble_fee_payer(
    transaction: FeePayerRawTransaction,
    sender: AccountAuthenticator,
    secondary_signers: List[Tuple[AccountAddress, AccountAuthenticator]],
    fee_payer: AccountAuthenticator,
) -> SignedTransaction:
    """
    :raises MissingField: If the envelope still carries the placeholder fee payer.
    :raises OrderMismatch: If the authenticators are not in the envelope's
        declared signer order, or the envelope repeats a signer.
    """
    if transaction.has_placeholder_fee_payer():
        raise MissingField(
            "fee_payer", "The fee payer must be resolved before assembling"
        )
    ensure_distinct_signers(
        transaction.inner().sender,
        transaction.secondary_signers,
        transaction.fee_payer_address(),
    )
    _check_authenticator_order(transaction.secondary_signers, secondary_signers)

    authenticator = Authenticator(
        FeePayerAuthenticator(
            sender,
            secondary_signers,
            (transaction.fee_payer_address(), fee_payer),
        )
    )
    logger.debug(
        "Assembled fee payer transaction for %s paid by %s",
        transaction.inner().sender,
        transaction.fee_payer_address(),
    )
    return ensure_verified(SignedTransaction(transaction.inner(), authenticator))


def _authenticate(
    keypair: KeyPair, transaction, indices: Optional[List[int]] = None
) -> AccountAuthenticator:
    if isinstance(keypair, MultiEd25519Account):
        return keypair.sign_transaction(transaction, indices)
    return keypair.sign_transaction(transaction)


def _scheme(authenticator: AccountAuthenticator) -> str:
    if authenticator.variant == AccountAuthenticator.ED25519:
        return "ed25519"
    return "multi_ed25519"


def _wrap_multi_agent(
    transaction: Union[RawTransaction, MultiAgentRawTransaction],
    secondary_signers: Optional[List[AccountAddress]],
) -> MultiAgentRawTransaction:
    if isinstance(transaction, MultiAgentRawTransaction):
        _check_declared_order(transaction.secondary_signers, secondary_signers)
        return transaction
    if not secondary_signers:
        raise MissingField(
            "secondary_signers",
            "A raw transaction needs its secondary signers declared explicitly",
        )
    return MultiAgentRawTransaction(transaction, secondary_signers)


def _check_declared_order(
    recorded: List[AccountAddress], declared: Optional[List[AccountAddress]]
):
    if declared is not None and list(declared) != recorded:
        raise OrderMismatch(
            f"Declared secondary signers {declared} differ from the recorded {recorded}"
        )


def _keypairs_in_order(
    recorded: List[AccountAddress], keypairs: Dict[AccountAddress, KeyPair]
) -> List[Tuple[AccountAddress, KeyPair]]:
    unexpected = [address for address in keypairs if address not in recorded]
    if unexpected:
        raise OrderMismatch(f"Keys supplied for undeclared signers {unexpected}")

    missing = [address for address in recorded if address not in keypairs]
    if missing:
        raise OrderMismatch(f"No keys supplied for declared signers {missing}")

    for address in recorded:
        if keypairs[address].address() != address:
            raise OrderMismatch(
                f"Key supplied for {address} belongs to {keypairs[address].address()}"
            )

    return [(address, keypairs[address]) for address in recorded]


def _check_authenticator_order(
    recorded: List[AccountAddress],
    secondary_signers: List[Tuple[AccountAddress, AccountAuthenticator]],
):
    supplied = [address for address, _ in secondary_signers]
    if supplied != recorded:
        raise OrderMismatch(
            f"Authenticators are ordered {supplied}, the transaction declares {recorded}"
        )


class Test(unittest.TestCase):
    def setUp(self):
        self.alice = Account.generate()
        self.bob = Account.generate()
        self.carol = Account.generate()
        self.sponsor = Account.generate()

    def raw_transaction(self, sender: AccountAddress) -> RawTransaction:
        payload = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [],
            [
                TransactionArgument(self.bob.address(), Serializer.struct),
                TransactionArgument(100, Serializer.u64),
            ],
        )
        return RawTransaction(
            sender, 5, TransactionPayload(payload), 2000, 100, 1700000000, 1
        )

    def test_single_signer_scenario(self):
        raw_transaction = self.raw_transaction(AccountAddress.from_str("0x1"))
        signed = sign_transaction(raw_transaction, Account.generate())
        self.assertTrue(verify_envelope(signed))

        decoded = RawTransaction.from_bytes(raw_transaction.to_bytes())
        self.assertEqual(decoded.sender, raw_transaction.sender)
        self.assertEqual(decoded.sequence_number, 5)
        self.assertEqual(decoded.payload, raw_transaction.payload)
        self.assertEqual(decoded.max_gas_amount, 2000)
        self.assertEqual(decoded.gas_unit_price, 100)
        self.assertEqual(decoded.expiration_timestamps_secs, 1700000000)
        self.assertEqual(decoded.chain_id, 1)
        self.assertEqual(decoded, raw_transaction)

    def test_signing_is_repeatable(self):
        raw_transaction = self.raw_transaction(self.alice.address())
        first = sign_transaction(raw_transaction, self.alice)
        second = sign_transaction(raw_transaction, self.alice)
        self.assertEqual(raw_transaction.to_bytes(), raw_transaction.to_bytes())
        self.assertTrue(verify_envelope(first))
        self.assertTrue(verify_envelope(second))

    def test_multi_ed25519_scenario(self):
        private_keys = [ed25519.PrivateKey.random() for _ in range(3)]
        account = MultiEd25519Account.from_private_keys(private_keys, 2)
        raw_transaction = self.raw_transaction(account.address())

        signed = sign_transaction(raw_transaction, account, [0, 2])
        self.assertEqual(signed.authenticator.variant, Authenticator.MULTI_ED25519)
        signature = signed.authenticator.authenticator.signature
        self.assertEqual(signature.bitmap(), b"\xa0\x00\x00\x00")
        self.assertTrue(verify_envelope(signed))
        self.assertTrue(
            verify_envelope(SignedTransaction.from_bytes(signed.bytes()))
        )

        with self.assertRaises(InsufficientSignatures):
            sign_transaction(raw_transaction, account, [0])

    def test_multi_agent(self):
        raw_transaction = self.raw_transaction(self.alice.address())
        signed = sign_multi_agent(
            raw_transaction,
            self.alice,
            {self.carol.address(): self.carol, self.bob.address(): self.bob},
            [self.bob.address(), self.carol.address()],
        )
        self.assertTrue(verify_envelope(signed))
        self.assertEqual(
            signed.authenticator.authenticator.secondary_addresses(),
            [self.bob.address(), self.carol.address()],
        )

    def test_multi_agent_key_mismatch(self):
        wrapper = MultiAgentRawTransaction(
            self.raw_transaction(self.alice.address()), [self.bob.address()]
        )
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(
                wrapper,
                self.alice,
                {self.bob.address(): self.bob, self.carol.address(): self.carol},
            )
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(wrapper, self.alice, {})
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(
                wrapper,
                self.alice,
                {self.bob.address(): self.bob},
                [self.carol.address()],
            )
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(wrapper, self.alice, {self.bob.address(): self.carol})
        with self.assertRaises(MissingField):
            sign_multi_agent(
                self.raw_transaction(self.alice.address()), self.alice, {}
            )

    def test_assemble_multi_agent_order(self):
        wrapper = MultiAgentRawTransaction(
            self.raw_transaction(self.alice.address()),
            [self.bob.address(), self.carol.address()],
        )
        sender = self.alice.sign_transaction(wrapper)
        bob = (self.bob.address(), self.bob.sign_transaction(wrapper))
        carol = (self.carol.address(), self.carol.sign_transaction(wrapper))

        self.assertTrue(verify_envelope(assemble_multi_agent(wrapper, sender, [bob, carol])))
        with self.assertRaises(OrderMismatch):
            assemble_multi_agent(wrapper, sender, [carol, bob])

    def test_domain_separation(self):
        raw_transaction = self.raw_transaction(self.alice.address())

        multi_agent = sign_multi_agent(
            raw_transaction,
            self.alice,
            {self.bob.address(): self.bob},
            [self.bob.address()],
        )
        sender_authenticator = multi_agent.authenticator.authenticator.sender
        self.assertFalse(
            verify_envelope(SignedTransaction(raw_transaction, sender_authenticator))
        )

        single = sign_transaction(raw_transaction, self.alice)
        single_authenticator = AccountAuthenticator(single.authenticator.authenticator)
        reused = SignedTransaction(
            raw_transaction,
            Authenticator(
                MultiAgentAuthenticator(
                    single_authenticator,
                    [
                        (
                            self.bob.address(),
                            multi_agent.authenticator.authenticator.secondary_signers[0][1],
                        )
                    ],
                )
            ),
        )
        self.assertFalse(verify_envelope(reused))

    def test_fee_payer_placeholder_resolved(self):
        wrapper = FeePayerRawTransaction(
            self.raw_transaction(self.alice.address()), [], None
        )
        signed = sign_fee_payer(wrapper, self.alice, {}, self.sponsor)
        self.assertTrue(verify_envelope(signed))
        self.assertEqual(
            signed.authenticator.authenticator.fee_payer_address(),
            self.sponsor.address(),
        )
        self.assertEqual(
            SignedTransaction.from_bytes(signed.bytes()).signed_message().keyed(),
            wrapper.with_fee_payer(self.sponsor.address()).keyed(),
        )

    def test_fee_payer_with_secondary_signers(self):
        signed = sign_fee_payer(
            self.raw_transaction(self.alice.address()),
            self.alice,
            {self.bob.address(): self.bob},
            self.sponsor,
            [self.bob.address()],
        )
        self.assertTrue(verify_envelope(signed))

    def test_fee_payer_mismatch(self):
        wrapper = FeePayerRawTransaction(
            self.raw_transaction(self.alice.address()), [], self.bob.address()
        )
        with self.assertRaises(OrderMismatch):
            sign_fee_payer(wrapper, self.alice, {}, self.sponsor)

        placeholder = FeePayerRawTransaction(wrapper.inner(), [], None)
        with self.assertRaises(MissingField):
            assemble_fee_payer(
                placeholder,
                self.alice.sign_transaction(placeholder),
                [],
                self.sponsor.sign_transaction(placeholder),
            )

    def test_repeated_signers_rejected(self):
        raw_transaction = self.raw_transaction(self.alice.address())
        bob = self.bob.address()
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(raw_transaction, self.alice, {bob: self.bob}, [bob, bob])
        with self.assertRaises(OrderMismatch):
            sign_multi_agent(
                raw_transaction,
                self.alice,
                {self.alice.address(): self.alice},
                [self.alice.address()],
            )
        with self.assertRaises(OrderMismatch):
            sign_fee_payer(raw_transaction, self.alice, {}, self.alice)
        with self.assertRaises(OrderMismatch):
            sign_fee_payer(
                FeePayerRawTransaction(raw_transaction, [], self.alice.address()),
                self.alice,
                {},
                self.alice,
            )

    def test_ensure_verified(self):
        raw_transaction = self.raw_transaction(self.alice.address())
        other = self.raw_transaction(self.bob.address())
        forged = SignedTransaction(raw_transaction, self.alice.sign_transaction(other))
        self.assertFalse(verify_envelope(forged))
        with self.assertRaises(VerificationFailure):
            ensure_verified(forged)

        tampered_signature = ed25519.Signature(bytes(64))
        tampered = SignedTransaction(
            raw_transaction,
            AccountAuthenticator(
                Ed25519Authenticator(self.alice.public_key(), tampered_signature)
            ),
        )
        with self.assertRaises(VerificationFailure):
            ensure_verified(tampered)


if __name__ == "__main__":
    unittest.main()
