# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Sign for a 2-of-3 MultiEd25519 account.

Alice, Bob and Chad each hold one key. Alice and Chad sign, which sets bits 0
and 2 of the signature bitmap. Bob alone cannot reach the threshold.
"""

import asyncio

from aptos_txn.account import MultiEd25519Account
from aptos_txn.account_address import AccountAddress
from aptos_txn.config import ClientConfig
from aptos_txn.ed25519 import MultiPublicKey, PrivateKey
from aptos_txn.errors import InsufficientSignatures
from aptos_txn.signing import sign_transaction, verify_envelope
from aptos_txn.transaction_builder import TransactionBuilder

from .transfer_coin import transfer_payload


async def main():
    alice, bob, chad = [PrivateKey.random() for _ in range(3)]
    multisig_public_key = MultiPublicKey(
        [alice.public_key(), bob.public_key(), chad.public_key()], 2
    )

    # Each holder only sees their own key.
    alice_and_chad = MultiEd25519Account(multisig_public_key, {0: alice, 2: chad})
    bob_only = MultiEd25519Account(multisig_public_key, {1: bob})

    print("\n=== Multisig account ===")
    print(f"Address: {alice_and_chad.address()}")
    print(f"Threshold: {alice_and_chad.threshold} of {len(multisig_public_key.keys)}")

    raw_transaction = (
        TransactionBuilder.from_config(ClientConfig())
        .sender(alice_and_chad.address())
        .sequence_number(0)
        .payload(transfer_payload(AccountAddress.from_str("0x1"), 100))
        .chain_id(4)
        .build()
    )

    signed_transaction = sign_transaction(raw_transaction, alice_and_chad)
    signature = signed_transaction.authenticator.authenticator.signature
    print(f"Bitmap: 0x{signature.bitmap().hex()}")
    print(f"Verified: {verify_envelope(signed_transaction)}")

    try:
        sign_transaction(raw_transaction, bob_only)
    except InsufficientSignatures as e:
        print(f"Bob alone: {e}")


if __name__ == "__main__":
    asyncio.run(main())
