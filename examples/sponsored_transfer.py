# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A sponsored transfer signed by two parties who never share keys.

Alice builds the transaction with a placeholder fee payer, the sponsor fills
in its address, both sign the same envelope independently, and the
authenticators are assembled into one signed transaction.
"""

import asyncio

from aptos_txn.account import Account
from aptos_txn.config import ClientConfig
from aptos_txn.signing import assemble_fee_payer, verify_envelope
from aptos_txn.transaction_builder import TransactionBuilder

from .transfer_coin import transfer_payload


async def main():
    alice = Account.generate()
    bob = Account.generate()
    sponsor = Account.generate()

    unsponsored = (
        TransactionBuilder.from_config(ClientConfig())
        .sender(alice.address())
        .sequence_number(0)
        .payload(transfer_payload(bob.address(), 1_000))
        .chain_id(4)
        .build_fee_payer()
    )
    print(f"Placeholder fee payer: {unsponsored.fee_payer_address()}")

    envelope = unsponsored.with_fee_payer(sponsor.address())
    alice_authenticator = alice.sign_transaction(envelope)
    sponsor_authenticator = sponsor.sign_transaction(envelope)

    signed_transaction = assemble_fee_payer(
        envelope, alice_authenticator, [], sponsor_authenticator
    )
    print(f"Fee payer: {envelope.fee_payer_address()}")
    print(f"Verified: {verify_envelope(signed_transaction)}")
    print(f"Hash: {signed_transaction.hash()}")


if __name__ == "__main__":
    asyncio.run(main())
