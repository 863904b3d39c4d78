# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Transfer APT from one account to another.

With ``APTOS_PRIVATE_KEY`` set, the transfer is built from the node's chain id
and the sender's sequence number, signed and submitted. Without it a fresh
account signs a transaction for chain 4 offline and the signed bytes are
printed instead.

    python -m examples.transfer_coin
"""

import asyncio
import logging

from aptos_txn.account import Account
from aptos_txn.account_address import AccountAddress
from aptos_txn.async_client import RestClient
from aptos_txn.bcs import Serializer
from aptos_txn.config import ClientConfig
from aptos_txn.signing import sign_transaction
from aptos_txn.transaction_builder import TransactionBuilder
from aptos_txn.transactions import (
    EntryFunction,
    TransactionArgument,
    TransactionPayload,
)

from .common import NODE_URL, PRIVATE_KEY


def transfer_payload(recipient: AccountAddress, amount: int) -> TransactionPayload:
    return TransactionPayload(
        EntryFunction.natural(
            "0x1::aptos_account",
            "transfer",
            [],
            [
                TransactionArgument(recipient, Serializer.struct),
                TransactionArgument(amount, Serializer.u64),
            ],
        )
    )


async def main():
    config = ClientConfig()
    bob = Account.generate()

    if PRIVATE_KEY is None:
        alice = Account.generate()
        raw_transaction = (
            TransactionBuilder.from_config(config)
            .sender(alice.address())
            .sequence_number(0)
            .payload(transfer_payload(bob.address(), 1_000))
            .chain_id(4)
            .build()
        )
        signed_transaction = sign_transaction(raw_transaction, alice)
        print("\n=== Offline transaction ===")
        print(f"Alice: {alice.address()}")
        print(f"Bob: {bob.address()}")
        print(f"Hash: {signed_transaction.hash()}")
        print(f"Bytes: 0x{signed_transaction.bytes().hex()}")
        return

    alice = Account.load_key(PRIVATE_KEY)
    rest_client = RestClient(NODE_URL, config)
    try:
        raw_transaction = await rest_client.create_bcs_transaction(
            alice, transfer_payload(bob.address(), 1_000)
        )
        signed_transaction = sign_transaction(raw_transaction, alice)
        txn_hash = await rest_client.submit_bcs_transaction(signed_transaction)
        await rest_client.wait_for_transaction(txn_hash)
        print(f"Transferred 1000 octas to {bob.address()} in {txn_hash}")
    finally:
        await rest_client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
