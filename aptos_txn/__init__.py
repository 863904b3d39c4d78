# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
aptos-txn - build, serialize and sign Aptos transactions.

The package is organised bottom-up:

- **bcs**: Binary Canonical Serialization, the wire format for everything below
- **type_tag**: Move type tags used as generic arguments of payloads
- **ed25519**, **asymmetric_crypto**, **hd_key**: keys, signatures and
  BIP-44 derivation from mnemonics
- **account_address**, **account**: addresses and the key pairs that own them
- **transactions**: raw, multi-agent and fee-payer transactions and their payloads
- **transaction_builder**: a fluent builder that refuses to default any field
- **authenticator**, **signing**: authenticators and the helpers that produce
  verified signed transactions
- **config**: client configuration shared by the builder and the REST client
- **async_client**: a small httpx based adapter to submit signed transactions

Quick Start::

    import asyncio
    from aptos_txn.account import Account
    from aptos_txn.async_client import RestClient
    from aptos_txn.signing import sign_transaction

    async def main():
        client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
        alice = Account.generate()
        raw_transaction = await client.create_bcs_transaction(alice, payload)
        txn_hash = await client.submit_bcs_transaction(
            sign_transaction(raw_transaction, alice)
        )
        await client.close()

    asyncio.run(main())
"""
