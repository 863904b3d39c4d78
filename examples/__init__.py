"""
Example scripts for aptos-txn.

- transfer_coin.py: build, sign and submit a single signer coin transfer
- multisig.py: sign for a 2-of-3 MultiEd25519 account
- sponsored_transfer.py: gather sender and fee payer signatures separately
  and assemble them into one transaction

Run any of them as a module, e.g. ``python -m examples.transfer_coin``.
"""
