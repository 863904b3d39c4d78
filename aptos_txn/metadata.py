# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Client identification for requests sent to Aptos nodes.

Every request from :class:`~aptos_txn.async_client.RestClient` carries an
``x-aptos-client`` header naming this package and its installed version, e.g.
``aptos-txn-python/0.1.0``.
"""

import importlib.metadata as metadata

PACKAGE_NAME = "aptos-txn"


class Metadata:
    APTOS_HEADER = "x-aptos-client"

    @staticmethod
    def get_aptos_header_val():
        """
        :return: ``aptos-txn-python/{version}`` for the installed distribution.
        :raises PackageNotFoundError: If the package is not installed.
        """
        version = metadata.version(PACKAGE_NAME)
        return f"aptos-txn-python/{version}"
