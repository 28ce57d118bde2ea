# Copyright (C) 2018 The Chainpoint Client developers
#
# This file is part of the Chainpoint Client.
#
# It is subject to the license terms in the LICENSE file found in the top-level
# directory of this distribution.
#
# No part of the Chainpoint Client, including this file, may be copied,
# modified, propagated, or distributed except according to the terms contained
# in the LICENSE file.

import http.client
import logging

import bitcoin
import bitcoin.rpc

from bitcoin.core import b2lx

from chainpoint.verifiers import Verifier, VerifierError, VerificationError, register_verifier


@register_verifier
class BitcoinVerifier(Verifier):
    """Verifies btc anchors against a Bitcoin Core node

    A btc anchor commits to the merkle root of the block at height anchor_id.
    We ask our own node for that block's header and compare.

    Config keys: network (mainnet, testnet or regtest), rpc_url, btc_conf_file.
    With neither rpc_url nor btc_conf_file the local bitcoin.conf is used.
    """

    name = 'bitcoin'
    anchor_types = ('btc', 'tbtc')

    def __init__(self, config, proxy=None):
        super().__init__(config)
        self._proxy = proxy

    @property
    def proxy(self):
        if self._proxy is None:
            network = self.config.get('network') or 'mainnet'
            try:
                bitcoin.SelectParams(network)
            except ValueError as exp:
                raise VerifierError("Unknown Bitcoin network %r" % network) from exp

            try:
                self._proxy = bitcoin.rpc.Proxy(service_url=self.config.get('rpc_url') or None,
                                                btc_conf_file=self.config.get('btc_conf_file') or None)
            except Exception as exp:
                raise VerifierError("Could not connect to Bitcoin node: %s" % exp) from exp

        return self._proxy

    def verify_anchor(self, anchor):
        try:
            height = int(anchor.anchor_id)
        except (TypeError, ValueError):
            raise VerificationError("Bad block height %r" % (anchor.anchor_id,))

        try:
            blockhash = self.proxy.getblockhash(height)
            block_header = self.proxy.getblockheader(blockhash)
        except IndexError:
            raise VerificationError("Bitcoin block height %d not found" % height)
        except (OSError, http.client.HTTPException, bitcoin.rpc.JSONRPCError) as exp:
            raise VerifierError("Could not query Bitcoin node: %s" % exp) from exp

        logging.debug("Anchor block hash: %s" % b2lx(blockhash))

        merkleroot = b2lx(block_header.hashMerkleRoot)
        if merkleroot != anchor.expected_value.lower():
            raise VerificationError("Block %d merkle root is %s, proof expects %s" %
                                    (height, merkleroot, anchor.expected_value))
