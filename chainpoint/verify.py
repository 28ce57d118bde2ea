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

"""Routing of proof verification"""

import logging

from chainpoint.verifiers import make_verifier

MODE_NETWORK = 'network'
MODE_DIRECT = 'direct'


class VerificationDispatcher:
    """Verify through the Chainpoint network, or directly against blockchains

    In network mode the proof is handed to network_verify, normally the
    client's call to a node's /verify endpoint, and its payload returned as
    is.

    In direct mode every configured blockchain that was asked for gets its own
    verifier, and the proof only verifies if all of them say so.
    """

    def __init__(self, blockchain_config=(), network_verify=None, verifier_factory=make_verifier):
        self.blockchain_config = [dict(config) for config in blockchain_config]
        for config in self.blockchain_config:
            if not config.get('name'):
                raise ValueError("blockchain_config entry without a name: %r" % config)

        self.network_verify = network_verify
        self.verifier_factory = verifier_factory
        self.verifiers = {}

    def verify(self, proof, mode=MODE_NETWORK, networks=None):
        if mode == MODE_NETWORK:
            if self.network_verify is None:
                raise ValueError("Network verification not available")
            return self.network_verify(proof)

        elif mode == MODE_DIRECT:
            return self.verify_direct(proof, networks)

        else:
            raise ValueError("Unknown verification mode %r" % mode)

    def verifier_for(self, config):
        name = config['name'].lower()
        try:
            return self.verifiers[name]
        except KeyError:
            verifier = self.verifier_factory(config)
            self.verifiers[name] = verifier
            return verifier

    def verify_direct(self, proof, networks=None):
        """Ask every selected blockchain; True only if all of them agree

        networks defaults to every configured blockchain.
        """
        if networks is None:
            wanted = {config['name'].lower() for config in self.blockchain_config}
        else:
            wanted = {name.lower() for name in networks}

        results = {}
        for config in self.blockchain_config:
            name = config['name'].lower()
            if name not in wanted:
                continue

            results[name] = bool(self.verifier_for(config).verify_proof(proof))
            logging.info("%s: %s" % (name, "verified" if results[name] else "NOT verified"))

        if not results:
            logging.warning("No configured blockchain matches %r; nothing was consulted" % sorted(wanted))

        return all(results.values())
