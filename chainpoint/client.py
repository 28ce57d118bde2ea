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

import hashlib
import logging
import urllib.parse

from chainpoint.nodes import BackendError
from chainpoint.transport import NetworkError
from chainpoint.verifiers import VerifierError, make_verifier
from chainpoint.verify import VerificationDispatcher, MODE_DIRECT, MODE_NETWORK

EMPTY_RESULT = '[]'


class ValidationError(Exception):
    """A Chainpoint operation could not be completed"""


class AnchorClient:
    """Chainpoint network client

    Submits hashes, retrieves proofs, and verifies them. Requests go to the
    first node the directory discovered; nodes are discovered lazily, on the
    first request that needs one.

    Every failure reaching the caller is a ValidationError.
    """

    name = 'chainpoint'
    hash_func = 'sha256'

    def __init__(self, directory, transport, blockchain_config=(), direct_verification=False,
                 verifier_factory=make_verifier, proof_accept=None):
        self.directory = directory
        self.transport = transport
        self.proof_headers = {"Accept": proof_accept} if proof_accept else None
        self.direct_verification = direct_verification
        self.dispatcher = VerificationDispatcher(blockchain_config,
                                                 network_verify=self._verify_remote,
                                                 verifier_factory=verifier_factory)

    def hash_data(self, data):
        """Hex digest of data, using the hash function nodes expect"""
        return hashlib.new(self.hash_func, data).hexdigest()

    def get_proof(self, hash_id_node):
        """Get the proof for a single hash_id_node"""
        return self._request('/proofs/' + urllib.parse.quote(hash_id_node, safe=''),
                             headers=self.proof_headers)

    def get_proofs(self, hash_id_nodes):
        """Get the proofs for several hash_id_nodes at once"""
        hash_id_nodes = list(hash_id_nodes)
        if not hash_id_nodes:
            raise ValueError("No hash_id_nodes given")
        return self._request('/proofs', 'GET', {'hashids': ','.join(hash_id_nodes)},
                             headers=self.proof_headers)

    def write_hash(self, hashes):
        """Submit hashes for anchoring

        Returns the node's receipt, which carries the hash_id_node of each
        hash.
        """
        hashes = list(hashes)
        if not hashes:
            raise ValueError("No hashes given")
        return self._request('/hashes', 'POST', {'hashes': hashes})

    def verify_proof(self, proof, networks=None):
        """Verify a proof

        With direct verification off, returns the payload of the node's
        /verify endpoint. With it on, returns True if every selected
        blockchain in blockchain_config verifies the proof; networks defaults
        to all of them.
        """
        mode = MODE_DIRECT if self.direct_verification else MODE_NETWORK
        try:
            return self.dispatcher.verify(proof, mode, networks)
        except VerifierError as exp:
            logging.debug("Direct verification failed: %s" % exp)
            raise ValidationError(str(exp)) from exp

    def _verify_remote(self, proof):
        return self._request('/verify', 'POST', {'proofs': [proof]})

    def _request(self, path, method='GET', payload=None, headers=None):
        try:
            nodes = self.directory.ensure_discovered()
        except NetworkError as exp:
            logging.debug("Node discovery failed: %s" % exp)
            raise ValidationError('Upstream network problem.') from exp
        except BackendError as exp:
            raise ValidationError(str(exp)) from exp

        if not nodes:
            raise ValidationError('No chainpoint nodes discovered!')

        # Use a single node only
        try:
            resp = self.transport.send(path, method, payload, base_uri=nodes[0], headers=headers)
        except NetworkError as exp:
            logging.debug("Request to %s failed: %s" % (nodes[0], exp))
            raise ValidationError('Upstream network problem.') from exp

        if not 200 <= resp.status < 300:
            logging.warning("Node %s answered %s %s with HTTP %d" % (nodes[0], method, path, resp.status))
            raise ValidationError('Upstream network problem.')

        try:
            body = resp.body.decode('utf8')
        except UnicodeDecodeError as exp:
            raise ValidationError('Upstream network problem.') from exp

        return body or EMPTY_RESULT
