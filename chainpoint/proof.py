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

"""Chainpoint v3 JSON proofs

Only as much of the format as direct verification needs: evaluating the
operations in a proof's branches to find the value each anchor commits to.
"""

import binascii
import hashlib
import json
import re

from collections import namedtuple

Anchor = namedtuple('Anchor', ['type', 'anchor_id', 'uris', 'expected_value'])

HEX_RE = re.compile(r'\A([0-9a-fA-F]{2})+\Z')

HASH_OPS = {'sha-224': 'sha224',
            'sha-256': 'sha256',
            'sha-384': 'sha384',
            'sha-512': 'sha512',
            'sha3-224': 'sha3_224',
            'sha3-256': 'sha3_256',
            'sha3-384': 'sha3_384',
            'sha3-512': 'sha3_512'}

# Bitcoin displays merkle roots byte-reversed
REVERSED_ANCHOR_TYPES = ('btc', 'tbtc')

# Nesting deeper than this is not something a node produces
MAX_BRANCH_DEPTH = 32


class ProofError(ValueError):
    """Malformed proof"""


def op_value(value):
    """Bytes of an l/r operand: hex strings are decoded, anything else is UTF-8"""
    if not isinstance(value, str):
        raise ProofError("Operand must be a string; got %r" % (value,))

    if HEX_RE.match(value):
        return binascii.unhexlify(value)
    return value.encode('utf8')


def apply_hash_op(name, msg):
    if name == 'sha-256-x2':
        return hashlib.sha256(hashlib.sha256(msg).digest()).digest()

    try:
        return hashlib.new(HASH_OPS[name], msg).digest()
    except (KeyError, TypeError):
        raise ProofError("Unknown hash operation %r" % name)


class Proof:
    """A parsed Chainpoint proof"""

    def __init__(self, hash, branches=(), hash_id_node=None):
        if not isinstance(hash, str) or not HEX_RE.match(hash):
            raise ProofError("Proof hash must be hex; got %r" % (hash,))
        self.hash = hash
        self.branches = list(branches)
        self.hash_id_node = hash_id_node

    @classmethod
    def from_json(cls, proof):
        """Parse a proof from a JSON string, bytes, or an already decoded dict"""
        if isinstance(proof, bytes):
            try:
                proof = proof.decode('utf8')
            except UnicodeDecodeError as exp:
                raise ProofError("Proof is not UTF-8: %s" % exp)

        if isinstance(proof, str):
            try:
                proof = json.loads(proof)
            except ValueError as exp:
                # Base64 encoded binary proofs end up here.
                raise ProofError("Proof is not JSON: %s" % exp)

        if not isinstance(proof, dict):
            raise ProofError("Proof must be a JSON object")

        try:
            proof_hash = proof['hash']
        except KeyError:
            raise ProofError("Proof has no hash")

        branches = proof.get('branches', [])
        if not isinstance(branches, list):
            raise ProofError("Proof branches must be a list")

        return cls(proof_hash, branches, hash_id_node=proof.get('hash_id_node'))

    def anchors(self):
        """Return every Anchor in the proof, in order of appearance"""
        anchors = []
        try:
            self._walk(binascii.unhexlify(self.hash), self.branches, anchors, 0)
        except (TypeError, binascii.Error) as exp:
            raise ProofError("Malformed proof: %s" % exp) from exp
        return anchors

    def _walk(self, start, branches, anchors, depth):
        if depth > MAX_BRANCH_DEPTH:
            raise ProofError("Proof branches nested too deeply")

        for branch in branches:
            if not isinstance(branch, dict):
                raise ProofError("Proof branch must be an object")

            ops = branch.get('ops', [])
            if not isinstance(ops, list):
                raise ProofError("Proof operations must be a list")

            msg = start
            for op in ops:
                if not isinstance(op, dict):
                    raise ProofError("Proof operation must be an object")

                if 'l' in op:
                    msg = op_value(op['l']) + msg
                elif 'r' in op:
                    msg = msg + op_value(op['r'])
                elif 'op' in op:
                    msg = apply_hash_op(op['op'], msg)
                elif 'anchors' in op:
                    if not isinstance(op['anchors'], list):
                        raise ProofError("Proof anchors must be a list")
                    for anchor in op['anchors']:
                        anchors.append(self._make_anchor(anchor, msg))
                else:
                    raise ProofError("Unknown proof operation %r" % (op,))

            sub_branches = branch.get('branches', [])
            if not isinstance(sub_branches, list):
                raise ProofError("Proof branches must be a list")
            if sub_branches:
                self._walk(msg, sub_branches, anchors, depth + 1)

    @staticmethod
    def _make_anchor(anchor, msg):
        try:
            anchor_type = anchor['type']
            anchor_id = anchor['anchor_id']
        except (KeyError, TypeError):
            raise ProofError("Anchor needs a type and an anchor_id; got %r" % (anchor,))

        uris = anchor.get('uris', [])
        if not isinstance(uris, list):
            raise ProofError("Anchor uris must be a list; got %r" % (uris,))

        if anchor_type in REVERSED_ANCHOR_TYPES:
            msg = msg[::-1]

        return Anchor(anchor_type, anchor_id, tuple(uris),
                      binascii.hexlify(msg).decode('utf8'))
