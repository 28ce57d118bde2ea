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
import json
import unittest

from chainpoint.proof import *

HASH = 'bdf8c9bdf076d6aff0292a1c9448691d2ae283f2ce41b045355e2c8cb8e85ef2'

PROOF = {
    '@context': 'https://w3id.org/chainpoint/v3',
    'type': 'Chainpoint',
    'hash': HASH,
    'hash_id_node': 'e47f6c30-0000-11e8-a3f9-01e1d1bd4e2d',
    'branches': [{
        'label': 'cal_anchor_branch',
        'ops': [{'l': 'node_id:e47f6c30-0000-11e8-a3f9-01e1d1bd4e2d'},
                {'op': 'sha-256'},
                {'r': 'c2ad4c4ed5e6df2e49ee23b8ef4a8f9d2c5cc1e8d1cd2e1e5a1f4b7b5f0c4d3e'},
                {'op': 'sha-256'},
                {'anchors': [{'type': 'cal',
                              'anchor_id': '1021',
                              'uris': ['https://a.chainpoint.org/calendar/1021/hash']}]}],
        'branches': [{
            'label': 'btc_anchor_branch',
            'ops': [{'l': '0100000001'},
                    {'op': 'sha-256-x2'},
                    {'anchors': [{'type': 'btc',
                                  'anchor_id': '504713',
                                  'uris': ['https://a.chainpoint.org/calendar/1050/data']}]}]
        }]
    }]
}


def sha256(msg):
    return hashlib.sha256(msg).digest()


class Test_Proof(unittest.TestCase):
    def expected_values(self):
        msg = bytes.fromhex(HASH)
        msg = sha256(b'node_id:e47f6c30-0000-11e8-a3f9-01e1d1bd4e2d' + msg)
        msg = sha256(msg + bytes.fromhex(PROOF['branches'][0]['ops'][2]['r']))
        cal_value = msg.hex()

        msg = sha256(sha256(bytes.fromhex('0100000001') + msg))
        btc_value = msg[::-1].hex()
        return cal_value, btc_value

    def test_anchors(self):
        """Anchors are found in nested branches with their computed values"""
        cal_value, btc_value = self.expected_values()

        anchors = Proof.from_json(json.dumps(PROOF)).anchors()
        self.assertEqual(anchors,
                         [Anchor('cal', '1021', ('https://a.chainpoint.org/calendar/1021/hash',), cal_value),
                          Anchor('btc', '504713', ('https://a.chainpoint.org/calendar/1050/data',), btc_value)])

    def test_from_json_types(self):
        for proof in (PROOF, json.dumps(PROOF), json.dumps(PROOF).encode('utf8')):
            parsed = Proof.from_json(proof)
            self.assertEqual(parsed.hash, HASH)
            self.assertEqual(parsed.hash_id_node, 'e47f6c30-0000-11e8-a3f9-01e1d1bd4e2d')

    def test_no_branches(self):
        self.assertEqual(Proof.from_json({'hash': HASH}).anchors(), [])

    def test_invalid(self):
        """Malformed proofs raise ProofError"""
        for bad in ('eJyNk8tuEzEUhl+l8jq0vo0v2VEoqFJBiFYsQFXkyzEdMZ',
                    b'\xff\xfe',
                    '[]',
                    '{}',
                    {'hash': 'not hex'},
                    {'hash': 'ab\n'},
                    {'hash': 5},
                    {'hash': HASH, 'branches': {}}):
            with self.assertRaises(ProofError):
                Proof.from_json(bad)

        for bad_ops in ([{'op': 'md5'}],
                        [{'x': 'y'}],
                        ['sha-256'],
                        [{'l': 5}],
                        [{'anchors': 5}],
                        [{'op': ['sha-256']}],
                        [{'anchors': [{'type': 'cal', 'anchor_id': '1', 'uris': 5}]}],
                        [{'anchors': [{'type': 'btc'}]}]):
            proof = Proof.from_json({'hash': HASH, 'branches': [{'ops': bad_ops}]})
            with self.assertRaises(ProofError):
                proof.anchors()

    def test_malformed_structure(self):
        for branches in ([{'ops': 5}],
                         [{'ops': [], 'branches': 5}],
                         [{'ops': [], 'branches': [{'ops': 'sha-256'}]}]):
            proof = Proof.from_json({'hash': HASH, 'branches': branches})
            with self.assertRaises(ProofError):
                proof.anchors()

    def test_trailing_newline_not_hex(self):
        self.assertEqual(op_value('00ff\n'), b'00ff\n')

    def test_op_value(self):
        self.assertEqual(op_value('00ff'), b'\x00\xff')
        self.assertEqual(op_value('00f'), b'00f')
        self.assertEqual(op_value('node_id:abc'), b'node_id:abc')

    def test_hash_ops(self):
        self.assertEqual(apply_hash_op('sha-256', b''), hashlib.sha256(b'').digest())
        self.assertEqual(apply_hash_op('sha3-512', b'a'), hashlib.sha3_512(b'a').digest())
        self.assertEqual(apply_hash_op('sha-256-x2', b'a'), sha256(sha256(b'a')))
