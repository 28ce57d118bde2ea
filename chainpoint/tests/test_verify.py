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

import json
import unittest

from chainpoint.verify import *
from chainpoint.verifiers import *
from chainpoint.verifiers.btc import BitcoinVerifier
from chainpoint.verifiers.cal import CalendarVerifier


class MockVerifier:
    def __init__(self, config):
        self.config = config
        self.result = config.get('result', True)
        self.calls = 0

    def verify_proof(self, proof):
        self.calls += 1
        return self.result


class MockFactory:
    def __init__(self):
        self.made = {}

    def __call__(self, config):
        verifier = MockVerifier(config)
        self.made[config['name']] = verifier
        return verifier


class Test_VerificationDispatcher(unittest.TestCase):
    def test_all_true(self):
        factory = MockFactory()
        dispatcher = VerificationDispatcher([{'name': 'A'}, {'name': 'B'}], verifier_factory=factory)

        self.assertIs(dispatcher.verify('proof', MODE_DIRECT, ['A', 'B']), True)

    def test_one_false(self):
        """Any single False fails the whole proof; every network is still asked"""
        factory = MockFactory()
        dispatcher = VerificationDispatcher([{'name': 'A', 'result': False}, {'name': 'B'}],
                                            verifier_factory=factory)

        self.assertIs(dispatcher.verify('proof', MODE_DIRECT, ['A', 'B']), False)
        self.assertEqual(factory.made['A'].calls, 1)
        self.assertEqual(factory.made['B'].calls, 1)

    def test_networks_filter(self):
        factory = MockFactory()
        dispatcher = VerificationDispatcher([{'name': 'A'}, {'name': 'B', 'result': False}],
                                            verifier_factory=factory)

        self.assertIs(dispatcher.verify('proof', MODE_DIRECT, ['a']), True)
        self.assertNotIn('B', factory.made)

        # Default is every configured network
        self.assertIs(dispatcher.verify('proof', MODE_DIRECT), False)

    def test_nothing_consulted(self):
        """No configured network matches: nothing said no"""
        factory = MockFactory()
        dispatcher = VerificationDispatcher([{'name': 'A'}], verifier_factory=factory)

        self.assertIs(dispatcher.verify('proof', MODE_DIRECT, ['C']), True)
        self.assertEqual(factory.made, {})

    def test_verifiers_reused(self):
        factory = MockFactory()
        dispatcher = VerificationDispatcher([{'name': 'A'}], verifier_factory=factory)

        dispatcher.verify('proof', MODE_DIRECT)
        first = factory.made['A']
        dispatcher.verify('proof', MODE_DIRECT)
        self.assertIs(factory.made['A'], first)
        self.assertEqual(first.calls, 2)

    def test_network_mode(self):
        calls = []
        def network_verify(proof):
            calls.append(proof)
            return '[{"status": "verified"}]'

        dispatcher = VerificationDispatcher([{'name': 'A'}], network_verify=network_verify,
                                            verifier_factory=MockFactory())

        self.assertEqual(dispatcher.verify('proof'), '[{"status": "verified"}]')
        self.assertEqual(calls, ['proof'])

    def test_bad_mode(self):
        dispatcher = VerificationDispatcher()
        with self.assertRaises(ValueError):
            dispatcher.verify('proof', 'quorum')
        with self.assertRaises(ValueError):
            dispatcher.verify('proof', MODE_NETWORK)

    def test_unnamed_config(self):
        with self.assertRaises(ValueError):
            VerificationDispatcher([{'rpc_url': 'http://localhost'}])


class DummyVerifier(Verifier):
    name = 'dummy'
    anchor_types = ('cal',)

    def __init__(self, config, bad_anchor_ids=()):
        super().__init__(config)
        self.bad_anchor_ids = bad_anchor_ids
        self.checked = []

    def verify_anchor(self, anchor):
        self.checked.append(anchor.anchor_id)
        if anchor.anchor_id in self.bad_anchor_ids:
            raise VerificationError("bad anchor %s" % anchor.anchor_id)


def proof_with_anchors(*anchors):
    return json.dumps({'hash': 'ab' * 32,
                       'branches': [{'label': 'cal_anchor_branch',
                                     'ops': [{'op': 'sha-256'},
                                             {'anchors': list(anchors)}]}]})


class Test_Verifier(unittest.TestCase):
    def test_verify_proof(self):
        verifier = DummyVerifier({'name': 'dummy'})
        proof = proof_with_anchors({'type': 'cal', 'anchor_id': '1'},
                                   {'type': 'btc', 'anchor_id': '2'},
                                   {'type': 'cal', 'anchor_id': '3'})

        self.assertTrue(verifier.verify_proof(proof))
        self.assertEqual(verifier.checked, ['1', '3'])

    def test_failed_anchor(self):
        verifier = DummyVerifier({'name': 'dummy'}, bad_anchor_ids=('1',))
        self.assertFalse(verifier.verify_proof(proof_with_anchors({'type': 'cal', 'anchor_id': '1'})))

    def test_no_anchors(self):
        verifier = DummyVerifier({'name': 'dummy'})
        self.assertFalse(verifier.verify_proof(proof_with_anchors({'type': 'btc', 'anchor_id': '2'})))

    def test_unparsable(self):
        verifier = DummyVerifier({'name': 'dummy'})
        self.assertFalse(verifier.verify_proof('eJyNk8tuEzEUhl+l8jq0vo0v2VEoqFJBiFYsQFXkyzEdMZ'))

    def test_malformed_json_proofs(self):
        """Structurally broken proofs do not verify, and do not raise"""
        verifier = DummyVerifier({'name': 'dummy'})
        for proof in ('{"hash": "ab\\n"}',
                      '{"hash": "ab", "branches": [{"ops": 5}]}',
                      '{"hash": "ab", "branches": [{"ops": [], "branches": 5}]}',
                      '{"hash": "ab", "branches": [{"ops": [{"op": ["sha-256"]}]}]}',
                      '{"hash": "ab", "branches": [{"ops": [{"anchors": [{"type": "cal", "anchor_id": "1", "uris": 5}]}]}]}'):
            self.assertFalse(verifier.verify_proof(proof), proof)
        self.assertEqual(verifier.checked, [])


class Test_make_verifier(unittest.TestCase):
    def test_registry(self):
        self.assertIs(verifier_classes_by_name['bitcoin'], BitcoinVerifier)
        self.assertIs(verifier_classes_by_name['calendar'], CalendarVerifier)

    def test_make_verifier(self):
        verifier = make_verifier({'name': 'Bitcoin', 'network': 'testnet'})
        self.assertIsInstance(verifier, BitcoinVerifier)
        self.assertEqual(verifier.config['network'], 'testnet')

    def test_unknown(self):
        with self.assertRaises(UnknownNetworkError) as cm:
            make_verifier({'name': 'dogecoin'})
        self.assertEqual(cm.exception.name, 'dogecoin')
