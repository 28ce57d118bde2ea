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

"""Direct, per-blockchain proof verification"""

import logging

from chainpoint.proof import Proof, ProofError


class VerifierError(Exception):
    """A verifier could not do its job, e.g. its node is unreachable"""


class UnknownNetworkError(VerifierError):
    def __init__(self, name):
        super().__init__("No verifier for blockchain %r" % name)
        self.name = name


class VerificationError(Exception):
    """The proof does not check out"""


verifier_classes_by_name = {}
def register_verifier(cls):
    verifier_classes_by_name[cls.name] = cls
    return cls


def make_verifier(config):
    """Construct the verifier for one blockchain_config entry"""
    name = config['name'].lower()
    try:
        cls = verifier_classes_by_name[name]
    except KeyError:
        raise UnknownNetworkError(name)
    return cls(config)


class Verifier:
    """Verifier base class

    Subclasses set name and anchor_types and implement verify_anchor().
    """

    name = None
    anchor_types = ()

    def __init__(self, config):
        self.config = dict(config)

    def verify_anchor(self, anchor):
        """Check one anchor against the blockchain

        Raises VerificationError if it doesn't match.
        """
        raise NotImplementedError

    def verify_proof(self, proof):
        """Return True if every anchor of ours in the proof checks out

        A proof with none of our anchors does not verify.
        """
        try:
            anchors = Proof.from_json(proof).anchors()
        except ProofError as exp:
            logging.error("%s: could not parse proof: %s" % (self.name, exp))
            return False

        anchors = [anchor for anchor in anchors if anchor.type in self.anchor_types]
        if not anchors:
            logging.warning("%s: proof has no %s anchors" % (self.name, '/'.join(self.anchor_types)))
            return False

        for anchor in anchors:
            try:
                self.verify_anchor(anchor)
            except VerificationError as err:
                logging.error("%s verification failed: %s" % (self.name, err))
                return False

            logging.debug("%s anchor %s verified" % (self.name, anchor.anchor_id))

        return True


from chainpoint.verifiers import btc, cal  # noqa: E402,F401
