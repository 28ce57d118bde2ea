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

import binascii
import hashlib
import json
import logging
import sys

from chainpoint.client import ValidationError
from chainpoint.nodes import BackendError
from chainpoint.transport import NetworkError

# Chainpoint nodes accept hashes of 20 to 64 bytes
MIN_DIGEST_SIZE = 20
MAX_DIGEST_SIZE = 64


def hash_fd(fd, hash_func):
    """Hex digest of everything readable from fd"""
    hasher = hashlib.new(hash_func)
    while True:
        chunk = fd.read(2**20)
        if not chunk:
            break
        hasher.update(chunk)
    return hasher.hexdigest()


def receipt_hash_ids(receipt):
    """(hash, hash_id_node) pairs from a /hashes receipt"""
    try:
        hashes = json.loads(receipt)['hashes']
        return [(h['hash'], h['hash_id_node']) for h in hashes]
    except (ValueError, KeyError, TypeError):
        return []


def is_verified(payload):
    """Whether every proof in a /verify payload came back verified"""
    try:
        results = json.loads(payload)
    except ValueError:
        return False

    if not isinstance(results, list) or not results:
        return False

    for result in results:
        if not isinstance(result, dict) or result.get('status') != 'verified':
            return False
    else:
        return True


def submit_command(args):
    hashes = []
    for hex_digest in args.hex_digests:
        try:
            digest = binascii.unhexlify(hex_digest.encode('utf8'))
        except ValueError:
            args.parser.error('Digest must be hexadecimal')

        if not MIN_DIGEST_SIZE <= len(digest) <= MAX_DIGEST_SIZE:
            args.parser.error('Digest must be %d to %d bytes long' % (MIN_DIGEST_SIZE, MAX_DIGEST_SIZE))
        hashes.append(hex_digest.lower())

    if not args.files and not hashes:
        args.files = [sys.stdin.buffer]

    for fd in args.files:
        try:
            hex_digest = hash_fd(fd, args.client.hash_func)
        except OSError as exp:
            logging.error("Could not read %r: %s" % (fd.name, exp))
            sys.exit(1)

        logging.debug("%s %s: %s" % (args.client.hash_func, fd.name, hex_digest))
        hashes.append(hex_digest)

    try:
        receipt = args.client.write_hash(hashes)
    except ValidationError as exp:
        logging.error("Failed to submit: %s" % exp)
        sys.exit(1)

    for digest, hash_id_node in receipt_hash_ids(receipt):
        logging.info("Submitted %s; hash_id_node %s" % (digest, hash_id_node))

    print(receipt)


def proof_command(args):
    try:
        if len(args.hash_id_nodes) == 1:
            proofs = args.client.get_proof(args.hash_id_nodes[0])
        else:
            proofs = args.client.get_proofs(args.hash_id_nodes)
    except ValidationError as exp:
        logging.error("Failed to get proof: %s" % exp)
        sys.exit(1)

    if args.output_fd is None:
        print(proofs)
    else:
        with args.output_fd as fd:
            fd.write(proofs)


def verify_command(args):
    with args.proof_fd as fd:
        proof = fd.read().strip()

    try:
        result = args.client.verify_proof(proof, args.networks)
    except ValidationError as exp:
        logging.error("Failed to verify: %s" % exp)
        sys.exit(1)

    if isinstance(result, bool):
        if result:
            logging.info("Success! Proof verified by every blockchain consulted")
        else:
            logging.error("Proof NOT verified")
            sys.exit(1)

    else:
        print(result)
        if not is_verified(result):
            logging.error("Proof NOT verified")
            sys.exit(1)


def nodes_command(args):
    try:
        nodes = args.client.directory.ensure_discovered()
    except (NetworkError, BackendError) as exp:
        logging.error("Node discovery failed: %s" % exp)
        sys.exit(1)

    if not nodes:
        logging.error("No chainpoint nodes discovered!")
        sys.exit(1)

    for node in nodes:
        print(node)
