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

import configparser
import os

from chainpoint.client import AnchorClient
from chainpoint.nodes import DEFAULT_CATALOG_URLS, NodeDirectory, NodeWhitelist
from chainpoint.transport import Transport

PROOF_FORMATS = {'json': 'application/vnd.chainpoint.ld+json',
                 'base64': 'application/vnd.chainpoint.json+base64'}

BLOCKCHAIN_SECTION_PREFIX = 'blockchain:'

default_conf = {'chainpoint': {'chainpoint_urls': '\n'.join(DEFAULT_CATALOG_URLS),
                               'discover_node_count': '1',
                               'direct_verification': 'no',
                               'nodes': '',
                               'node_whitelist': '',
                               'proof_format': 'json'},
                'client_config': {'timeout': '10',
                                  'connect_timeout': '5'}}


class Context:
    """Store of the context the client is working with.

    The main thing this provides is access to what was defined in the config
    file, with overrides (a dict of sections) applied on top.
    """

    def __init__(self, config_file=None, overrides=None):
        self.config = configparser.ConfigParser()
        self.config.read_dict(default_conf)
        if config_file is not None:
            self.config.read((os.path.expanduser(config_file),))
        if overrides:
            self.config.read_dict(overrides)

    @property
    def timeout(self):
        return self.config.getfloat('client_config', 'timeout')

    @property
    def connect_timeout(self):
        return self.config.getfloat('client_config', 'connect_timeout')

    @property
    def discover_node_count(self):
        count = self.config.getint('chainpoint', 'discover_node_count')
        return count if count > 0 else 1

    @property
    def chainpoint_urls(self):
        return self.config.get('chainpoint', 'chainpoint_urls').split()

    @property
    def direct_verification(self):
        return self.config.getboolean('chainpoint', 'direct_verification')

    @property
    def nodes(self):
        return self.config.get('chainpoint', 'nodes').split()

    @property
    def node_whitelist(self):
        urls = self.config.get('chainpoint', 'node_whitelist').split()
        return NodeWhitelist(urls) if urls else None

    @property
    def proof_format(self):
        proof_format = self.config.get('chainpoint', 'proof_format')
        if proof_format not in PROOF_FORMATS:
            raise ValueError("Unknown proof_format %r; expected one of %s" %
                             (proof_format, ', '.join(sorted(PROOF_FORMATS))))
        return proof_format

    @property
    def blockchain_config(self):
        """One dict per [blockchain:NAME] section, with the name under 'name'"""
        blockchains = []
        for section in self.config.sections():
            if section.startswith(BLOCKCHAIN_SECTION_PREFIX):
                entry = dict(self.config.items(section))
                entry['name'] = section[len(BLOCKCHAIN_SECTION_PREFIX):]
                blockchains.append(entry)
        return blockchains

    def make_transport(self, user_agent="python-chainpoint"):
        return Transport(timeout=self.timeout,
                         connect_timeout=self.connect_timeout,
                         user_agent=user_agent)

    def make_directory(self, transport):
        directory = NodeDirectory(self.chainpoint_urls, transport,
                                  limit=self.discover_node_count,
                                  whitelist=self.node_whitelist)
        directory.seed(self.nodes)
        return directory

    def make_client(self, user_agent="python-chainpoint"):
        transport = self.make_transport(user_agent)
        return AnchorClient(self.make_directory(transport), transport,
                            blockchain_config=self.blockchain_config,
                            direct_verification=self.direct_verification,
                            proof_accept=PROOF_FORMATS[self.proof_format])
