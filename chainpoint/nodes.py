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

"""Chainpoint node discovery

The Chainpoint network is made of many independently run nodes, any number of
which may be offline at a given moment. A handful of catalog URLs publish
lists of candidate nodes; we pick one catalog at random and health-check its
candidates in order until enough of them answer.
"""

import fnmatch
import json
import logging
import random
import threading
import urllib.parse

from collections import namedtuple

from chainpoint.transport import NetworkError

DEFAULT_CATALOG_URLS = ('https://a.chainpoint.org/nodes/random',
                        'https://b.chainpoint.org/nodes/random',
                        'https://c.chainpoint.org/nodes/random')

HealthCheck = namedtuple('HealthCheck', ['uri', 'ok', 'reason'])


class BackendError(Exception):
    """A backend we have no alternative to returned something unusable"""


class NodeWhitelist(set):
    """Glob-matching whitelist for node URLs"""

    def __init__(self, urls=()):
        for url in urls:
            self.add(url)

    def add(self, url):
        if not isinstance(url, str):
            raise TypeError("URL must be a string")

        if url.startswith('http://') or url.startswith('https://'):
            parsed_url = urllib.parse.urlparse(url)

            if parsed_url.params or parsed_url.query or parsed_url.fragment:
                raise ValueError("Whitelisted node URL %r can't have params, a query or a fragment" % url)

            set.add(self, parsed_url._replace(path=parsed_url.path.rstrip('/')))

        else:
            self.add('http://' + url)
            self.add('https://' + url)

    def __contains__(self, url):
        parsed_url = urllib.parse.urlparse(url)

        if parsed_url.params or parsed_url.query or parsed_url.fragment:
            return False

        for pattern in self:
            if (parsed_url.scheme == pattern.scheme and
                    parsed_url.path.rstrip('/') == pattern.path and
                    fnmatch.fnmatch(parsed_url.netloc, pattern.netloc)):
                return True

        else:
            return False


class NodeDirectory:
    """Discovers and remembers a small set of reachable Chainpoint nodes

    Discovery happens at most once per directory: after the first successful
    pass the node list is trusted for as long as the directory lives.
    Concurrent callers of ensure_discovered() share a single pass.
    """

    def __init__(self, catalog_urls, transport, limit=1, whitelist=None, rng=None):
        if not catalog_urls:
            raise ValueError("At least one node catalog URL is required")
        if limit < 1:
            raise ValueError("Discovery limit must be at least 1; got %d" % limit)

        self.catalog_urls = tuple(catalog_urls)
        self.transport = transport
        self.limit = limit
        self.whitelist = whitelist
        self.random = rng if rng is not None else random.SystemRandom()

        self._nodes = []
        self._lock = threading.Lock()

    def current(self):
        """Return the discovered nodes, possibly none"""
        return list(self._nodes)

    def seed(self, addresses):
        """Use pre-known nodes instead of discovering them

        An empty sequence changes nothing.
        """
        nodes = []
        for address in addresses:
            if address not in nodes:
                nodes.append(address)

        if not nodes:
            return

        with self._lock:
            logging.debug("Seeded %d node(s): %s" % (len(nodes), ', '.join(nodes)))
            self._nodes = nodes

    def ensure_discovered(self):
        """Run discovery unless we already have nodes

        Returns the current nodes. Errors fetching the catalog propagate; the
        node list is left empty in that case, as it is when no candidate
        passed its health-check.
        """
        if self._nodes:
            return self.current()

        with self._lock:
            if not self._nodes:
                self._nodes = self.discover()

        return self.current()

    def discover(self):
        """Discover nodes, without touching the remembered node list"""
        catalog_url = self.random.choice(self.catalog_urls)
        candidates = self.fetch_catalog(catalog_url)

        nodes = []
        for uri in candidates:
            if uri in nodes:
                continue

            if self.whitelist is not None and uri not in self.whitelist:
                logging.warning("Ignoring node %s: Node not in whitelist" % uri)
                continue

            check = self.check_health(uri)
            if not check.ok:
                logging.debug("Skipping node %s: %s" % (uri, check.reason))
                continue

            logging.info("Using Chainpoint node %s" % uri)
            nodes.append(uri)

            if len(nodes) >= self.limit:
                break

        if not nodes:
            logging.warning("None of %d candidate node(s) from %s answered" % (len(candidates), catalog_url))

        return nodes

    def fetch_catalog(self, catalog_url):
        """Fetch the list of candidate node URIs from a catalog

        No other catalog is tried if this one fails.
        """
        logging.debug("Fetching node catalog %s" % catalog_url)
        resp = self.transport.send(catalog_url, 'GET')

        if resp.status != 200:
            raise BackendError("Bad response from node source URL %s: %d" % (catalog_url, resp.status))

        try:
            records = json.loads(resp.body.decode('utf8'))
        except ValueError as exp:
            raise BackendError("Invalid node list from %s: %s" % (catalog_url, exp)) from exp

        if not isinstance(records, list):
            raise BackendError("Invalid node list from %s: expected a JSON array" % catalog_url)

        candidates = []
        for record in records:
            try:
                uri = record['public_uri']
            except (KeyError, TypeError):
                logging.debug("Ignoring catalog record without public_uri: %r" % (record,))
                continue

            if not isinstance(uri, str):
                logging.debug("Ignoring catalog record with bad public_uri: %r" % (uri,))
                continue

            candidates.append(uri)

        logging.debug("Catalog %s lists %d candidate node(s)" % (catalog_url, len(candidates)))
        return candidates

    def check_health(self, uri):
        """Health-check a single candidate

        Never raises; the outcome is returned as a HealthCheck.
        """
        try:
            resp = self.transport.send(uri, 'GET')
        except NetworkError as exp:
            return HealthCheck(uri, False, exp.reason)

        if resp.status != 200:
            return HealthCheck(uri, False, "HTTP %d" % resp.status)

        return HealthCheck(uri, True, None)
