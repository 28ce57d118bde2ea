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

import logging
import urllib.parse

from chainpoint.nodes import NodeWhitelist
from chainpoint.transport import NetworkError, Transport, DEFAULT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT
from chainpoint.verifiers import Verifier, VerifierError, VerificationError, register_verifier

DEFAULT_CALENDAR_WHITELIST = ('https://*.chainpoint.org',)


@register_verifier
class CalendarVerifier(Verifier):
    """Verifies cal anchors against the Chainpoint calendar

    Each cal anchor lists URIs that return the hash stored in the calendar
    block; it has to equal the value the proof computes.

    The URIs come from the proof itself, so only calendars whose origin is in
    calendar_whitelist are asked. A proof naming any other host fails.
    """

    name = 'calendar'
    anchor_types = ('cal', 'tcal')

    def __init__(self, config, transport=None):
        super().__init__(config)
        if transport is None:
            transport = Transport(timeout=float(self.config.get('timeout', DEFAULT_TIMEOUT)),
                                  connect_timeout=float(self.config.get('connect_timeout',
                                                                        DEFAULT_CONNECT_TIMEOUT)),
                                  accept='text/plain')
        self.transport = transport

        whitelist = self.config.get('calendar_whitelist', '').split()
        try:
            self.whitelist = NodeWhitelist(whitelist or DEFAULT_CALENDAR_WHITELIST)
        except ValueError as exp:
            raise VerifierError("Bad calendar_whitelist: %s" % exp) from exp

    def is_whitelisted(self, uri):
        if not isinstance(uri, str):
            return False

        try:
            parsed_uri = urllib.parse.urlparse(uri)
        except ValueError:
            return False

        if parsed_uri.username is not None or parsed_uri.password is not None:
            return False

        origin = urllib.parse.urlunparse((parsed_uri.scheme, parsed_uri.netloc, '', '', '', ''))
        return origin in self.whitelist

    def verify_anchor(self, anchor):
        if not anchor.uris:
            raise VerificationError("Calendar anchor %s lists no URIs" % anchor.anchor_id)

        for uri in anchor.uris:
            if not self.is_whitelisted(uri):
                raise VerificationError("Calendar anchor %s points at %r: Calendar not in whitelist" %
                                        (anchor.anchor_id, uri))

        for uri in anchor.uris:
            try:
                resp = self.transport.send(uri, 'GET')
            except NetworkError as exp:
                logging.warning("Calendar %s: %s" % (uri, exp.reason))
                continue

            if resp.status != 200:
                logging.warning("Calendar %s: HTTP %d" % (uri, resp.status))
                continue

            calendar_value = resp.body.decode('utf8', 'replace').strip().lower()
            if calendar_value != anchor.expected_value.lower():
                raise VerificationError("Calendar block %s holds %s, proof expects %s" %
                                        (anchor.anchor_id, calendar_value, anchor.expected_value))
            return

        raise VerifierError("No calendar URI for anchor %s answered" % anchor.anchor_id)
