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

"""Single HTTP requests to Chainpoint nodes and node catalogs"""

import http.client
import json
import logging
import ssl
import time
import urllib.error
import urllib.parse
import urllib.request

from collections import namedtuple

DEFAULT_TIMEOUT = 10
DEFAULT_CONNECT_TIMEOUT = 5

# Proofs for large batches run to a few hundred KB; anything bigger than this
# isn't something a node should be sending us.
MAX_RESPONSE_SIZE = 1000000

READ_CHUNK_SIZE = 8192

Response = namedtuple('Response', ['url', 'status', 'body', 'headers'])


def get_sanitised_resp_msg(exp):
    """Get the sanitised message from an error response

    Returns the sanitised message, with any character not in the whitelist replaced by '_'
    """

    # Note how new lines are _not_ allowed: this is important, as otherwise the
    # message could include a second line pretending to be something else.
    WHITELIST = b'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789#-.,; '

    # Two lines of text
    raw_msg = bytearray(exp.read(160))

    for i in range(len(raw_msg)):
        if raw_msg[i] not in WHITELIST:
            raw_msg[i] = ord('_')

    return raw_msg.decode()


class NetworkError(Exception):
    """Request failed: I/O error, timeout, or an error status"""

    def __init__(self, url, reason, status=None):
        super().__init__("%s: %s" % (url, reason))
        self.url = url
        self.reason = reason
        self.status = status


class NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Never follow redirects

    A node that redirects us elsewhere is not the node we health-checked.
    """

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


class Transport:
    """Executes one HTTP request at a time; never retries"""

    def __init__(self, timeout=DEFAULT_TIMEOUT, connect_timeout=DEFAULT_CONNECT_TIMEOUT,
                 user_agent="python-chainpoint", max_response_size=MAX_RESPONSE_SIZE,
                 accept="application/json", proxies=None):
        if timeout <= 0 or connect_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.max_response_size = max_response_size

        self.request_headers = {"Accept": accept,
                                "User-Agent": user_agent}

        # Certificate and hostname checking are always on.
        ssl_context = ssl.create_default_context()
        # proxies=None means the usual *_proxy environment variables
        self.opener = urllib.request.build_opener(urllib.request.ProxyHandler(proxies),
                                                  NoRedirectHandler(),
                                                  urllib.request.HTTPSHandler(context=ssl_context))

    def send(self, url, method='GET', payload=None, base_uri=None, headers=None):
        """Send a request and return the Response

        url is resolved against base_uri when one is given. POSTed payloads
        are sent as JSON; for other methods the payload becomes the query
        string.

        Raises NetworkError on malformed URLs, I/O errors, timeouts and
        4xx/5xx statuses. Redirects come back as a Response with their 3xx
        status.

        The total timeout is checked whenever body data arrives, so a stalled
        response can overrun it by at most one socket timeout, which is
        min(connect_timeout, timeout).
        """
        method = method.upper()

        try:
            if base_uri is not None:
                url = urllib.parse.urljoin(base_uri, url)
            scheme = urllib.parse.urlparse(url).scheme
        except ValueError as exp:
            raise NetworkError(url, "malformed URL: %s" % exp) from exp

        if scheme not in ('http', 'https'):
            raise NetworkError(url, "unsupported URL scheme")

        req_headers = dict(self.request_headers)
        if headers:
            req_headers.update(headers)

        data = None
        if payload:
            if method == 'POST':
                data = json.dumps(payload).encode('utf8')
                req_headers['Content-Type'] = 'application/json'
            else:
                url = url + '?' + urllib.parse.urlencode(payload, safe=',')

        logging.debug("%s %s" % (method, url))

        try:
            req = urllib.request.Request(url, data=data, headers=req_headers, method=method)
        except ValueError as exp:
            raise NetworkError(url, "malformed URL: %s" % exp) from exp

        deadline = time.monotonic() + self.timeout
        try:
            with self.opener.open(req, timeout=min(self.connect_timeout, self.timeout)) as resp:
                body = self._read_body(resp, url, deadline)
                return Response(url, resp.status, body, resp.headers)

        except urllib.error.HTTPError as exp:
            if 300 <= exp.code < 400:
                logging.debug("Not following %d redirect from %s" % (exp.code, url))
                return Response(url, exp.code, b'', exp.headers)

            raise NetworkError(url, "HTTP %d %s" % (exp.code, get_sanitised_resp_msg(exp)),
                               status=exp.code) from exp

        except urllib.error.URLError as exp:
            raise NetworkError(url, exp.reason) from exp

        except (OSError, http.client.HTTPException) as exp:
            raise NetworkError(url, exp) from exp

        except ValueError as exp:
            # http.client.InvalidURL and friends
            raise NetworkError(url, "malformed URL: %s" % exp) from exp

    def _read_body(self, resp, url, deadline):
        # read1() returns whatever has arrived rather than waiting for a full
        # chunk; a body dripped a byte at a time can't hold read() open.
        chunks = []
        size = 0
        while True:
            if time.monotonic() > deadline:
                raise NetworkError(url, "timed out after %s seconds" % self.timeout)

            chunk = resp.read1(READ_CHUNK_SIZE)
            if not chunk:
                break

            size += len(chunk)
            if size > self.max_response_size:
                raise NetworkError(url, "response exceeded size limit")
            chunks.append(chunk)

        return b''.join(chunks)
