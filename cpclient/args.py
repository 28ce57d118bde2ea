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

import argparse
import logging
import os
import socket
import sys

import appdirs

import chainpoint.config

import cpclient
import cpclient.cmds

DEFAULT_CONFIG_PATH = os.path.join(appdirs.user_config_dir('chainpoint-client'), 'chainpoint.conf')


def make_common_options_arg_parser():
    parser = argparse.ArgumentParser(description="Chainpoint client.")
    parser.add_argument('--version', action='version', version='v%s' % cpclient.__version__)

    parser.add_argument("-q", "--quiet", action="count", default=0,
                        help="Be more quiet.")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Be more verbose. Both -v and -q may be used multiple times.")

    parser.add_argument("--config", action="store", type=str,
                        dest='config_path', default=None,
                        help="Configuration file. Default: %s" % DEFAULT_CONFIG_PATH)

    parser.add_argument('--node', metavar='URL', dest='nodes', action='append', type=str,
                        default=[],
                        help='Use this Chainpoint node instead of discovering one. '
                             'May be specified multiple times.')
    parser.add_argument('-l', '--whitelist', metavar='URL', action='append', type=str,
                        default=[],
                        help='Only use discovered nodes matching this URL glob. '
                             'May be specified multiple times.')

    parser.add_argument("--timeout", type=float, default=None,
                        help="Timeout for each request, in seconds.")

    direct_group = parser.add_mutually_exclusive_group()
    direct_group.add_argument('--direct', dest='direct_verification', action='store_const',
                              const='yes', default=None,
                              help='Verify proofs directly against the configured blockchains')
    direct_group.add_argument('--no-direct', dest='direct_verification', action='store_const',
                              const='no',
                              help='Verify proofs through a Chainpoint node')

    parser.add_argument("--socks5-proxy", type=str,
                        help="Route all traffic through a socks5 proxy, "
                              "including DNS queries. The default port is 1080. "
                              "Format: domain[:port] (e.g. localhost:9050)")

    return parser


def make_overrides(args):
    """Config file overrides from the command line"""
    chainpoint_section = {}
    client_section = {}

    if args.nodes:
        chainpoint_section['nodes'] = '\n'.join(args.nodes)
    if args.whitelist:
        chainpoint_section['node_whitelist'] = '\n'.join(args.whitelist)
    if args.direct_verification is not None:
        chainpoint_section['direct_verification'] = args.direct_verification
    if args.timeout is not None:
        client_section['timeout'] = str(args.timeout)

    return {'chainpoint': chainpoint_section, 'client_config': client_section}


def handle_common_options(args, parser):
    args.parser = parser
    args.verbosity = args.verbose - args.quiet

    config_path = args.config_path
    if config_path is not None:
        config_path = os.path.normpath(os.path.expanduser(config_path))
        if not os.path.exists(config_path):
            parser.error("Config file %r does not exist" % config_path)
    elif os.path.exists(DEFAULT_CONFIG_PATH):
        config_path = DEFAULT_CONFIG_PATH

    try:
        args.context = chainpoint.config.Context(config_path, make_overrides(args))
        args.client = args.context.make_client(user_agent="chainpoint-client/%s" % cpclient.__version__)
    except ValueError as exp:
        logging.error("Bad configuration: %s" % exp)
        sys.exit(1)

    if args.socks5_proxy is not None:
        try:
            import socks
        except ImportError as exp:
            logging.error("Can not use SOCKS5 proxy: %s" % exp)
            sys.exit(1)

        e = args.socks5_proxy.split(':')
        s5_hostname = e[0]
        if len(e) > 1:
            if e[1].isdigit():
                s5_port = int(e[1])
            else:
                args.parser.error('SOCKS5 proxy port must be an integer; got %s' % e[1])
        else:
            s5_port = 1080

        socks.set_default_proxy(socks.SOCKS5,
                                s5_hostname,
                                s5_port)

        # Monkey patch socket to use SOCKS5 proxy
        socket.socket = socks.socksocket

        # This should prevent DNS leaks
        def create_connection(address, timeout=None, source_address=None):
            sock = socks.socksocket()
            if timeout is not None:
                sock.settimeout(timeout)
            sock.connect(address)
            return sock
        socket.create_connection = create_connection

    return args


def parse_chainpoint_args(raw_args):
    parser = make_common_options_arg_parser()

    subparsers = parser.add_subparsers(title='Subcommands',
                                       description='All operations are done through subcommands:')

    # ----- submit -----
    parser_submit = subparsers.add_parser('submit', aliases=['s'],
                                          help='Submit files or digests for anchoring')
    parser_submit.add_argument('-d', metavar='DIGEST', dest='hex_digests', action='append', type=str,
                               default=[],
                               help='Submit a (hex-encoded) digest rather than a file. '
                                    'May be specified multiple times.')
    parser_submit.add_argument('files', metavar='FILE', type=argparse.FileType('rb'),
                               nargs='*',
                               help='Filename')

    # ----- proof -----
    parser_proof = subparsers.add_parser('proof', aliases=['p'],
                                         help='Retrieve proofs')
    parser_proof.add_argument('-o', metavar='FILE', dest='output_fd', type=argparse.FileType('x'),
                              default=None,
                              help='Write the proof(s) to FILE instead of standard output')
    parser_proof.add_argument('hash_id_nodes', metavar='HASH_ID_NODE', type=str, nargs='+',
                              help='hash_id_node from a submission receipt')

    # ----- verify -----
    parser_verify = subparsers.add_parser('verify', aliases=['v'],
                                          help='Verify a proof')
    parser_verify.add_argument('-n', '--network', metavar='NAME', dest='networks', action='append',
                               type=str, default=None,
                               help='With direct verification, consult only this blockchain. '
                                    'May be specified multiple times. Default: all configured')
    parser_verify.add_argument('proof_fd', metavar='PROOF', type=argparse.FileType('r'),
                               help='Proof filename')

    # ----- nodes -----
    parser_nodes = subparsers.add_parser('nodes',
                                         help='Discover Chainpoint nodes and list them')

    parser_submit.set_defaults(cmd_func=cpclient.cmds.submit_command)
    parser_proof.set_defaults(cmd_func=cpclient.cmds.proof_command)
    parser_verify.set_defaults(cmd_func=cpclient.cmds.verify_command)
    parser_nodes.set_defaults(cmd_func=cpclient.cmds.nodes_command)

    args = parser.parse_args(raw_args)
    if not hasattr(args, 'cmd_func'):
        parser.error('a subcommand is required')

    args = handle_common_options(args, parser)

    return args
