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
import sys

import cpclient.args


def main():
    args = cpclient.args.parse_chainpoint_args(sys.argv[1:])

    logging.basicConfig(format='%(message)s')
    logging.root.setLevel(logging.INFO - args.verbosity * 10)

    args.cmd_func(args)


if __name__ == '__main__':
    main()
