#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Checks if a domain's SPF and DMARC records allow it to be spoofed"""

from __future__ import annotations

import sys
from argparse import ArgumentParser

import logging

from checkspoof import (
    __version__,
    RecordLookupError,
    ValidationError,
    check_domain,
    results_to_json,
)
from checkspoof._constants import DEFAULT_DNS_TIMEOUT

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""


def _main(argv=None):
    """Called when the module in executed"""
    arg_parser = ArgumentParser(description=__doc__)
    arg_parser.add_argument("domain", help="the domain to check")
    arg_parser.add_argument(
        "-n", "--nameserver", nargs="+", help="nameservers to query"
    )
    arg_parser.add_argument(
        "-t",
        "--timeout",
        help=f"number of seconds to wait for an answer from DNS "
        f"(default {DEFAULT_DNS_TIMEOUT})",
        type=float,
        default=DEFAULT_DNS_TIMEOUT,
    )
    arg_parser.add_argument("-v", "--version", action="version", version=__version__)
    arg_parser.add_argument(
        "--debug", action="store_true", help="enable debugging output"
    )

    args = arg_parser.parse_args(argv)

    logging_format = "%(asctime)s - %(levelname)s: %(message)s"
    logging.basicConfig(level=logging.WARNING, format=logging_format)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug output enabled")

    try:
        results = check_domain(
            args.domain,
            nameservers=args.nameserver,
            timeout=args.timeout,
        )
    except ValidationError as error:
        logging.error(f"{args.domain}: {error}")
        sys.exit(1)
    except RecordLookupError as error:
        logging.error(str(error))
        sys.exit(1)
    except ValueError as error:
        logging.error(f"Invalid resolver configuration: {error}")
        sys.exit(1)

    print(results_to_json(results))


if __name__ == "__main__":
    _main()
