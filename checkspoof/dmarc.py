# -*- coding: utf-8 -*-
"""DMARC record lookup and policy classification"""

from __future__ import annotations

import logging
from typing import Literal, Optional, TypedDict, Union
from collections.abc import Sequence

import dns.exception
import dns.resolver
from dns.nameserver import Nameserver

from checkspoof._constants import DEFAULT_DNS_TIMEOUT, DMARC_VERSION_TAG
from checkspoof.utils import (
    RecordLookupError,
    find_tagged_record,
    normalize_domain,
    query_txt,
)

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

DMARCPolicy = Literal["quarantine", "reject", "unset"]

DMARC_POLICY_QUARANTINE: DMARCPolicy = "quarantine"
DMARC_POLICY_REJECT: DMARCPolicy = "reject"
DMARC_POLICY_UNSET: DMARCPolicy = "unset"

# Checked in order; the first policy found wins
DMARC_POLICY_TAGS: tuple[tuple[str, DMARCPolicy], ...] = (
    ("p=quarantine", DMARC_POLICY_QUARANTINE),
    ("p=reject", DMARC_POLICY_REJECT),
)


class DMARCResults(TypedDict):
    record: Union[str, None]
    location: str
    policy: DMARCPolicy


class DMARCErrorResults(DMARCResults):
    error: str


def get_dmarc_target(domain: str) -> str:
    """Returns the name a domain's DMARC record is published at"""
    return f"_dmarc.{normalize_domain(domain)}"


def query_dmarc_record(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> Union[str, None]:
    """
    Queries DNS for a DMARC record

    Only ``_dmarc.<domain>`` is queried. There is no fallback to the base
    domain.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS

    Returns:
        str: The first TXT record that starts with ``v=DMARC1``, or ``None``

    Raises:
        :exc:`checkspoof.utils.RecordLookupError`
    """
    target = get_dmarc_target(domain)
    logging.debug(f"Checking for a DMARC record at {target}")
    try:
        records = query_txt(
            target,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
        )
    except dns.exception.DNSException as error:
        raise RecordLookupError(error, domain=target, record_type="DMARC")

    record = find_tagged_record(records, DMARC_VERSION_TAG)
    if record is None:
        logging.debug(f"No DMARC record found at {target}")
    else:
        logging.debug(f"Found DMARC record at {target}: {record}")
    return record


def get_dmarc_policy(record: Optional[str]) -> DMARCPolicy:
    """
    Gets the enforcing policy requested by a DMARC record's ``p`` tag

    A ``p=none`` policy, a missing ``p`` tag, or no record at all are all
    reported as ``unset``.

    Args:
        record (str): A DMARC record, or ``None``

    Returns:
        str: ``quarantine``, ``reject``, or ``unset``
    """
    if record is None:
        return DMARC_POLICY_UNSET
    lowered_record = record.lower()
    for tag, policy in DMARC_POLICY_TAGS:
        if tag in lowered_record:
            return policy
    return DMARC_POLICY_UNSET


def check_dmarc(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> Union[DMARCResults, DMARCErrorResults]:
    """
    Returns a dictionary with a DMARC record and its policy, or an error

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS

    Returns:
        dict: a ``dict`` with the following keys:
                     - ``record`` - the DMARC record string or ``None``
                     - ``location`` - the name that was queried
                     - ``policy`` - ``quarantine``, ``reject``, or ``unset``

        If a DNS error occurs, the dictionary will also have the following key:
                     - ``error`` - The error message
    """
    dmarc_results = {
        "record": None,
        "location": get_dmarc_target(domain),
        "policy": DMARC_POLICY_UNSET,
    }
    try:
        dmarc_results["record"] = query_dmarc_record(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
        )
    except RecordLookupError as error:
        dmarc_results["error"] = str(error)
        return dmarc_results
    dmarc_results["policy"] = get_dmarc_policy(dmarc_results["record"])

    return dmarc_results
