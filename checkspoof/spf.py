# -*- coding: utf-8 -*-
"""Sender Policy Framework (SPF) record lookup and classification"""

from __future__ import annotations

import logging
from typing import Literal, Optional, TypedDict, Union
from collections.abc import Sequence

import dns.exception
import dns.resolver
from dns.nameserver import Nameserver

from checkspoof._constants import DEFAULT_DNS_TIMEOUT, SPF_VERSION_TAG
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

SPFFailureType = Literal["soft", "hard", "neutral", "unset"]

SPF_FAILURE_SOFT: SPFFailureType = "soft"
SPF_FAILURE_HARD: SPFFailureType = "hard"
SPF_FAILURE_NEUTRAL: SPFFailureType = "neutral"
SPF_FAILURE_UNSET: SPFFailureType = "unset"

# Checked in order; the first qualifier found wins
SPF_ALL_QUALIFIERS: tuple[tuple[str, SPFFailureType], ...] = (
    ("~all", SPF_FAILURE_SOFT),
    ("-all", SPF_FAILURE_HARD),
    ("?all", SPF_FAILURE_NEUTRAL),
)


class SPFResults(TypedDict):
    record: Union[str, None]
    failure_type: SPFFailureType


class SPFErrorResults(SPFResults):
    error: str


def query_spf_record(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> Union[str, None]:
    """
    Queries DNS for an SPF record

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS

    Returns:
        str: The first TXT record that starts with ``v=spf1``, or ``None`` if
        the domain does not publish one

    Raises:
        :exc:`checkspoof.utils.RecordLookupError`
    """
    domain = normalize_domain(domain)
    logging.debug(f"Checking for a SPF record on {domain}")
    try:
        records = query_txt(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
        )
    except dns.exception.DNSException as error:
        raise RecordLookupError(error, domain=domain, record_type="SPF")

    record = find_tagged_record(records, SPF_VERSION_TAG)
    if record is None:
        logging.debug(f"No SPF record found on {domain}")
    else:
        logging.debug(f"Found SPF record on {domain}: {record}")
    return record


def get_spf_failure_type(record: Optional[str]) -> SPFFailureType:
    """
    Classifies how an SPF record handles senders it does not list, based on
    the qualifier of its ``all`` mechanism

    Args:
        record (str): An SPF record, or ``None``

    Returns:
        str: ``soft``, ``hard``, ``neutral``, or ``unset``
    """
    if record is None:
        return SPF_FAILURE_UNSET
    lowered_record = record.lower()
    for qualifier, failure_type in SPF_ALL_QUALIFIERS:
        if qualifier in lowered_record:
            return failure_type
    return SPF_FAILURE_UNSET


def check_spf(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> Union[SPFResults, SPFErrorResults]:
    """
    Returns a dictionary with an SPF record and its failure type, or an error.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS

    Returns:
        dict: A ``dict`` with the following keys:
            - ``record`` - The SPF record string or ``None``
            - ``failure_type`` - ``soft``, ``hard``, ``neutral``, or ``unset``

        If a DNS error occurs, the dictionary will also have the following key:
            - ``error`` - The error message
    """
    spf_results = {"record": None, "failure_type": SPF_FAILURE_UNSET}
    try:
        spf_results["record"] = query_spf_record(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
        )
    except RecordLookupError as error:
        spf_results["error"] = str(error)
        return spf_results
    spf_results["failure_type"] = get_spf_failure_type(spf_results["record"])

    return spf_results
