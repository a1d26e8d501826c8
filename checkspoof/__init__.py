# -*- coding: utf-8 -*-

"""Checks if a domain's SPF and DMARC records allow it to be spoofed"""

from __future__ import annotations

import json
import logging
from typing import Optional, TypedDict, Union
from collections.abc import Mapping, Sequence

import dns.resolver
from dns.nameserver import Nameserver

import checkspoof._constants
from checkspoof.dmarc import (
    DMARC_POLICY_UNSET,
    DMARCPolicy,
    get_dmarc_policy,
    query_dmarc_record,
)
from checkspoof.spf import (
    SPF_FAILURE_SOFT,
    SPF_FAILURE_UNSET,
    SPFFailureType,
    get_spf_failure_type,
    query_spf_record,
)
from checkspoof.utils import (
    DNSException,
    RecordLookupError,
    ValidationError,
    get_base_domain,
    validate_domain,
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


__version__ = checkspoof._constants.__version__

__all__ = [
    "__version__",
    "DNSException",
    "DomainCheckResult",
    "RecordLookupError",
    "ValidationError",
    "check_domain",
    "is_spoofable",
    "results_to_json",
    "spoofable_reasons",
]


class DomainCheckResult(TypedDict):
    domain: str
    base_domain: str
    spf_record: Union[str, None]
    spf_failure_type: SPFFailureType
    dmarc_record: Union[str, None]
    dmarc_policy: DMARCPolicy
    spoofable: Union[bool, None]


def spoofable_reasons(result: Mapping[str, object]) -> list[str]:
    """
    Lists the reasons a checked domain is considered spoofable

    Args:
        result (dict): A ``DomainCheckResult`` with its records fetched and
                       classified

    Returns:
        list: Human-readable reasons; empty if the domain is not spoofable
    """
    reasons = []
    if result["spf_record"] is None:
        reasons.append("No SPF record found")
    if result["spf_failure_type"] == SPF_FAILURE_SOFT:
        reasons.append("SPF record uses a soft fail (~all)")
    if result["dmarc_record"] is None:
        reasons.append("No DMARC record found")
    if result["dmarc_policy"] == DMARC_POLICY_UNSET:
        reasons.append("DMARC policy is not quarantine or reject")
    return reasons


def is_spoofable(result: Mapping[str, object]) -> bool:
    """
    Decides if a domain can be spoofed

    A domain is spoofable if it has no SPF record, its SPF record soft
    fails, it has no DMARC record, or its DMARC policy is neither
    ``quarantine`` nor ``reject``. Neutral (``?all``) and hard (``-all``)
    SPF records do not make a domain spoofable on their own.

    Args:
        result (dict): A ``DomainCheckResult`` with its records fetched and
                       classified

    Returns:
        bool: The verdict
    """
    return len(spoofable_reasons(result)) > 0


def check_domain(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = checkspoof._constants.DEFAULT_DNS_TIMEOUT,
) -> DomainCheckResult:
    """
    Fetches and classifies a domain's SPF and DMARC records, and decides if
    the domain can be spoofed

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS

    Returns:
       dict: A ``dict`` with the following keys:

       - ``domain`` - The validated, normalized domain name
       - ``base_domain`` - The base domain
       - ``spf_record`` - The SPF record, or ``None``
       - ``spf_failure_type`` - ``soft``, ``hard``, ``neutral``, or ``unset``
       - ``dmarc_record`` - The DMARC record, or ``None``
       - ``dmarc_policy`` - ``quarantine``, ``reject``, or ``unset``
       - ``spoofable`` - The verdict

    Raises:
        :exc:`checkspoof.utils.ValidationError`
        :exc:`checkspoof.utils.RecordLookupError`

    .. note::
        When a lookup fails, the fields filled in so far are available as
        ``error.data["partial_result"]``, with ``spoofable`` set to ``None``.
    """
    domain = validate_domain(domain)
    logging.debug(f"Checking: {domain}")

    result: DomainCheckResult = {
        "domain": domain,
        "base_domain": get_base_domain(domain),
        "spf_record": None,
        "spf_failure_type": SPF_FAILURE_UNSET,
        "dmarc_record": None,
        "dmarc_policy": DMARC_POLICY_UNSET,
        "spoofable": None,
    }

    try:
        result["spf_record"] = query_spf_record(
            domain, nameservers=nameservers, resolver=resolver, timeout=timeout
        )
        result["dmarc_record"] = query_dmarc_record(
            domain, nameservers=nameservers, resolver=resolver, timeout=timeout
        )
    except RecordLookupError as error:
        error.data = {"partial_result": result}
        raise error

    result["spf_failure_type"] = get_spf_failure_type(result["spf_record"])
    logging.debug(f"SPF failure type for {domain}: {result['spf_failure_type']}")
    result["dmarc_policy"] = get_dmarc_policy(result["dmarc_record"])
    logging.debug(f"DMARC policy for {domain}: {result['dmarc_policy']}")

    reasons = spoofable_reasons(result)
    for reason in reasons:
        logging.debug(f"{domain} is spoofable: {reason}")
    result["spoofable"] = len(reasons) > 0

    return result


def results_to_json(results: Union[DomainCheckResult, dict[str, object]]) -> str:
    """
    Converts a result dictionary to a JSON string

    Args:
        results (dict): A dictionary of results

    Returns:
        str: Results in JSON format
    """
    return json.dumps(results, ensure_ascii=False, indent=2)
