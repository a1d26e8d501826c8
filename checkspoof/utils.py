# -*- coding: utf-8 -*-
"""DNS utility functions"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Optional
from collections.abc import Sequence

import dns.exception
import dns.resolver
from dns.nameserver import Nameserver
import publicsuffixlist

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

DOMAIN_REGEX_STRING = (
    r"(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9][a-z0-9-]{0,61}[a-z0-9]"
)
# Case-sensitive; normalize_domain lowercases input before matching
DOMAIN_REGEX = re.compile(DOMAIN_REGEX_STRING)
MAX_DOMAIN_LENGTH = 253
ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")  # includes ZWSP, ZWNJ, ZWJ, BOM
PSL = publicsuffixlist.PublicSuffixList()


class ValidationError(ValueError):
    """Raised when a string is not a syntactically valid domain name"""

    def __init__(self, domain: str):
        self.domain = domain
        ValueError.__init__(self, "the domain name entered is not valid")


class DNSException(Exception):
    """Raised when a general DNS error occurs"""

    def __init__(self, error, data: Optional[dict] = None):
        if isinstance(error, dns.exception.Timeout) and "timeout" in error.kwargs:
            error.kwargs["timeout"] = round(error.kwargs["timeout"], 1)
        self.data = data
        Exception.__init__(self, str(error))


class RecordLookupError(DNSException):
    """Raised when a DNS query fails for a reason other than a missing record"""

    def __init__(
        self,
        error,
        *,
        domain: str,
        record_type: str,
        data: Optional[dict] = None,
    ):
        """
        Args:
            error: The underlying DNS exception or an error message
            domain (str): The name that was queried
            record_type (str): The kind of record being fetched
                               (``SPF`` or ``DMARC``)
            data (dict): A dictionary of data to include in the output
        """
        self.domain = domain
        self.record_type = record_type
        DNSException.__init__(self, error, data=data)

    def __str__(self):
        return (
            f"Failed to look up the {self.record_type} record at "
            f"{self.domain}: {self.args[0]}"
        )


def normalize_domain(domain: str) -> str:
    """
    Normalize an input domain by removing zero-width characters, surrounding
    whitespace and a trailing root dot, and lowering it

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: A normalized domain
    """
    domain = unicodedata.normalize("NFC", domain)
    domain = ZERO_WIDTH_RE.sub("", domain).strip()
    if domain.endswith("."):
        domain = domain[:-1]
    return domain.lower()


def validate_domain(domain: str) -> str:
    """
    Checks that the given string is a syntactically valid domain name

    Args:
        domain (str): A domain name

    Returns:
        str: The normalized domain name

    Raises:
        :exc:`checkspoof.utils.ValidationError`
    """
    if not isinstance(domain, str):
        raise ValidationError(domain)
    normalized_domain = normalize_domain(domain)
    if (
        len(normalized_domain) > MAX_DOMAIN_LENGTH
        or DOMAIN_REGEX.fullmatch(normalized_domain) is None
    ):
        logging.debug(f"Rejected invalid domain name: {domain!r}")
        raise ValidationError(domain)
    return normalized_domain


def get_base_domain(domain: str) -> str:
    """
    Gets the base domain name for the given domain

    .. note::
        Results are based on a list of public domain suffixes at
        https://publicsuffix.org/list/public_suffix_list.dat.

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: The base domain of the given domain

    """
    domain = normalize_domain(domain)
    return PSL.privatesuffix(domain) or domain


def _build_resolver(
    nameservers: Optional[Sequence[str | Nameserver]],
    timeout: float,
) -> dns.resolver.Resolver:
    resolver = dns.resolver.Resolver()
    if nameservers is not None:
        resolver.nameservers = list(nameservers)
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


def query_txt(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> list[str]:
    """
    Queries DNS for TXT records, issuing exactly one query

    Args:
        domain (str): The domain or subdomain to query about
        nameservers (list): A list of one or more nameservers to use
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): Sets the DNS timeout in seconds

    Returns:
        list: TXT strings in answer order; an empty list if the name does
        not exist or has no TXT records

    Raises:
        :exc:`dns.exception.DNSException` for any other DNS failure
    """
    timeout = float(timeout)
    if resolver is None:
        resolver = _build_resolver(nameservers, timeout)
    logging.debug(f"Querying TXT records for {domain}")
    try:
        answers = resolver.resolve(domain, "TXT", lifetime=timeout)
    except dns.resolver.NXDOMAIN:
        logging.debug(f"{domain} does not exist")
        return []
    except dns.resolver.NoAnswer:
        logging.debug(f"{domain} does not have any TXT records")
        return []

    records = []
    for answer in answers:
        # Multi-string TXT records are a single value split into chunks
        joined = b"".join(answer.strings)
        try:
            records.append(joined.decode())
        except UnicodeDecodeError:
            logging.warning(
                f"A TXT record at {domain} contains undecodable characters"
            )
            records.append(joined.decode(errors="replace"))
    return records


def find_tagged_record(records: Sequence[str], version_tag: str) -> Optional[str]:
    """
    Returns the first record that starts with the given version tag

    Args:
        records (list): TXT strings
        version_tag (str): A version tag such as ``v=spf1``

    Returns:
        str: The matching record, or ``None``
    """
    version_tag = version_tag.lower()
    for record in records:
        if record.lstrip().lower().startswith(version_tag):
            return record
    return None
