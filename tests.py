#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import io
import json
import unittest
from contextlib import redirect_stdout
from unittest import mock

import dns.exception
import dns.resolver

import checkspoof
import checkspoof._cli
import checkspoof.dmarc
import checkspoof.spf
import checkspoof.utils


class FakeAnswer:
    """Mimics a dnspython TXT rdata"""

    def __init__(self, *strings):
        self.strings = tuple(
            s.encode() if isinstance(s, str) else s for s in strings
        )


class FakeResolver:
    """Serves canned TXT answers and records every query made"""

    def __init__(self, records=None, errors=None):
        self.records = records or {}
        self.errors = errors or {}
        self.queries = []

    def resolve(self, qname, rdtype, lifetime=None):
        self.queries.append((qname, rdtype))
        if qname in self.errors:
            raise self.errors[qname]
        if qname not in self.records:
            raise dns.resolver.NXDOMAIN()
        answers = self.records[qname]
        if len(answers) == 0:
            raise dns.resolver.NoAnswer()
        return [
            FakeAnswer(*answer) if isinstance(answer, tuple) else FakeAnswer(answer)
            for answer in answers
        ]


def check(domain, records=None, errors=None):
    resolver = FakeResolver(records, errors)
    return checkspoof.check_domain(domain, resolver=resolver), resolver


class ValidationTest(unittest.TestCase):
    def testInvalidDomainsAreRejected(self):
        """Strings that are not domain names are rejected before any DNS query"""
        invalid_domains = [
            "not a domain",
            "-bad.com",
            "bad-.com",
            "",
            "com",
            "example..com",
            "exa_mple.com",
            "http://example.com",
            "a" * 64 + ".com",
        ]
        for domain in invalid_domains:
            resolver = FakeResolver()
            with self.assertRaises(checkspoof.ValidationError) as context:
                checkspoof.check_domain(domain, resolver=resolver)
            self.assertEqual(
                str(context.exception), "the domain name entered is not valid"
            )
            self.assertEqual(context.exception.domain, domain)
            self.assertEqual(resolver.queries, [], domain)

    def testValidationErrorIsValueError(self):
        with self.assertRaises(ValueError):
            checkspoof.utils.validate_domain("not a domain")

    def testNoResolverIsBuiltForInvalidDomains(self):
        """An invalid domain never reaches the DNS layer"""
        with mock.patch("dns.resolver.Resolver") as resolver_class:
            with self.assertRaises(checkspoof.ValidationError):
                checkspoof.check_domain("-bad.com")
            resolver_class.assert_not_called()

    def testValidDomainsAreAccepted(self):
        valid_domains = ["example.com", "a.b.co", "mail-1.example.org", "x1.io"]
        for domain in valid_domains:
            self.assertEqual(checkspoof.utils.validate_domain(domain), domain)

    def testDomainsAreNormalized(self):
        """Case, surrounding whitespace, and a trailing root dot are normalized"""
        self.assertEqual(
            checkspoof.utils.validate_domain(" Example.COM. "), "example.com"
        )
        self.assertEqual(
            checkspoof.utils.validate_domain("exam\u200bple.com"), "example.com"
        )

    def testLabelLengthLimit(self):
        checkspoof.utils.validate_domain("a" * 63 + ".com")

    def testTotalLengthLimit(self):
        """Names longer than 253 characters are rejected before any DNS query"""
        label = "a" * 63
        checkspoof.utils.validate_domain(".".join([label] * 3) + ".com")
        too_long = ".".join([label] * 4) + ".com"
        resolver = FakeResolver()
        with self.assertRaises(checkspoof.ValidationError):
            checkspoof.check_domain(too_long, resolver=resolver)
        self.assertEqual(resolver.queries, [])


class SPFTest(unittest.TestCase):
    def testSPFFailureTypes(self):
        examples = {
            "v=spf1 include:_spf.example.com ~all": "soft",
            "v=spf1 -all": "hard",
            "v=spf1 ip4:192.0.2.1 ?all": "neutral",
            "v=spf1 ip4:192.0.2.1 +all": "unset",
            "v=spf1 redirect=_spf.example.com": "unset",
            "v=spf1 ip4:147.75.8.208 -ALL": "hard",
        }
        for record, failure_type in examples.items():
            self.assertEqual(
                checkspoof.spf.get_spf_failure_type(record), failure_type, record
            )

    def testSPFFailureTypePrecedence(self):
        """Soft fail wins when a record contains more than one all qualifier"""
        self.assertEqual(
            checkspoof.spf.get_spf_failure_type("v=spf1 -all ~all"), "soft"
        )
        self.assertEqual(
            checkspoof.spf.get_spf_failure_type("v=spf1 ?all -all"), "hard"
        )

    def testMissingSPFRecordIsUnset(self):
        self.assertEqual(checkspoof.spf.get_spf_failure_type(None), "unset")

    def testFirstSPFRecordIsUsed(self):
        resolver = FakeResolver(
            {
                "example.com": [
                    "google-site-verification=abc",
                    "v=spf1 -all",
                    "v=spf1 ~all",
                ]
            }
        )
        record = checkspoof.spf.query_spf_record("example.com", resolver=resolver)
        self.assertEqual(record, "v=spf1 -all")
        self.assertEqual(resolver.queries, [("example.com", "TXT")])

    def testSPFVersionTagIsCaseInsensitive(self):
        resolver = FakeResolver({"example.com": ["V=SPF1 -all"]})
        record = checkspoof.spf.query_spf_record("example.com", resolver=resolver)
        self.assertEqual(record, "V=SPF1 -all")

    def testSplitSPFRecord(self):
        """TXT records split into several strings are joined"""
        resolver = FakeResolver(
            {"example.com": [("v=spf1 ip4:147.75.8.208 ", "include:_spf.example.com -all")]}
        )
        record = checkspoof.spf.query_spf_record("example.com", resolver=resolver)
        self.assertEqual(
            record, "v=spf1 ip4:147.75.8.208 include:_spf.example.com -all"
        )

    def testUnrelatedTXTRecordsOnly(self):
        resolver = FakeResolver({"example.com": ["MS=ms12345678"]})
        self.assertIsNone(
            checkspoof.spf.query_spf_record("example.com", resolver=resolver)
        )

    def testUndecodableSPFRecord(self):
        """A record with undecodable bytes is still found and classified"""
        resolver = FakeResolver(
            {
                "example.com": [b"v=spf1 \xff -all"],
                "_dmarc.example.com": ["v=DMARC1; p=reject;"],
            }
        )
        with self.assertLogs(level="WARNING"):
            result = checkspoof.check_domain("example.com", resolver=resolver)
        self.assertEqual(result["spf_record"], "v=spf1 \ufffd -all")
        self.assertEqual(result["spf_failure_type"], "hard")
        self.assertFalse(result["spoofable"])

    def testResolverConfiguration(self):
        """Nameservers and the timeout are applied to a new resolver"""
        with mock.patch("dns.resolver.Resolver") as resolver_class:
            resolver = resolver_class.return_value
            resolver.resolve.return_value = [FakeAnswer("v=spf1 -all")]
            record = checkspoof.spf.query_spf_record(
                "example.com", nameservers=["192.0.2.53"], timeout=3.5
            )
        self.assertEqual(record, "v=spf1 -all")
        resolver_class.assert_called_once_with()
        self.assertEqual(resolver.nameservers, ["192.0.2.53"])
        self.assertEqual(resolver.timeout, 3.5)
        self.assertEqual(resolver.lifetime, 3.5)
        resolver.resolve.assert_called_once_with("example.com", "TXT", lifetime=3.5)

    def testSPFLookupError(self):
        timeout_error = dns.exception.Timeout(timeout=2.0001)
        resolver = FakeResolver(errors={"example.com": timeout_error})
        with self.assertRaises(checkspoof.RecordLookupError) as context:
            checkspoof.spf.query_spf_record("example.com", resolver=resolver)
        self.assertEqual(context.exception.domain, "example.com")
        self.assertEqual(context.exception.record_type, "SPF")
        self.assertIn("example.com", str(context.exception))
        self.assertEqual(timeout_error.kwargs["timeout"], 2.0)

    def testCheckSPFReportsErrors(self):
        resolver = FakeResolver(
            errors={"example.com": dns.resolver.NoNameservers()}
        )
        results = checkspoof.spf.check_spf("example.com", resolver=resolver)
        self.assertIsNone(results["record"])
        self.assertEqual(results["failure_type"], "unset")
        self.assertIn("error", results)

    def testCheckSPF(self):
        resolver = FakeResolver({"example.com": ["v=spf1 ?all"]})
        results = checkspoof.spf.check_spf("example.com", resolver=resolver)
        self.assertEqual(
            results, {"record": "v=spf1 ?all", "failure_type": "neutral"}
        )


class DMARCTest(unittest.TestCase):
    def testDMARCPolicies(self):
        examples = {
            "v=DMARC1; p=reject;": "reject",
            "v=DMARC1; p=quarantine; pct=50": "quarantine",
            "v=DMARC1; p=none;": "unset",
            "v=DMARC1; p=none; sp=reject": "reject",
            "v=DMARC1; rua=mailto:dmarc@example.com": "unset",
            "v=DMARC1;p=ReJect": "reject",
        }
        for record, policy in examples.items():
            self.assertEqual(
                checkspoof.dmarc.get_dmarc_policy(record), policy, record
            )

    def testDMARCPolicyPrecedence(self):
        """Quarantine is checked before reject"""
        self.assertEqual(
            checkspoof.dmarc.get_dmarc_policy("v=DMARC1; p=reject; sp=quarantine"),
            "quarantine",
        )

    def testMissingDMARCRecordIsUnset(self):
        self.assertEqual(checkspoof.dmarc.get_dmarc_policy(None), "unset")

    def testDMARCRecordLocation(self):
        resolver = FakeResolver(
            {"_dmarc.example.com": ["v=DMARC1; p=reject;"]}
        )
        record = checkspoof.dmarc.query_dmarc_record(
            "Example.com", resolver=resolver
        )
        self.assertEqual(record, "v=DMARC1; p=reject;")
        self.assertEqual(resolver.queries, [("_dmarc.example.com", "TXT")])

    def testDMARCRecordWithLeadingWhitespace(self):
        resolver = FakeResolver({"_dmarc.example.com": [" v=DMARC1; p=reject"]})
        record = checkspoof.dmarc.query_dmarc_record("example.com", resolver=resolver)
        self.assertEqual(record, " v=DMARC1; p=reject")
        self.assertEqual(checkspoof.dmarc.get_dmarc_policy(record), "reject")

    def testDMARCRecordAtRootIsIgnored(self):
        resolver = FakeResolver({"example.com": ["v=DMARC1; p=reject;"]})
        self.assertIsNone(
            checkspoof.dmarc.query_dmarc_record("example.com", resolver=resolver)
        )

    def testNoBaseDomainFallback(self):
        resolver = FakeResolver(
            {"_dmarc.example.com": ["v=DMARC1; p=reject;"]}
        )
        self.assertIsNone(
            checkspoof.dmarc.query_dmarc_record("mail.example.com", resolver=resolver)
        )
        self.assertEqual(resolver.queries, [("_dmarc.mail.example.com", "TXT")])

    def testDMARCLookupError(self):
        resolver = FakeResolver(
            errors={"_dmarc.example.com": dns.resolver.NoNameservers()}
        )
        with self.assertRaises(checkspoof.RecordLookupError) as context:
            checkspoof.dmarc.query_dmarc_record("example.com", resolver=resolver)
        self.assertEqual(context.exception.domain, "_dmarc.example.com")
        self.assertEqual(context.exception.record_type, "DMARC")

    def testCheckDMARC(self):
        resolver = FakeResolver(
            {"_dmarc.example.com": ["v=DMARC1; p=quarantine;"]}
        )
        results = checkspoof.dmarc.check_dmarc("example.com", resolver=resolver)
        self.assertEqual(results["location"], "_dmarc.example.com")
        self.assertEqual(results["policy"], "quarantine")
        self.assertNotIn("error", results)


class CheckDomainTest(unittest.TestCase):
    def testNoRecords(self):
        """A domain without any TXT records is spoofable"""
        result, resolver = check("example.com")
        self.assertIsNone(result["spf_record"])
        self.assertIsNone(result["dmarc_record"])
        self.assertEqual(result["spf_failure_type"], "unset")
        self.assertEqual(result["dmarc_policy"], "unset")
        self.assertTrue(result["spoofable"])
        self.assertEqual(
            resolver.queries,
            [("example.com", "TXT"), ("_dmarc.example.com", "TXT")],
        )

    def testNoAnswerIsNotAnError(self):
        result, _ = check("example.com", {"example.com": [], "_dmarc.example.com": []})
        self.assertIsNone(result["spf_record"])
        self.assertTrue(result["spoofable"])

    def testSoftFailIsSpoofable(self):
        """A soft fail SPF record is spoofable even with a reject DMARC policy"""
        result, _ = check(
            "example.com",
            {
                "example.com": ["v=spf1 include:_spf.example.com ~all"],
                "_dmarc.example.com": ["v=DMARC1; p=reject;"],
            },
        )
        self.assertEqual(result["spf_failure_type"], "soft")
        self.assertEqual(result["dmarc_policy"], "reject")
        self.assertTrue(result["spoofable"])

    def testHardFailWithRejectIsNotSpoofable(self):
        result, _ = check(
            "example.com",
            {
                "example.com": ["v=spf1 -all"],
                "_dmarc.example.com": ["v=DMARC1; p=reject;"],
            },
        )
        self.assertEqual(
            result,
            {
                "domain": "example.com",
                "base_domain": "example.com",
                "spf_record": "v=spf1 -all",
                "spf_failure_type": "hard",
                "dmarc_record": "v=DMARC1; p=reject;",
                "dmarc_policy": "reject",
                "spoofable": False,
            },
        )

    def testNeutralWithQuarantineIsNotSpoofable(self):
        """Neutral SPF records do not make a domain spoofable on their own"""
        result, _ = check(
            "example.com",
            {
                "example.com": ["v=spf1 ?all"],
                "_dmarc.example.com": ["v=DMARC1; p=quarantine;"],
            },
        )
        self.assertEqual(result["spf_failure_type"], "neutral")
        self.assertFalse(result["spoofable"])

    def testNonePolicyIsSpoofable(self):
        result, _ = check(
            "example.com",
            {
                "example.com": ["v=spf1 -all"],
                "_dmarc.example.com": ["v=DMARC1; p=none;"],
            },
        )
        self.assertEqual(result["dmarc_policy"], "unset")
        self.assertTrue(result["spoofable"])

    def testMissingDMARCIsSpoofable(self):
        result, _ = check("example.com", {"example.com": ["v=spf1 -all"]})
        self.assertIsNone(result["dmarc_record"])
        self.assertTrue(result["spoofable"])

    def testIdempotence(self):
        records = {
            "example.com": ["v=spf1 ~all"],
            "_dmarc.example.com": ["v=DMARC1; p=reject;"],
        }
        first, _ = check("example.com", records)
        second, _ = check("example.com", records)
        self.assertEqual(first, second)
        self.assertIsNot(first, second)

    def testLookupErrorKeepsPartialResult(self):
        result_error = dns.exception.Timeout(timeout=2.0)
        resolver = FakeResolver(
            {"example.com": ["v=spf1 -all"]},
            errors={"_dmarc.example.com": result_error},
        )
        with self.assertRaises(checkspoof.RecordLookupError) as context:
            checkspoof.check_domain("example.com", resolver=resolver)
        error = context.exception
        self.assertEqual(error.record_type, "DMARC")
        partial_result = error.data["partial_result"]
        self.assertEqual(partial_result["spf_record"], "v=spf1 -all")
        self.assertIsNone(partial_result["dmarc_record"])
        self.assertIsNone(partial_result["spoofable"])

    def testSPFLookupErrorStopsBeforeDMARC(self):
        resolver = FakeResolver(errors={"example.com": dns.resolver.NoNameservers()})
        with self.assertRaises(checkspoof.RecordLookupError):
            checkspoof.check_domain("example.com", resolver=resolver)
        self.assertEqual(resolver.queries, [("example.com", "TXT")])

    def testSpoofableReasons(self):
        result = {
            "spf_record": "v=spf1 ~all",
            "spf_failure_type": "soft",
            "dmarc_record": None,
            "dmarc_policy": "unset",
        }
        self.assertEqual(
            checkspoof.spoofable_reasons(result),
            [
                "SPF record uses a soft fail (~all)",
                "No DMARC record found",
                "DMARC policy is not quarantine or reject",
            ],
        )
        self.assertTrue(checkspoof.is_spoofable(result))

    def testBaseDomain(self):
        result, _ = check("mail.example.com")
        self.assertEqual(result["base_domain"], "example.com")

    def testResultsToJSON(self):
        result, _ = check("example.com")
        parsed = json.loads(checkspoof.results_to_json(result))
        self.assertEqual(parsed["domain"], "example.com")
        self.assertIs(parsed["spoofable"], True)
        self.assertIsNone(parsed["spf_record"])


class CLITest(unittest.TestCase):
    def testInvalidDomainExitsWithError(self):
        with mock.patch("dns.resolver.Resolver") as resolver_class:
            with self.assertRaises(SystemExit) as context:
                checkspoof._cli._main(["bad-.com"])
            resolver_class.assert_not_called()
        self.assertEqual(context.exception.code, 1)

    def testPrintsJSON(self):
        def fake_check_domain(domain, **kwargs):
            resolver = FakeResolver({"example.com": ["v=spf1 -all"]})
            return checkspoof.check_domain(domain, resolver=resolver)

        output = io.StringIO()
        with mock.patch.object(
            checkspoof._cli, "check_domain", side_effect=fake_check_domain
        ):
            with redirect_stdout(output):
                checkspoof._cli._main(["example.com"])
        parsed = json.loads(output.getvalue())
        self.assertEqual(parsed["spf_failure_type"], "hard")
        self.assertIs(parsed["spoofable"], True)

    def testLookupErrorExitsWithError(self):
        error = checkspoof.RecordLookupError(
            "The DNS operation timed out.",
            domain="example.com",
            record_type="SPF",
        )
        with mock.patch.object(checkspoof._cli, "check_domain", side_effect=error):
            with self.assertRaises(SystemExit) as context:
                checkspoof._cli._main(["example.com", "--timeout", "0.5"])
        self.assertEqual(context.exception.code, 1)

    def testInvalidNameserverExitsWithError(self):
        with self.assertRaises(SystemExit) as context:
            checkspoof._cli._main(["example.com", "-n", "bogus"])
        self.assertEqual(context.exception.code, 1)

    def testOptionsArePassedThrough(self):
        with mock.patch.object(checkspoof._cli, "check_domain") as check_domain:
            check_domain.return_value = {"domain": "example.com"}
            with redirect_stdout(io.StringIO()):
                checkspoof._cli._main(
                    ["example.com", "-n", "192.0.2.53", "-t", "5"]
                )
        check_domain.assert_called_once_with(
            "example.com", nameservers=["192.0.2.53"], timeout=5.0
        )


if __name__ == "__main__":
    unittest.main(verbosity=2)
