import json
import unittest

from biaz.verification.claims import ClaimVerifier, ExtractedClaim, filter_evidence

from fakes import RoutingBackend, ScriptedBackend, gateway_for, memory_cache

CLAIMS = [
    {"text": "Apple reported revenue of $94.9 billion.", "confidence": 0.9},
    {"text": "iPhone sales rose 6% year over year.", "confidence": 0.6},
]


class TestEvidenceFilter(unittest.TestCase):
    def test_drops_own_domain_and_subdomains(self):
        links = [
            "https://www.reuters.com/markets/apple",
            "https://markets.reuters.com/x",
            "https://investor.apple.com/q4",
            "https://www.sec.gov/filing",
            "https://www.sec.gov/filing",
            "not a url",
        ]
        self.assertEqual(
            filter_evidence(links, "reuters.com"),
            ["https://investor.apple.com/q4", "https://www.sec.gov/filing"],
        )


class TestClaimVerifier(unittest.IsolatedAsyncioTestCase):
    async def test_extract_is_cached(self):
        backend = RoutingBackend(claims=CLAIMS)
        verifier = ClaimVerifier(gateway_for(backend), memory_cache())
        first = await verifier.extract_claims("Apple article body", "Apple beats")
        second = await verifier.extract_claims("Apple article body", "Apple beats")
        self.assertEqual(first, second)
        self.assertEqual([c.confidence for c in first], [0.9, 0.6])
        self.assertEqual(backend.calls, ["extract"])

    async def test_verify_filters_evidence_and_reports_progress(self):
        def verdicts(texts):
            return [
                {
                    "text": t,
                    "verified": i == 0,
                    "confidence": 0.8,
                    "evidenceLinks": ["https://www.reuters.com/own", "https://www.sec.gov/10-q"],
                }
                for i, t in enumerate(texts)
            ]

        backend = RoutingBackend(claims=CLAIMS, verdicts=verdicts)
        verifier = ClaimVerifier(gateway_for(backend), memory_cache())
        extracted = [ExtractedClaim(c["text"], c["confidence"]) for c in CLAIMS]
        seen = []
        claims = await verifier.verify_claims(extracted, "context", "reuters.com", seen.append)

        self.assertEqual(seen, [0.0, 0.5, 1.0])
        self.assertEqual([c.verified for c in claims], [True, False])
        for c in claims:
            self.assertEqual(c.evidence_links, ["https://www.sec.gov/10-q"])

    async def test_verify_uses_cache_unless_bypassed(self):
        backend = RoutingBackend(claims=CLAIMS)
        verifier = ClaimVerifier(gateway_for(backend), memory_cache())
        extracted = [ExtractedClaim(c["text"], c["confidence"]) for c in CLAIMS]
        await verifier.verify_claims(extracted, "ctx", "example.com")
        await verifier.verify_claims(extracted, "ctx", "example.com")
        self.assertEqual(backend.calls, ["verify"])
        await verifier.verify_claims(extracted, "ctx", "example.com", use_cache=False)
        self.assertEqual(backend.calls, ["verify", "verify"])

    async def test_unparseable_verification_marks_claims_unverified(self):
        backend = ScriptedBackend("p", ["I cannot verify these."])
        verifier = ClaimVerifier(gateway_for(backend), memory_cache())
        extracted = [ExtractedClaim("Claim one is specific.", 0.7)]
        claims = await verifier.verify_claims(extracted, "ctx", "example.com")
        self.assertEqual(len(claims), 1)
        self.assertFalse(claims[0].verified)
        self.assertEqual(claims[0].confidence, 0.7)
        self.assertEqual(claims[0].evidence_links, [])

    async def test_confidence_clamped(self):
        backend = ScriptedBackend("p", [json.dumps([{"text": "x", "confidence": 7}, {"text": "", "confidence": 1}])])
        verifier = ClaimVerifier(gateway_for(backend), memory_cache())
        claims = await verifier.extract_claims("body", "title")
        self.assertEqual(claims, [ExtractedClaim("x", 1.0)])

    async def test_no_claims_reports_start_and_end(self):
        verifier = ClaimVerifier(gateway_for(ScriptedBackend("p", [])), memory_cache())
        seen = []
        self.assertEqual(await verifier.verify_claims([], "ctx", None, seen.append), [])
        self.assertEqual(seen, [0.0, 1.0])


if __name__ == "__main__":
    unittest.main()
