import unittest

from biaz.errors import IngestionRejected, RejectionReason
from biaz.scoring.admission import AdmissionPolicy, check_content, is_advertisement
from biaz.storage.records import Article

from fakes import FakeImages, MemoryRepo


def _stored(title="Stored title", image_url="https://img.example.org/used.jpg"):
    return Article(
        id="art_1",
        url="https://example.com/a",
        title=title,
        summary="s",
        truth_score=0.5,
        impact_sentiment="neutral",
        explanation="",
        image_url=image_url,
    )


class TestAdvertisementCheck(unittest.TestCase):
    def test_keyword_in_first_500_chars(self):
        text = "x" * 480 + " Subscribe to our newsletter"
        self.assertTrue(is_advertisement("Apple earnings", text))

    def test_keyword_after_500_chars_ignored(self):
        text = "x" * 600 + " subscribe to our newsletter"
        self.assertFalse(is_advertisement("Apple earnings", text))

    def test_keyword_in_title(self):
        self.assertTrue(is_advertisement("Join now for premium picks", "clean text"))

    def test_advertisement_rejected_even_when_manual(self):
        with self.assertRaises(IngestionRejected) as ctx:
            check_content(["AAPL"], "Get access to AAPL research", "body", manual=True)
        self.assertEqual(ctx.exception.reason, RejectionReason.ADVERTISEMENT)

    def test_no_symbols(self):
        with self.assertRaises(IngestionRejected) as ctx:
            check_content([], "Title", "body")
        self.assertEqual(ctx.exception.reason, RejectionReason.NO_SYMBOLS)
        self.assertEqual(str(ctx.exception), "No stock symbols found in article")
        check_content([], "Title", "body", manual=True)


class TestAdmissionPolicy(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.repo = MemoryRepo()
        self.repo.articles["art_1"] = _stored()

    async def test_duplicate_title(self):
        policy = AdmissionPolicy(self.repo)
        with self.assertRaises(IngestionRejected) as ctx:
            await policy.check_title("Stored title")
        self.assertEqual(ctx.exception.reason, RejectionReason.DUPLICATE_TITLE)
        await policy.check_title("Fresh title")

    async def test_unused_lead_image_kept(self):
        images = FakeImages()
        policy = AdmissionPolicy(self.repo, images)
        url = "https://img.example.org/new.jpg"
        self.assertEqual(await policy.select_image(url, "t", ["AAPL"]), url)
        self.assertEqual(images.calls, [])

    async def test_used_image_replaced_by_generated(self):
        images = FakeImages("https://api.example.org/images/AAPL-1.jpg")
        policy = AdmissionPolicy(self.repo, images)
        chosen = await policy.select_image("https://img.example.org/used.jpg", "t", ["AAPL"])
        self.assertEqual(chosen, "https://api.example.org/images/AAPL-1.jpg")
        self.assertEqual(images.calls, [("t", "AAPL")])

    async def test_no_image_rejected_unless_manual(self):
        policy = AdmissionPolicy(self.repo, FakeImages(None))
        with self.assertRaises(IngestionRejected) as ctx:
            await policy.select_image(None, "t", ["AAPL"])
        self.assertEqual(ctx.exception.reason, RejectionReason.NO_IMAGE)
        self.assertIsNone(await policy.select_image(None, "t", ["AAPL"], manual=True))


if __name__ == "__main__":
    unittest.main()
