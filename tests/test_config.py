import os
import unittest
from unittest import mock

from biaz.config import Settings
from biaz.llm.gateway import build_gateway

BASE_ENV = {
    "PG_DSN": "dbname=biaz_test",
    "GOOGLE_API_KEY": "g-key",
    "OPENAI_API_KEY": "o-key",
}


class TestSettings(unittest.TestCase):
    def test_from_env(self):
        env = dict(BASE_ENV, AI_PROVIDER="Gemini", RSS_FEEDS="https://a.example/rss, https://b.example/rss",
                   SEARCH_QUERIES="Apple stock; chip exports", API_URL="https://api.example.org/")
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.ai_provider, "gemini")
        self.assertEqual(settings.rss_feeds, ["https://a.example/rss", "https://b.example/rss"])
        self.assertEqual(settings.search_queries, ["Apple stock", "chip exports"])
        self.assertEqual(settings.public_base_url, "https://api.example.org")
        self.assertFalse(settings.azure_configured)
        self.assertFalse(settings.images_configured)
        self.assertEqual(settings.quote_cache_ttl, 900)

    def test_validation_collects_errors(self):
        with mock.patch.dict(os.environ, {"AI_PROVIDER": "llama", "PAGE_TIMEOUT": "0"}, clear=True):
            with self.assertRaises(ValueError) as ctx:
                Settings.from_env()
        message = str(ctx.exception)
        self.assertIn("AI_PROVIDER", message)
        self.assertIn("generative backend", message)
        self.assertIn("timeouts", message)


class TestGatewayWiring(unittest.TestCase):
    def test_unconfigured_provider_falls_back(self):
        settings = Settings(ai_provider="azure", google_api_key="g-key", openai_api_key="o-key")
        gateway = build_gateway(settings)
        self.assertEqual(gateway.primary.name, "gemini")
        self.assertEqual(gateway.secondary.name, "openai")

    def test_provider_order(self):
        settings = Settings(ai_provider="openai", google_api_key="g-key", openai_api_key="o-key")
        gateway = build_gateway(settings)
        self.assertEqual(gateway.primary.name, "openai")
        self.assertEqual(gateway.secondary.name, "gemini")


if __name__ == "__main__":
    unittest.main()
