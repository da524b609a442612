import unittest

from biaz.cache.redis_cache import RedisCache, ai_cache_key

from fakes import BrokenRedisClient, FakeRedisClient


class TestCacheKey(unittest.TestCase):
    def test_key_is_stable_and_prefixed(self):
        a = ai_cache_key("extract-claims", "Apple beats estimates")
        self.assertEqual(a, ai_cache_key("extract-claims", "Apple beats estimates"))
        self.assertTrue(a.startswith("ai:extract-claims:"))
        self.assertEqual(len(a.split(":")[-1]), 32)
        self.assertNotEqual(a, ai_cache_key("verify-claims", "Apple beats estimates"))


class TestRedisCache(unittest.IsolatedAsyncioTestCase):
    async def test_round_trip_with_ttl(self):
        client = FakeRedisClient()
        cache = RedisCache(client)
        await cache.set_json("k", [{"text": "x"}], 60)
        self.assertEqual(await cache.get_json("k"), [{"text": "x"}])
        self.assertEqual(client.ttls["k"], 60)
        await cache.delete("k")
        self.assertIsNone(await cache.get("k"))

    async def test_backend_failures_degrade(self):
        cache = RedisCache(BrokenRedisClient())
        with self.assertLogs("biaz.cache.redis_cache", level="WARNING"):
            self.assertIsNone(await cache.get("k"))
            await cache.set("k", "v", 10)
            await cache.delete("k")
            self.assertIsNone(await cache.get_json("k"))
            await cache.close()

    async def test_undecodable_entry_is_a_miss(self):
        client = FakeRedisClient()
        client.data["k"] = "{not json"
        self.assertIsNone(await RedisCache(client).get_json("k"))


if __name__ == "__main__":
    unittest.main()
