import unittest

from fakes import FakeAcquirer, FakeImages, FakeQuotes, MemoryRepo, RoutingBackend, gateway_for, memory_cache

from biaz.forecast.forecasts import ForecastService
from biaz.pipeline.ingest import IngestionOrchestrator
from biaz.scoring.admission import AdmissionPolicy
from biaz.storage.records import TaskStatus
from biaz.symbols.resolver import SymbolResolver
from biaz.tasks.queue import GENERATE_FORECAST, INGEST_ARTICLE, RESCORE_ARTICLE, TaskQueue
from biaz.verification.claims import ClaimVerifier

from test_ingest import CLAIMS, URL, fetched


class TestTaskQueue(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.repo = MemoryRepo()
        self.backend = RoutingBackend(
            claims=CLAIMS,
            forecast='{"sentiment": "positive", "impactScore": 0.7, "priceTarget": 1100, '
            '"timeHorizon": "1_month", "confidence": 0.8, "reasoning": "Demand outlook raised."}',
        )
        gateway = gateway_for(self.backend)
        cache = memory_cache()
        quotes = FakeQuotes()
        self.forecasts = ForecastService(gateway, cache, self.repo, quotes)
        orchestrator = IngestionOrchestrator(
            self.repo,
            FakeAcquirer(fetched()),
            SymbolResolver(gateway),
            ClaimVerifier(gateway, cache),
            AdmissionPolicy(self.repo, FakeImages()),
            self.forecasts,
            quotes,
        )
        self.queue = TaskQueue(self.repo, orchestrator, self.forecasts)

    async def test_ingest_task_completes_with_article(self):
        task_id = await self.queue.submit(INGEST_ARTICLE, {"url": URL})
        self.assertEqual(self.repo.tasks[task_id].status, TaskStatus.PENDING)
        await self.queue.drain()

        task = await self.queue.get_status(task_id)
        self.assertEqual(task.status, TaskStatus.COMPLETED)
        self.assertEqual(task.progress, 100)
        self.assertEqual(task.result["url"], URL)
        self.assertEqual(task.result["symbols"], ["NVDA"])
        self.assertIsNotNone(task.completed_at)

        updates = self.repo.task_updates[task_id]
        self.assertEqual(updates[0]["status"], TaskStatus.PROCESSING)
        percents = [u["progress"] for u in updates if "progress" in u]
        self.assertEqual(percents, sorted(percents))

    async def test_rejection_marks_task_failed(self):
        task_id = await self.queue.submit(INGEST_ARTICLE, {"content": "A quiet day at the harbour with calm seas."})
        await self.queue.drain()
        task = await self.queue.get_status(task_id)
        self.assertEqual(task.status, TaskStatus.FAILED)
        self.assertEqual(task.error_message, "No stock symbols found in article")
        self.assertIsNotNone(task.completed_at)

    async def test_unknown_task_type_fails(self):
        task_id = await self.queue.submit("reticulate-splines", {})
        await self.queue.drain()
        task = await self.queue.get_status(task_id)
        self.assertEqual(task.status, TaskStatus.FAILED)
        self.assertIn("Unknown task type", task.error_message)

    async def test_forecast_and_rescore_tasks(self):
        ingest_id = await self.queue.submit(INGEST_ARTICLE, {"url": URL})
        await self.queue.drain()
        article_id = (await self.queue.get_status(ingest_id)).result["id"]

        forecast_id = await self.queue.submit(GENERATE_FORECAST, {"article_id": article_id, "symbol": "nvda"})
        rescore_id = await self.queue.submit(RESCORE_ARTICLE, {"article_id": article_id})
        await self.queue.drain()

        forecast = (await self.queue.get_status(forecast_id)).result
        self.assertEqual(forecast["symbol"], "NVDA")
        self.assertEqual(forecast["sentiment"], "positive")
        self.assertEqual(forecast["time_horizon"], "1_month")
        rescored = await self.queue.get_status(rescore_id)
        self.assertEqual(rescored.status, TaskStatus.COMPLETED)
        self.assertEqual(rescored.result["truth_score"], 1.0)

    async def test_missing_input_key_fails(self):
        task_id = await self.queue.submit(RESCORE_ARTICLE, {})
        await self.queue.drain()
        task = await self.queue.get_status(task_id)
        self.assertEqual(task.status, TaskStatus.FAILED)


class TestTaskStatus(unittest.TestCase):
    def test_only_lifecycle_states_are_defined(self):
        states = {k: v for k, v in vars(TaskStatus).items() if not k.startswith("_")}
        self.assertEqual(
            states,
            {"PENDING": "pending", "PROCESSING": "processing", "COMPLETED": "completed", "FAILED": "failed"},
        )


if __name__ == "__main__":
    unittest.main()
