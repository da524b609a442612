"""In-process background task queue with persisted task state."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from biaz.errors import IngestionRejected
from biaz.extraction.acquire import FetchStrategy
from biaz.forecast.forecasts import ForecastService
from biaz.pipeline.ingest import IngestionOrchestrator
from biaz.storage.records import Task, TaskStatus, new_id

logger = logging.getLogger(__name__)

INGEST_ARTICLE = "ingest-article"
RESCORE_ARTICLE = "rescore-article"
GENERATE_FORECAST = "generate-forecast"

Progress = Callable[[int, str], Awaitable[None]]


class TaskQueue:
    def __init__(self, repo: Any, orchestrator: IngestionOrchestrator, forecasts: ForecastService):
        self._repo = repo
        self._orchestrator = orchestrator
        self._forecasts = forecasts
        self._running: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Callable[[Dict[str, Any], Progress], Awaitable[Dict[str, Any]]]] = {
            INGEST_ARTICLE: self._ingest,
            RESCORE_ARTICLE: self._rescore,
            GENERATE_FORECAST: self._forecast,
        }

    async def submit(self, task_type: str, payload: Dict[str, Any]) -> str:
        """Persist a pending task and start it in the background."""
        task = Task(
            id=new_id("task"),
            type=task_type,
            status=TaskStatus.PENDING,
            input=dict(payload or {}),
            message="Queued",
        )
        await self._repo.create_task(task)
        runner = asyncio.create_task(self._run(task), name=task.id)
        self._running.add(runner)
        runner.add_done_callback(self._running.discard)
        logger.info(f"Submitted task {task.id} ({task_type})")
        return task.id

    async def get_status(self, task_id: str) -> Optional[Task]:
        return await self._repo.get_task(task_id)

    async def drain(self) -> None:
        """Wait for every task started by this queue."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _run(self, task: Task) -> None:
        async def progress(percent: int, message: str) -> None:
            await self._repo.update_task(task.id, progress=percent, message=message)

        try:
            await self._repo.update_task(task.id, status=TaskStatus.PROCESSING, progress=0, message="Processing")
            handler = self._handlers.get(task.type)
            if handler is None:
                raise ValueError(f"Unknown task type: {task.type}")
            result = await handler(task.input, progress)
        except Exception as e:
            if isinstance(e, IngestionRejected):
                logger.info(f"Task {task.id} rejected: {e}")
            else:
                logger.error(f"Task {task.id} failed: {e}")
            await self._repo.update_task(
                task.id,
                status=TaskStatus.FAILED,
                error_message=str(e),
                message="Failed",
                completed_at=datetime.now(timezone.utc),
            )
            return
        await self._repo.update_task(
            task.id,
            status=TaskStatus.COMPLETED,
            progress=100,
            message="Completed",
            result=result,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(f"Task {task.id} completed")

    async def _ingest(self, data: Dict[str, Any], progress: Progress) -> Dict[str, Any]:
        strategy = data.get("strategy")
        article = await self._orchestrator.ingest(
            url=data.get("url"),
            manual_symbol=data.get("symbol"),
            strategy=FetchStrategy(strategy) if strategy else None,
            pasted_content=data.get("content"),
            pasted_title=data.get("title"),
            progress=progress,
            manual=bool(data.get("manual", False)),
        )
        return article.to_dict()

    async def _rescore(self, data: Dict[str, Any], progress: Progress) -> Dict[str, Any]:
        article = await self._orchestrator.rescore(data["article_id"], progress=progress)
        return article.to_dict()

    async def _forecast(self, data: Dict[str, Any], progress: Progress) -> Dict[str, Any]:
        await progress(10, "Generating forecast")
        forecast = await self._forecasts.create(data["article_id"], data["symbol"])
        return forecast.to_dict()
