"""
Background Jobs Module
======================

Defines arq tasks for running the pipeline and the gap check off the
command line. Uses Redis as the job queue backend.
"""

from __future__ import annotations

import logging
import os
from typing import Any
from uuid import uuid4

from arq import create_pool
from arq.connections import RedisSettings
from arq.jobs import Job, JobStatus

from lure_catalog.core.config import Settings
from lure_catalog.db.engine import get_session_factory
from lure_catalog.ingestion.crawler import PageFetcher, TokenBucket
from lure_catalog.ingestion.gaps import GapDetector
from lure_catalog.ingestion.images import ImageUploader, LocalImageStorage
from lure_catalog.ingestion.pipeline import IngestionPipeline
from lure_catalog.ingestion.registry import get_default_registry
from lure_catalog.ingestion.workflow import SqlWorkflowStore

logger = logging.getLogger(__name__)

IMAGE_REQUESTS_PER_SECOND = 5.0


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from environment."""
    return RedisSettings(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", "6379")),
        database=int(os.environ.get("REDIS_DB", "0")),
    )


def build_pipeline(
    images: bool = True,
    max_concurrency: int | None = None,
    dry_run: bool = False,
) -> IngestionPipeline:
    """
    Assemble a pipeline against the configured database and sources.

    Args:
        images: Rehost color images into local storage
        max_concurrency: Worker pool size override
        dry_run: Extract without writing

    Returns:
        IngestionPipeline ready to run
    """
    registry = get_default_registry()
    settings = Settings.from_env()
    session_factory = get_session_factory()
    workflow = SqlWorkflowStore(session_factory, note_max_length=registry.global_config.note_max_length)

    uploader = None
    if images and not dry_run:
        storage = LocalImageStorage(settings.image_storage_path, settings.image_public_url)
        # One limiter shared by image downloads from every source
        image_fetcher = PageFetcher(rate_limiter=TokenBucket(IMAGE_REQUESTS_PER_SECOND, burst_limit=5))
        uploader = ImageUploader(storage, image_fetcher, width=registry.global_config.image_width)

    return IngestionPipeline(
        workflow,
        session_factory,
        registry,
        image_uploader=uploader,
        deploy_hook_url=settings.deploy_hook_url,
        max_concurrency=max_concurrency,
        dry_run=dry_run,
    )


def build_gap_detector() -> GapDetector:
    """Assemble a gap detector against the configured database and sources."""
    registry = get_default_registry()
    session_factory = get_session_factory()
    workflow = SqlWorkflowStore(session_factory, note_max_length=registry.global_config.note_max_length)
    return GapDetector(workflow, session_factory, registry)


async def run_pipeline_job(
    ctx: dict[str, Any],
    source: str | None = None,
    limit: int = 0,
) -> dict[str, Any]:
    """
    Process pending workflow entries.

    Args:
        ctx: arq context (contains Redis connection)
        source: Restrict to one source
        limit: Maximum entries to process (0 = all)

    Returns:
        PipelineResult as dictionary
    """
    job_id = ctx.get("job_id", str(uuid4()))
    logger.info(f"Job {job_id}: pipeline run (source={source or 'all'}, limit={limit})")

    result = await build_pipeline().run(source_id=source, limit=limit)

    data = result.to_dict()
    data["job_id"] = job_id
    return data


async def run_gap_check_job(
    ctx: dict[str, Any],
    source: str | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Run the gap check.

    Args:
        ctx: arq context (contains Redis connection)
        source: Restrict to one source
        dry_run: Report without touching the workflow queue

    Returns:
        GapReport as dictionary
    """
    job_id = ctx.get("job_id", str(uuid4()))
    logger.info(f"Job {job_id}: gap check (source={source or 'all'}, dry_run={dry_run})")

    report = await build_gap_detector().run(source_id=source, dry_run=dry_run)

    data = report.to_dict()
    data["job_id"] = job_id
    return data


async def enqueue_pipeline(source: str | None = None, limit: int = 0) -> str:
    """
    Enqueue a pipeline run for async processing.

    Args:
        source: Restrict to one source
        limit: Maximum entries to process (0 = all)

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job("run_pipeline_job", source, limit)
    finally:
        await redis.close()
    if job is None:
        raise RuntimeError("A job with the same id is already queued")
    return job.job_id


async def enqueue_gap_check(source: str | None = None, dry_run: bool = False) -> str:
    """
    Enqueue a gap check for async processing.

    Returns:
        Job ID
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = await redis.enqueue_job("run_gap_check_job", source, dry_run)
    finally:
        await redis.close()
    if job is None:
        raise RuntimeError("A job with the same id is already queued")
    return job.job_id


async def get_job_status(job_id: str) -> dict[str, Any] | None:
    """
    Get the status of a job.

    Args:
        job_id: Job ID to look up

    Returns:
        Job info dict, or None if not found
    """
    redis = await create_pool(get_redis_settings())
    try:
        job = Job(job_id, redis)
        status = await job.status()
        if status == JobStatus.not_found:
            return None

        result = None
        result_info = await job.result_info()
        if result_info is not None:
            result = result_info.result if result_info.success else str(result_info.result)
        info = await job.info()
    finally:
        await redis.close()

    return {
        "job_id": job_id,
        "status": status.value,
        "function": info.function if info else None,
        "result": result,
    }


class WorkerSettings:
    """arq worker settings."""

    functions = [run_pipeline_job, run_gap_check_job]
    redis_settings = get_redis_settings()
    max_jobs = 1
    job_timeout = 3600 * 6
    keep_result = 86400  # 24 hours
