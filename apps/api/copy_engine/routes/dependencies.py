"""Dependency wiring for routes."""

from __future__ import annotations

from typing import Annotated

import httpx
from fastapi import Depends, Request

from copy_engine.core.config import Settings
from copy_engine.repositories.memory import InMemoryStore
from copy_engine.services.asr import AsrClient
from copy_engine.services.copy_generator import CopyGenerationEngine
from copy_engine.services.copy_jobs import CopyJobService
from copy_engine.services.llm import VolcengineLlmClient
from copy_engine.services.media_proxy import MediaProxyService
from copy_engine.services.resolver import VideoUrlResolver
from copy_engine.services.task_runner import BackgroundTaskRunner
from copy_engine.services.transcripts import TranscriptPipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_task_runner(request: Request) -> BackgroundTaskRunner:
    return request.app.state.task_runner


def get_upstream_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    return request.app.state.upstream_transport


def get_media_proxy_service(request: Request) -> MediaProxyService:
    return request.app.state.media_proxy


def get_transcript_pipeline(
    store: Annotated[InMemoryStore, Depends(get_store)],
    runner: Annotated[BackgroundTaskRunner, Depends(get_task_runner)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    transport: Annotated[httpx.AsyncBaseTransport | None, Depends(get_upstream_transport)],
) -> TranscriptPipeline:
    return TranscriptPipeline(
        store,
        runner,
        resolver=VideoUrlResolver(settings, transport=transport),
        asr=AsrClient(settings, transport=transport),
    )


def get_copy_job_service(
    store: Annotated[InMemoryStore, Depends(get_store)],
    runner: Annotated[BackgroundTaskRunner, Depends(get_task_runner)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    transport: Annotated[httpx.AsyncBaseTransport | None, Depends(get_upstream_transport)],
) -> CopyJobService:
    engine = CopyGenerationEngine(settings, VolcengineLlmClient(settings, transport=transport))
    return CopyJobService(store, runner, engine)
