"""Builds the orchestrator and its collaborators from settings."""

from __future__ import annotations

import logging

from .agents.orchestrator import Orchestrator
from .agents.registry import build_default_registry
from .config import Settings, instantiate_from_path
from .events import Publisher
from .llm.provider import LLMProvider
from .store.base import ExecutionStore
from .store.memory import InMemoryExecutionStore
from .store.postgres import PostgresExecutionStore

logger = logging.getLogger(__name__)


def create_provider(settings: Settings) -> LLMProvider:
    provider: LLMProvider = instantiate_from_path(
        settings.llm.provider, **settings.llm.provider_params()
    )
    return provider


async def open_store(settings: Settings) -> ExecutionStore:
    if not settings.database_url:
        logger.info("No database configured, keeping executions in memory")
        return InMemoryExecutionStore()
    return await PostgresExecutionStore.connect(settings.database_url)


async def build_orchestrator(settings: Settings, publisher: Publisher) -> Orchestrator:
    registry = build_default_registry(create_provider(settings))
    store = await open_store(settings)
    return Orchestrator(registry, store, publisher)
