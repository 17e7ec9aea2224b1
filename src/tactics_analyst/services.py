"""Collaborator bundle built once by each entry point's startup routine."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .analysis.ports import AnalysisProvider, ObjectStorage
from .client import GeminiFileProvider
from .config import AppConfig, get_config
from .storage import GCSStorage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Storage and provider instances shared by all requests of one process."""

    config: AppConfig
    storage: ObjectStorage
    provider: AnalysisProvider

    async def aclose(self) -> None:
        aclose = getattr(self.provider, "aclose", None)
        if aclose is not None:
            await aclose()
        close = getattr(self.storage, "close", None)
        if close is not None:
            close()


def build_services(cfg: AppConfig | None = None) -> Services:
    """Construct the real GCS and Gemini collaborators from config."""
    cfg = cfg or get_config()
    services = Services(
        config=cfg,
        storage=GCSStorage.from_config(cfg),
        provider=GeminiFileProvider.from_config(cfg),
    )
    logger.info("Services ready (bucket=%s, model=%s)", cfg.storage_bucket, cfg.gemini_model)
    return services
