from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from models.config_models import Config
from models.provider_models import ProviderId

if TYPE_CHECKING:
    from pathlib import Path

    from models.config_models import ProviderSettings


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Default configuration with fast retries and a throwaway cache database."""
    cfg = Config()
    cfg.CACHE.DB_PATH = str(tmp_path / "term_cache.db")
    cfg.RESOLUTION.DEADLINE_SEC = 5.0
    cfg.RESOLUTION.QUEUE_TIMEOUT_SEC = 2.0
    cfg.RESOLUTION.WINDOW_TICK_SEC = 0.01
    for provider_id in ProviderId:
        settings: ProviderSettings = getattr(cfg, provider_id.config_section)
        settings.BACKOFF_MS = 10
        settings.CALL_TIMEOUT_SEC = 1.0
        settings.MAX_RETRIES = 1
    return cfg
