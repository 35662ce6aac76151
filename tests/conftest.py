from __future__ import annotations

import pytest

from pii_log_masking import config
from pii_log_masking.engine import PiiMasker
from pii_log_masking.status import StatusBuffer

MASK = "[REDACTED]"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in config.ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: None)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


@pytest.fixture
def status() -> StatusBuffer:
    return StatusBuffer()


@pytest.fixture
def masker(status: StatusBuffer) -> PiiMasker:
    instance = PiiMasker("NAME,ID", MASK, status_listener=status)
    instance.start()
    yield instance
    instance.stop()
