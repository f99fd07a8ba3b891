"""featurepilot テスト共通フィクスチャ"""

from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """new_logger() による設定を各テスト後に元へ戻す。"""
    yield
    structlog.reset_defaults()
