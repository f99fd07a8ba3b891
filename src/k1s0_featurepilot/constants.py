"""featurepilot 共通定数"""

from __future__ import annotations

DEFAULT_FLOW: str = "default"

PROVIDER_LOCAL: str = "local"
PROVIDER_SERVER: str = "server"

FEATURES_ENDPOINT: str = "/features"
API_KEY_HEADER: str = "x-api-key"

REMOTE_POLLER_THREAD: str = "featurepilot-remote-poller"
DEFAULT_REFRESH_MS: int = 10_000
