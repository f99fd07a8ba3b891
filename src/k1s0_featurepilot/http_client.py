"""リモートフラグサーバー HTTP クライアント実装"""

from __future__ import annotations

from typing import Any

import httpx

from .config import ServerSection
from .constants import API_KEY_HEADER, FEATURES_ENDPOINT
from .exceptions import FeaturePilotError, FeaturePilotErrorCodes


class HttpFlagFetcher:
    """httpx を使ってリモートサーバーから feature -> flow の対応を取得する。"""

    def __init__(self, server: ServerSection, client: httpx.Client | None = None) -> None:
        self._server = server
        self._owns_client = client is None
        self._client = client if client is not None else self._make_sync_client()

    def _make_sync_client(self) -> httpx.Client:
        return httpx.Client(
            headers={"Accept": "application/json"},
            timeout=self._server.timeout_seconds,
        )

    def features_url(self) -> str:
        """リクエスト URL を組み立てる。プロジェクト未設定の場合はエラー。"""
        project = (self._server.project or "").strip()
        if not project:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.MISSING_PROJECT,
                message="Remote polling requires a project identifier",
            )
        return f"{self._server.url.rstrip('/')}/api/{project}{FEATURES_ENDPOINT}"

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if not resp.is_success:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.HTTP_ERROR,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    def fetch(self) -> dict[str, str]:
        """フラグ一覧を取得する。

        Returns:
            feature キーから flow キーへの新しい辞書

        Raises:
            FeaturePilotError: 設定不備・通信失敗・不正なレスポンスの場合
        """
        url = self.features_url()
        headers = {API_KEY_HEADER: self._server.auth.api_key}
        try:
            resp = self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.HTTP_ERROR,
                message=f"Failed to fetch flags: {e}",
                cause=e,
            ) from e
        self._handle_error(resp, f"fetch({url})")
        try:
            data: Any = resp.json()
        except ValueError as e:
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.INVALID_RESPONSE,
                message=f"fetch({url}): response is not JSON",
                cause=e,
            ) from e
        return _parse_flags(data, url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _parse_flags(data: Any, url: str) -> dict[str, str]:
    if not isinstance(data, dict):
        raise FeaturePilotError(
            code=FeaturePilotErrorCodes.INVALID_RESPONSE,
            message=f"fetch({url}): expected a JSON object, got {type(data).__name__}",
        )
    flags: dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise FeaturePilotError(
                code=FeaturePilotErrorCodes.INVALID_RESPONSE,
                message=f"fetch({url}): flow for {key!r} is not a string",
            )
        flags[key] = value
    return flags
