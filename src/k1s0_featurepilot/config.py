"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .constants import DEFAULT_REFRESH_MS, PROVIDER_LOCAL


class AuthSection(BaseModel):
    """リモートサーバー認証設定。"""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("api_key", "api-key", "apiKey"),
    )


class ServerSection(BaseModel):
    """リモートフラグサーバー設定。"""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    project: str | None = Field(
        default=None,
        validation_alias=AliasChoices("project", "project-id", "project_id"),
    )
    refresh: int = Field(default=DEFAULT_REFRESH_MS, gt=0)  # ms
    fallback: bool = False
    auth: AuthSection = Field(default_factory=AuthSection)
    timeout_seconds: float = Field(default=5.0, gt=0)


class SourceSection(BaseModel):
    """フラグ取得元の設定。"""

    provider: str = PROVIDER_LOCAL
    server: ServerSection | None = None


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class FeaturePilotConfig(BaseModel):
    """featurepilot 設定全体。"""

    source: SourceSection = Field(default_factory=SourceSection)
    # 値が空の YAML エントリ（`payment_flow:`）は None として読み込まれる
    flags: dict[str, str | None] = Field(default_factory=dict)
    log: LogSection = Field(default_factory=LogSection)
