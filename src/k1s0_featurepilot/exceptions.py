"""featurepilot ライブラリの例外型定義"""

from __future__ import annotations


class FeaturePilotError(Exception):
    """featurepilot ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FeaturePilotErrorCodes:
    """FeaturePilotError のエラーコード定数。"""

    CONFIG_ERROR: str = "CONFIG_ERROR"
    UNKNOWN_PROVIDER: str = "UNKNOWN_PROVIDER"
    MISSING_PROJECT: str = "MISSING_PROJECT"
    HTTP_ERROR: str = "HTTP_ERROR"
    INVALID_RESPONSE: str = "INVALID_RESPONSE"
    REGISTRY_FROZEN: str = "REGISTRY_FROZEN"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
