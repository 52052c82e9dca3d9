"""featureflag ライブラリの例外型定義"""

from __future__ import annotations


class FeatureFlagError(Exception):
    """featureflag ライブラリのエラー基底クラス。"""

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


class ConfigDecodeError(FeatureFlagError):
    """設定ペイロードのデコード・復号に失敗した場合のエラー。"""


class FeatureFlagErrorCodes:
    """エラーコード定数。"""

    INVALID_PAYLOAD: str = "INVALID_PAYLOAD"
    INVALID_JSON: str = "INVALID_JSON"
    INVALID_BASE64: str = "INVALID_BASE64"
    DECRYPTION_FAILED: str = "DECRYPTION_FAILED"
    MISSING_DECRYPTION_KEY: str = "MISSING_DECRYPTION_KEY"
    VALIDATION: str = "VALIDATION_ERROR"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
