from dataclasses import dataclass
from typing import Any


@dataclass
class ApplicationError(Exception):
    """アプリケーション層の基底例外クラス"""
    reason: str
    error_code: int = 100
    status: int = 400
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.reason


class InvalidParamError(ApplicationError):
    """パラメータが不正な場合の例外"""

    def __init__(self, reason: str, param_name: str | None = None,
                 errors: list[Any] | None = None):
        details: dict[str, Any] = {}
        if param_name:
            details["param"] = param_name
        if errors:
            details["errors"] = errors
        super().__init__(
            reason=reason,
            error_code=105,
            status=400,
            details=details or None
        )


class ConfigurationError(ApplicationError):
    """プロバイダの認証情報や設定が不足している場合の例外"""

    def __init__(self, setting: str, message: str | None = None):
        super().__init__(
            reason=message or f"{setting} is not configured",
            error_code=201,
            status=500,
            details={"setting": setting}
        )


class UpstreamError(ApplicationError):
    """外部サービスの呼び出しに失敗した場合の例外"""

    def __init__(self, service: str, message: str, error_code: int = 202):
        super().__init__(
            reason=f"{service} request failed: {message}",
            error_code=error_code,
            status=500,
            details={"service": service, "message": message}
        )


class UpstreamTimeoutError(UpstreamError):
    """外部サービスの呼び出しがタイムアウトした場合の例外"""

    def __init__(self, service: str, timeout_seconds: float):
        super().__init__(
            service=service,
            message=f"timed out after {timeout_seconds:g}s",
            error_code=203
        )


class UpstreamFormatError(ApplicationError):
    """外部サービスのレスポンスが解析できない場合の例外"""

    def __init__(self, message: str, raw_content: str | None = None):
        super().__init__(
            reason=message,
            error_code=204,
            status=500,
            details={"raw_content": raw_content} if raw_content else None
        )


class ProviderValidationError(ApplicationError):
    """モデルの出力がスキーマに一致しない場合の例外"""

    def __init__(self, validation_errors: dict[str, Any], raw_response: Any):
        super().__init__(
            reason="Invalid response structure from vision model",
            error_code=205,
            status=500,
            details={
                "validation_errors": validation_errors,
                "raw_response": raw_response,
            }
        )


class InternalValidationError(ApplicationError):
    """組み立てたレスポンスがスキーマに一致しない場合の例外"""

    def __init__(self, validation_errors: list[Any]):
        super().__init__(
            reason="Invalid response structure",
            error_code=206,
            status=500,
            details={"validation_errors": validation_errors}
        )
