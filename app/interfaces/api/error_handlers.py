import html

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from app.application.exceptions import ApplicationError, InvalidParamError


def _escape_details(details):
    """HTML特殊文字をエスケープする"""
    if isinstance(details, str):
        return html.escape(details)
    if isinstance(details, dict):
        # 辞書の場合は再帰的にエスケープ
        return {k: html.escape(v) if isinstance(v, str) else v
                for k, v in details.items()}
    return details


def _to_response(exc: ApplicationError) -> JSONResponse:
    error_response = {
        "status": exc.status,
        "code": exc.error_code,
        "reason": exc.reason,
    }
    if exc.details:
        error_response["details"] = _escape_details(exc.details)

    return JSONResponse(
        status_code=exc.status,
        content=jsonable_encoder(error_response)
    )


def register_error_handlers(app: FastAPI) -> None:
    """
    FastAPIアプリケーションにエラーハンドラを登録する。

    Args:
        app (FastAPI): FastAPIアプリケーションインスタンス
    """
    @app.exception_handler(ApplicationError)
    async def application_error_handler(
        request: Request,
        exc: ApplicationError
    ) -> JSONResponse:
        """
        アプリケーション層の例外をHTTPレスポンスに変換する。

        Args:
            request (Request): リクエストオブジェクト
            exc (ApplicationError): アプリケーション層の例外

        Returns:
            JSONResponse: エラーレスポンス
        """
        if exc.status >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: "
                f"code={exc.error_code}, reason={exc.reason}")
        return _to_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """
        リクエストボディの検証エラーを400のエラーレスポンスに変換する。
        """
        errors = [
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        logger.info(
            f"{request.method} {request.url.path} rejected: {errors}")
        return _to_response(InvalidParamError(
            reason="Invalid request parameters",
            errors=errors
        ))
