import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.infrastructure.llm.client_factory import missing_credentials
from app.interfaces.api import building, location, ping
from app.interfaces.api.error_handlers import register_error_handlers

load_dotenv()
STAGE = os.getenv("stage", "dev")
API_PREFIX = "/location_api/api"


# セキュリティヘッダーを追加するミドルウェア
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        # 解析結果は外部サービスの応答に依存するためキャッシュしない
        if request.method in ["POST", "PUT", "DELETE", "PATCH"]:
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"

        return response


app = FastAPI(
    title="Location Analysis API",
    description="""
    住所と建物の写真、地図上の地点を解析するためのAPI。

    ## 主な機能

    * 建物の写真から階数・窓面積率・建築様式・外装材・用途構成を推定
    * 地点の逆ジオコーディングと周辺施設（交通・学校・買い物・公園・宗教施設）の取得
    """,
    version="1.0.0",
    openapi_url=f"{API_PREFIX}/openapi.json",
    docs_url=f"{API_PREFIX}/docs",
    license_info={
        "name": "MIT",
    },
    openapi_tags=[
        {
            "name": "building",
            "description": "建物解析に関するエンドポイント."
        },
        {
            "name": "location",
            "description": "地点の周辺情報に関するエンドポイント."
        }
    ]
)

# エラーハンドラの登録
register_error_handlers(app)

# セキュリティヘッダーミドルウェアの追加
app.add_middleware(SecurityHeadersMiddleware)

if STAGE == "dev":
    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r'.*',  # すべてのドメインを許可（セキュリティ上非推奨）
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    # CORS設定
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
            if origin.strip()
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

for setting in missing_credentials():
    logger.warning(f"{setting}が設定されていません")


# ルーターの登録
app.include_router(building.router, prefix=API_PREFIX, tags=["building"])
app.include_router(location.router, prefix=API_PREFIX, tags=["location"])
app.include_router(ping.router, prefix=API_PREFIX, tags=["ping"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
