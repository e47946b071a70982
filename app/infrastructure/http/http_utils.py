import asyncio
import ipaddress
import os
import socket
import time as time_module
from typing import Any, List, Mapping, Optional
from urllib.parse import urlparse

import aiohttp
from dotenv import load_dotenv
from loguru import logger

from app.application.exceptions import (InvalidParamError, UpstreamError,
                                        UpstreamTimeoutError)

load_dotenv()

DEFAULT_USER_AGENT = "Location-Analysis-API/1.0"


def get_user_agent() -> str:
    """外部APIに送信するUser-Agent（Nominatimの利用規約で必須）"""
    return os.getenv("OSM_USER_AGENT", DEFAULT_USER_AGENT)


async def fetch_json(
    url: str,
    service: str,
    timeout_seconds: float,
    params: Optional[Mapping[str, Any]] = None,
    data: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    外部APIを呼び出し、JSONレスポンスを返す

    dataを指定した場合はフォーム形式でPOSTし、それ以外はGETで呼び出す。

    Args:
        url: 呼び出すURL
        service: ログとエラーに使用するサービス名
        timeout_seconds: タイムアウト（秒）
        params: クエリパラメータ
        data: POSTするフォームデータ

    Returns:
        Any: デコードしたJSON

    Raises:
        UpstreamTimeoutError: タイムアウトした場合
        UpstreamError: 2xx以外のステータス、通信エラー、JSON以外の応答の場合
    """
    start_time = time_module.time()
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    headers = {"User-Agent": get_user_agent()}
    method = "POST" if data is not None else "GET"

    try:
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.request(method, url, params=params, data=data) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    logger.error(
                        f"{service} がエラーを返しました: ステータス {response.status}, {error_text[:500]}")
                    raise UpstreamError(
                        service, f"HTTP {response.status} {response.reason or ''}".strip())

                # Overpassはcontent-typeを付けないことがある
                result = await response.json(content_type=None)
    except asyncio.TimeoutError:
        elapsed_ms = (time_module.time() - start_time) * 1000
        logger.error(f"{service} の呼び出しがタイムアウトしました: elapsed={elapsed_ms:.2f}ms")
        raise UpstreamTimeoutError(service, timeout_seconds)
    except aiohttp.ClientError as e:
        logger.error(f"{service} の呼び出しに失敗しました: {e}")
        raise UpstreamError(service, str(e))
    except ValueError as e:
        logger.error(f"{service} のレスポンスがJSONではありません: {e}")
        raise UpstreamError(service, "response is not valid JSON")

    elapsed_ms = (time_module.time() - start_time) * 1000
    logger.info(f"{service} の呼び出し完了: elapsed={elapsed_ms:.2f}ms")
    return result


async def _resolve_host(host: str, port: int) -> List[str]:
    """ホスト名を解決し、IPアドレスの一覧を返す"""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def _is_public_address(address: str) -> bool:
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_global and not ip.is_multicast


async def ensure_public_https_url(url: str) -> None:
    """
    https かつ公開アドレスのホストを指すURLであることを確認する

    プライベート・ループバック・リンクローカル（169.254.0.0/16 など）の
    アドレスに解決されるホストは受け付けない。

    Raises:
        InvalidParamError: 条件を満たさないURLの場合
    """
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.hostname:
        raise InvalidParamError("Image URL must be an https URL", "images")

    host = parsed.hostname
    try:
        addresses = [str(ipaddress.ip_address(host))]
    except ValueError:
        try:
            addresses = await _resolve_host(host, parsed.port or 443)
        except socket.gaierror as e:
            logger.warning(f"画像のホストを解決できません: host={host}, {e}")
            raise InvalidParamError("Image host could not be resolved", "images")

    if not addresses or not all(_is_public_address(address) for address in addresses):
        logger.warning(f"公開されていないアドレスへのアクセスを拒否しました: host={host}")
        raise InvalidParamError("Image URL must point to a public host", "images")


async def fetch_bytes(
    url: str,
    service: str,
    timeout_seconds: float,
    max_bytes: int,
) -> tuple[bytes, Optional[str]]:
    """
    公開https URLからバイナリを取得する

    リダイレクトは追跡しない。

    Args:
        url: 取得するURL
        service: ログとエラーに使用するサービス名
        timeout_seconds: タイムアウト（秒）
        max_bytes: 受け付ける最大サイズ（バイト）

    Returns:
        tuple[bytes, Optional[str]]: 取得したバイト列とContent-Type

    Raises:
        InvalidParamError: URLが不正、またはサイズが上限を超える場合
        UpstreamTimeoutError: タイムアウトした場合
        UpstreamError: 2xx以外のステータス、通信エラーの場合
    """
    await ensure_public_https_url(url)

    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    headers = {"User-Agent": get_user_agent()}
    too_large = InvalidParamError(
        f"Image exceeds the maximum size of {max_bytes} bytes", "images")

    try:
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            async with session.get(url, allow_redirects=False) as response:
                if not 200 <= response.status < 300:
                    logger.error(
                        f"{service} がエラーを返しました: ステータス {response.status}, url={url}")
                    raise UpstreamError(service, f"HTTP {response.status} for {url}")

                if response.content_length is not None and response.content_length > max_bytes:
                    logger.warning(
                        f"{service} のサイズが上限を超えています: {response.content_length} bytes, url={url}")
                    raise too_large

                body = bytearray()
                while True:
                    chunk = await response.content.read(max_bytes + 1 - len(body))
                    if not chunk:
                        break
                    body.extend(chunk)
                    if len(body) > max_bytes:
                        logger.warning(f"{service} のサイズが上限を超えています: url={url}")
                        raise too_large
                return bytes(body), response.content_type
    except asyncio.TimeoutError:
        logger.error(f"{service} の呼び出しがタイムアウトしました: url={url}")
        raise UpstreamTimeoutError(service, timeout_seconds)
    except aiohttp.ClientError as e:
        logger.error(f"{service} の呼び出しに失敗しました: {e}")
        raise UpstreamError(service, str(e))
