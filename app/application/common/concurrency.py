import asyncio
from typing import Any, Awaitable, List


async def run_all_or_cancel(*coroutines: Awaitable[Any]) -> List[Any]:
    """
    コルーチンを並列に実行し、結果を引数の順序で返す

    いずれかが失敗した時点で残りをキャンセルし、その終了を待ってから
    失敗した例外を送出する。呼び出し元がキャンセルされた場合も同様に
    すべての処理をキャンセルする。

    Args:
        *coroutines: 実行するコルーチン

    Returns:
        List[Any]: 各コルーチンの結果

    Raises:
        Exception: 失敗したコルーチンの例外（複数の場合は引数順で先頭のもの）
    """
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    if not tasks:
        return []
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in tasks:
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
    return [task.result() for task in tasks]
