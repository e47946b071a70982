from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Protocol

ImageDetailType = Literal["auto", "low", "high"]


@dataclass(frozen=True)
class ImageReference:
    """モデルに渡す画像の参照"""
    url: str
    detail: ImageDetailType = "auto"


@dataclass
class VisionCompletion:
    """モデルの応答テキストとトークン使用量"""
    content: Optional[str]
    usage: Optional[Dict[str, int]] = None


class VisionModelClient(Protocol):
    """テキストと画像からJSON形式の応答を得るクライアント"""

    provider: str

    async def complete_json(
        self,
        prompt: str,
        images: List[ImageReference],
        json_schema: Dict[str, Any],
    ) -> VisionCompletion:
        ...
