from typing import List, Literal, Optional, Union

from pydantic import (BaseModel, ConfigDict, Field, StrictFloat, StrictInt,
                      field_validator)

ArchitecturalStyle = Literal[
    "prewar_masonry",
    "art_deco",
    "modernist",
    "brutalist",
    "postmodern",
    "postwar_commercial",
    "contemporary_glass",
    "industrial_loft",
    "townhouse_rowhouse",
    "vernacular_other",
    "unknown",
]

FacadeMaterial = Literal[
    "glass",
    "brick",
    "stone",
    "concrete",
    "metal_panel",
    "composite_panel",
    "stucco",
    "wood",
    "terracotta",
    "other",
]

ProgramType = Literal[
    "residential",
    "office",
    "retail",
    "hotel",
    "industrial",
    "parking",
    "institutional",
    "civic",
    "community",
    "mechanical_other",
    "unknown",
]

ImageDetail = Literal["auto", "low", "high"]


class ImageInput(BaseModel):
    """解析対象の画像"""
    url: str = Field(..., description="画像のURL（http(s)またはdata URL）")
    detail: ImageDetail = Field("auto", description="画像の処理精度")


class AnalyzeBuildingRequest(BaseModel):
    address: str = Field("TBD", description="建物の住所")
    images: List[Union[str, ImageInput]] = Field(
        default_factory=list,
        description="建物の写真（1枚目は上空写真、2枚目以降はストリートビュー）"
    )


class FacadeMaterialMix(BaseModel):
    material: FacadeMaterial = Field(..., description="外装材の種類")
    percent: StrictFloat = Field(..., description="外装面積に占める割合（%）", ge=0, le=100)


class ProgramMix(BaseModel):
    program: ProgramType = Field(..., description="用途の種類")
    percent: StrictFloat = Field(..., description="延床面積に占める割合（%）", ge=0, le=100)


class ConfidenceScores(BaseModel):
    """推定項目ごとの信頼度（0〜1）"""
    num_floors: StrictFloat = Field(..., ge=0, le=1)
    window_to_wall_ratio: StrictFloat = Field(..., ge=0, le=1)
    architectural_style: StrictFloat = Field(..., ge=0, le=1)
    estimated_building_age: StrictFloat = Field(..., ge=0, le=1)
    facade_material_mix: StrictFloat = Field(..., ge=0, le=1)
    program_mix: StrictFloat = Field(..., ge=0, le=1)


class BuildingAnalysis(BaseModel):
    """建物の解析結果（combined matrix）"""
    address: str = Field(..., description="建物の住所")
    num_floors: StrictInt = Field(..., description="地上階数", gt=0)
    window_to_wall_ratio: StrictFloat = Field(..., description="窓面積率", ge=0, le=1)
    architectural_style: ArchitecturalStyle = Field(..., description="建築様式")
    # 回答例に含まれないため、モデルが省略することがある
    architectural_style_add: str = Field("", description="建築様式の補足説明")
    estimated_building_age: str = Field(
        ..., description="推定建築年（例: '1975' または '1960-1980'）")
    facade_material_mix: List[FacadeMaterialMix] = Field(..., min_length=1)
    program_mix: List[ProgramMix] = Field(..., min_length=1)
    confidence_scores: ConfidenceScores
    notes: str = Field(..., description="推定の前提や不確実性についてのメモ")

    @field_validator("num_floors", mode="before")
    @classmethod
    def integral_float_to_int(cls, value):
        """12.0 のような整数値の小数は階数として受け付ける"""
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


class CombinedMatrixPayload(BaseModel):
    """モデル出力の直接形式: {combined_matrix: {...}}"""
    combined_matrix: BuildingAnalysis


class EnvelopedPayload(BaseModel):
    """モデル出力の包含形式: {version, description, schema: {combined_matrix: {...}}}"""
    model_config = ConfigDict(populate_by_name=True)

    version: Optional[str] = None
    description: Optional[str] = None
    schema_: CombinedMatrixPayload = Field(..., alias="schema")


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(..., description="入力トークン数")
    completion_tokens: int = Field(..., description="出力トークン数")
    total_tokens: int = Field(..., description="合計トークン数")


class AnalyzeBuildingResponse(BaseModel):
    success: bool = Field(True, description="処理が成功したか")
    data: CombinedMatrixPayload = Field(..., description="建物の解析結果")
    usage: Optional[TokenUsage] = Field(None, description="トークン使用量")
