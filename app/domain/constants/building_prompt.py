import json
from typing import Any, Dict, Final, List

ARCHITECTURAL_STYLES: Final[List[str]] = [
    'prewar_masonry', 'art_deco', 'modernist', 'brutalist', 'postmodern',
    'postwar_commercial', 'contemporary_glass', 'industrial_loft',
    'townhouse_rowhouse', 'vernacular_other', 'unknown',
]

FACADE_MATERIALS: Final[List[str]] = [
    'glass', 'brick', 'stone', 'concrete', 'metal_panel', 'composite_panel',
    'stucco', 'wood', 'terracotta', 'other',
]

PROGRAM_TYPES: Final[List[str]] = [
    'residential', 'office', 'retail', 'hotel', 'industrial', 'parking',
    'institutional', 'civic', 'community', 'mechanical_other', 'unknown',
]

SCHEMA_VERSION: Final[str] = "1.1"

# 回答例（プロンプトにそのまま埋め込む）
EXAMPLE_OUTPUT: Final[Dict[str, Any]] = {
    "combined_matrix": {
        "address": "123 Example Street, New York, NY 10001, USA",
        "num_floors": 12,
        "window_to_wall_ratio": 0.65,
        "architectural_style": "contemporary_glass",
        "estimated_building_age": "2000-2010",
        "facade_material_mix": [
            {"material": "glass", "percent": 70},
            {"material": "metal_panel", "percent": 20},
            {"material": "stone", "percent": 10},
        ],
        "program_mix": [
            {"program": "office", "percent": 85},
            {"program": "retail", "percent": 10},
            {"program": "mechanical_other", "percent": 5},
        ],
        "confidence_scores": {
            "num_floors": 0.95,
            "window_to_wall_ratio": 0.8,
            "architectural_style": 0.7,
            "estimated_building_age": 0.6,
            "facade_material_mix": 0.75,
            "program_mix": 0.7,
        },
        "notes": (
            "Ground floor appears to be retail with double-height storefront glazing. "
            "Upper floors show typical office floorplates with curtain wall. "
            "Building age is estimated based on facade detailing and glazing type; "
            "exact year may differ."
        ),
    }
}


def _one_of(values: List[str]) -> str:
    return ", ".join(f"'{value}'" for value in values)


def build_reference_format(address: str) -> Dict[str, Any]:
    """モデルに提示する出力形式の説明（フィールド・選択肢・数値範囲・回答例）を作成する"""
    return {
        "version": SCHEMA_VERSION,
        "description": "Reference format for building analysis outputs from images.",
        "schema": {
            "combined_matrix": {
                "address": f"string. Use the exact address provided above: {address}",
                "num_floors": "integer. Total number of above-grade floors estimated from the images.",
                "window_to_wall_ratio": (
                    "number between 0 and 1. Estimated ratio of glazed area to total facade area."),
                "architectural_style": (
                    f"string. Must be one of: {_one_of(ARCHITECTURAL_STYLES)}. Choose the closest fit."),
                "architectural_style_add": (
                    "string. Short free-text explanation of key stylistic qualities"),
                "estimated_building_age": (
                    "string. Either a single year like '1975' or a range like '1960-1980'."),
                "facade_material_mix": [
                    {
                        "material": f"string. Must be one of: {_one_of(FACADE_MATERIALS)}.",
                        "percent": (
                            "number between 0 and 100. Estimated percentage of total visible "
                            "facade area. All items together should sum to ~100."),
                    }
                ],
                "program_mix": [
                    {
                        "program": f"string. Must be one of: {_one_of(PROGRAM_TYPES)}.",
                        "percent": (
                            "number between 0 and 100. Estimated percentage of total building "
                            "area for this program. All items together should sum to ~100."),
                    }
                ],
                "confidence_scores": {
                    "num_floors": "number between 0 and 1. Model confidence in num_floors estimate.",
                    "window_to_wall_ratio": "number between 0 and 1.",
                    "architectural_style": "number between 0 and 1.",
                    "estimated_building_age": "number between 0 and 1.",
                    "facade_material_mix": "number between 0 and 1.",
                    "program_mix": "number between 0 and 1.",
                },
                "notes": (
                    "string. Short free-text explanation of key assumptions, uncertainties, "
                    "and anything unusual about the building."),
            }
        },
        "example_output": EXAMPLE_OUTPUT,
    }


def build_instruction(address: str) -> str:
    """
    建物解析の指示テキストを作成する

    住所はモデルが画像から推測した値ではなく、指定された値を使わせる。

    Args:
        address: 建物の住所

    Returns:
        str: モデルに送信する指示テキスト
    """
    reference = json.dumps(build_reference_format(address), indent=2, ensure_ascii=False)
    return (
        f"All of these images describe the building located at: {address}\n"
        "\n"
        "The first image is the top-down view, the next images are of the street view. "
        "Based on these images, tell me the # floors, window-to-wall ratio, architectural style, "
        "estimated building age, % mix of facade materials, and % mix of program.\n"
        "\n"
        f"IMPORTANT: You MUST use \"{address}\" as the address field in your response. "
        "Do not try to determine the address from the images.\n"
        "\n"
        "Output each one of these categories into a combined matrix JSON based on the "
        "attached reference:\n"
        "\n"
        f"{reference}\n"
    )
