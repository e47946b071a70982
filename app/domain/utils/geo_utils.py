"""
位置情報処理用ユーティリティ
"""
import math

# 地球の半径（メートル）
EARTH_RADIUS_M = 6_371_000


class GeoUtils:
    """位置情報に関するユーティリティクラス"""

    @staticmethod
    def haversine_distance(
        lat1: float, lng1: float, lat2: float, lng2: float
    ) -> float:
        """
        2点間の大円距離をハーバーサイン公式で計算する

        Args:
            lat1 (float): 1点目の緯度
            lng1 (float): 1点目の経度
            lat2 (float): 2点目の緯度
            lng2 (float): 2点目の経度

        Returns:
            float: 2点間の距離（メートル）
        """
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        d_phi = math.radians(lat2 - lat1)
        d_lambda = math.radians(lng2 - lng1)

        a = (math.sin(d_phi / 2) ** 2 +
             math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
        # 丸め誤差でaが1をわずかに超えることがある
        return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, a)))
