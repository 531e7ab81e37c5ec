#!/usr/bin/env python3
"""
共通定数・設定値

アプリケーション全体で使用される定数や閾値を一元管理し、
モジュール間の循環依存を解消します。
"""

from typing import Final

# =============================================================================
# 数値精度・許容誤差
# =============================================================================

# 外接球の内外判定（相対誤差）
SPHERE_TOLERANCE: Final[float] = 1e-10

# 点位置判定で重心座標を0とみなす閾値
BARYCENTRIC_TOLERANCE: Final[float] = 1e-9

# 平坦な四面体とみなす体積閾値（包囲ボックス対角長^3 に対する比）
DEGENERATE_VOLUME_TOLERANCE: Final[float] = 1e-12

# 共面判定（特異値比）
COPLANARITY_TOLERANCE: Final[float] = 1e-10

# 面積ゼロの三角形とみなす閾値（包囲ボックス対角長^2 に対する比）
DEGENERATE_AREA_TOLERANCE: Final[float] = 1e-14

# =============================================================================
# 三角形分割関連
# =============================================================================

# 四面体分割に必要な最小点数
MIN_POINTS: Final[int] = 4

# scipy.spatial.Delaunay (3次元) の既定 Qhull オプション
DEFAULT_QHULL_OPTIONS: Final[str] = "Qbb Qc Qz Q12"

# 無限頂点を表すID
INFINITE_VERTEX: Final[int] = -1

# 四面体の6辺（局所インデックス）
CELL_EDGE_PAIRS: Final[tuple] = ((0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3))

# =============================================================================
# 臨界アルファ
# =============================================================================

CRITICAL_ALPHA_ALL_POINTS: Final[str] = "all-points"
CRITICAL_ALPHA_ONE_REGION: Final[str] = "one-region"

# =============================================================================
# メッシュ処理関連
# =============================================================================

# エッジ崩壊の既定停止比（残りエッジ数 / 初期エッジ数）
DEFAULT_STOP_RATIO: Final[float] = 0.05

# 境界エッジ保持用の拘束平面の重み
DEFAULT_BOUNDARY_WEIGHT: Final[float] = 1000.0

# KD-Tree リーフサイズ
DEFAULT_KDTREE_LEAFSIZE: Final[int] = 16

# OFF ファイルヘッダー
OFF_HEADER: Final[str] = "OFF"
