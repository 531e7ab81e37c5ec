"""
alphashape3d メッシュ処理

境界面として抽出された三角形メッシュ、および外部から与えられた
ポリゴンスープに対する計測・検索・簡略化・修復・入出力を提供します。

処理フロー:
1. メッシュ構造とハーフエッジビュー (trimesh.py)
2. 表面積・体積 (attributes.py)
3. 最近傍頂点検索 (index.py)
4. エッジ崩壊による簡略化 (simplify.py)
5. スープ修復と詰め直し (repair.py)
6. OFF入出力 (io.py)
"""

# メッシュ構造
from .trimesh import (
    TriangleMesh,
    compact_mesh,
    empty_mesh
)

# 計測
from .attributes import (
    MeshAnalyzer,
    MeshMeasures,
    surface_area,
    volume,
    triangle_areas,
    triangle_normals
)

# 空間インデックス
from .index import (
    VertexIndex,
    nearest_vertices
)

# メッシュ簡略化
from .simplify import (
    MeshSimplifier,
    SimplificationMethod,
    simplify_mesh
)

# 修復
from .repair import (
    SoupRepairer,
    orient_facets,
    remove_unused_points
)

# 入出力
from .io import (
    write_off,
    read_off
)

__all__ = [
    # メッシュ構造
    'TriangleMesh', 'compact_mesh', 'empty_mesh',

    # 計測
    'MeshAnalyzer', 'MeshMeasures', 'surface_area', 'volume',
    'triangle_areas', 'triangle_normals',

    # 空間インデックス
    'VertexIndex', 'nearest_vertices',

    # メッシュ簡略化
    'MeshSimplifier', 'SimplificationMethod', 'simplify_mesh',

    # 修復
    'SoupRepairer', 'orient_facets', 'remove_unused_points',

    # 入出力
    'write_off', 'read_off'
]
