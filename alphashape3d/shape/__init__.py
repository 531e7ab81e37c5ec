"""
alphashape3d 形状計算

点群からアルファシェイプを構成する幾何カーネルです。

処理フロー:
1. 入力点の検証 (points.py)
2. 3D Delaunay四面体分割 (delaunay_3d.py)
3. アルファ区間とスペクトル (filtration.py)
4. 単体・点の分類 (classify.py)
5. 境界面抽出 (surface.py)
"""

from .points import PointSet

from .delaunay_3d import (
    DelaunayTriangulator,
    Triangulation,
    triangulate_points
)

from .filtration import (
    AlphaFiltration,
    AlphaIntervals
)

from .classify import (
    Classifier,
    classify_intervals
)

from .surface import SurfaceExtractor

__all__ = [
    'PointSet',
    'DelaunayTriangulator', 'Triangulation', 'triangulate_points',
    'AlphaFiltration', 'AlphaIntervals',
    'Classifier', 'classify_intervals',
    'SurfaceExtractor'
]
