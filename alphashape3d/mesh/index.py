#!/usr/bin/env python3
"""
空間インデックス

境界メッシュの頂点に対する KD-Tree を構築し、最近傍頂点を検索します。
面から参照されない頂点は構築前に除外するため、孤立頂点が返ることはありません。
"""

import time
from typing import Optional, Tuple
import numpy as np
from scipy.spatial import cKDTree

from ..config import IndexConfig, get_config
from ..exceptions import GeometryError
from ..shape.points import as_points_array
from .. import get_logger
from .trimesh import TriangleMesh

logger = get_logger(__name__)


class VertexIndex:
    """メッシュ頂点の最近傍インデックス

    同距離の頂点が複数ある場合にどれを返すかは規定しない。
    """

    def __init__(self, mesh: TriangleMesh, leafsize: Optional[int] = None,
                 config: Optional[IndexConfig] = None):
        """
        初期化（構築時にメッシュを一度だけ読む）

        Args:
            mesh: 入力メッシュ
            leafsize: KD-Tree のリーフサイズ（Noneの場合は設定値）
            config: インデックス設定

        Raises:
            GeometryError: 面を持たないメッシュ
        """
        config = config if config is not None else get_config().index
        self.leafsize = leafsize if leafsize is not None else config.leafsize

        # 面から参照される頂点のみ（元のインデックスは昇順で保持）
        self.vertex_ids = mesh.referenced_vertices()
        if len(self.vertex_ids) == 0:
            raise GeometryError("Cannot build a nearest-neighbor index over an empty surface")
        self.points = mesh.vertices[self.vertex_ids].copy()

        self.stats = {
            'build_time_ms': 0.0,
            'total_queries': 0,
            'total_query_time_ms': 0.0,
        }

        start_time = time.perf_counter()
        self.kdtree = cKDTree(self.points, leafsize=self.leafsize)
        self.stats['build_time_ms'] = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Vertex index built over %d of %d vertices (%.1fms)",
            len(self.vertex_ids), mesh.num_vertices, self.stats['build_time_ms']
        )

    @property
    def num_indexed(self) -> int:
        return len(self.vertex_ids)

    def query(self, queries) -> Tuple[np.ndarray, np.ndarray]:
        """
        最近傍頂点を検索

        Args:
            queries: 問い合わせ点 (Q, 3)

        Returns:
            (元のメッシュでの頂点インデックス (Q,), ユークリッド距離 (Q,))
        """
        queries = as_points_array(queries, name="queries")
        if len(queries) == 0:
            return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)

        start_time = time.perf_counter()
        distances, local = self.kdtree.query(queries, k=1)
        indices = self.vertex_ids[np.asarray(local, dtype=np.int64)]

        self.stats['total_queries'] += len(queries)
        self.stats['total_query_time_ms'] += (time.perf_counter() - start_time) * 1000
        return indices, np.asarray(distances, dtype=np.float64)

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()


# 便利関数

def nearest_vertices(mesh: TriangleMesh, queries) -> Tuple[np.ndarray, np.ndarray]:
    """メッシュ頂点への最近傍検索（簡単なインターフェース）"""
    return VertexIndex(mesh).query(queries)
