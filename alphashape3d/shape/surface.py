#!/usr/bin/env python3
"""
境界面抽出

正則ファセットを外部セル側から向き付けて三角形メッシュを構築します。
メッシュの頂点配列は入力点配列そのものなので、面インデックスは入力点IDと一致します。
"""

import time
from typing import Optional
import numpy as np

from ..data_types import SimplexClass
from ..mesh.trimesh import TriangleMesh
from .. import get_logger
from .classify import Classifier
from .delaunay_3d import FACET_VERTEX_ORDER

logger = get_logger(__name__)


class SurfaceExtractor:
    """境界面抽出クラス"""

    def __init__(self, classifier: Classifier):
        self.classifier = classifier
        self.triangulation = classifier.triangulation

        self.stats = {
            'total_extractions': 0,
            'total_time_ms': 0.0,
            'last_num_facets': 0,
            'last_closed': True,
        }

    def regular_facets(self, alpha: float) -> np.ndarray:
        """
        外向きに向き付けた正則ファセット (F, 3)

        各ファセットを外部側の隣接セルから参照し、
        その局所インデックスの回転表で頂点順を決める。
        """
        tri = self.triangulation
        facet_labels = self.classifier.classify_facets(alpha)
        regular = np.flatnonzero(facet_labels == SimplexClass.REGULAR)
        if len(regular) == 0:
            return np.empty((0, 3), dtype=np.int64)

        cells = tri.facet_cell[regular].copy()
        indices = tri.facet_index[regular].copy()

        # 最初のセルが外部でなければミラー側に切り替える
        cell_labels = self.classifier.classify_cells(alpha)
        use_mirror = cell_labels[cells] != SimplexClass.EXTERIOR
        cells[use_mirror] = tri.mirror_cell[regular][use_mirror]
        indices[use_mirror] = tri.mirror_index[regular][use_mirror]

        order = FACET_VERTEX_ORDER[indices]
        return np.take_along_axis(tri.cells[cells], order, axis=1)

    def extract(self, alpha: float, points: Optional[np.ndarray] = None) -> TriangleMesh:
        """
        現在のアルファでの境界メッシュを構築

        Args:
            alpha: 現在のアルファ
            points: メッシュ頂点配列（省略時は四面体分割の入力点）

        Returns:
            境界メッシュ。閉じていない場合は警告を出す（is_closed == False）
        """
        start_time = time.perf_counter()

        facets = self.regular_facets(alpha)
        vertices = self.triangulation.points if points is None else points
        mesh = TriangleMesh(vertices=vertices, triangles=facets)

        closed = mesh.is_closed
        if not closed:
            logger.warning(
                "Boundary surface at alpha=%g is not closed (%d boundary half-edges); "
                "area and volume are unreliable", alpha, len(mesh.boundary_edges())
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['total_extractions'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['last_num_facets'] = len(facets)
        self.stats['last_closed'] = closed
        logger.debug("Extracted %d boundary facets at alpha=%g (%.1fms)", len(facets), alpha, elapsed_ms)
        return mesh

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()
