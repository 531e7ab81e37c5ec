#!/usr/bin/env python3
"""
単体・点の分類

現在のアルファに対して各単体を 外部 / 特異 / 正則 / 内部 に分類します。
分類はアルファ区間の純粋関数で、ラベルを保持しません。
任意の問い合わせ点は点位置特定で最小次元の単体に帰着させて分類します
（境界上の点は内側として扱う）。
"""

from typing import Optional
import numpy as np

from ..config import ClassificationConfig, get_config
from ..constants import CELL_EDGE_PAIRS
from ..data_types import SimplexClass
from .. import get_logger
from .delaunay_3d import Triangulation
from .filtration import AlphaFiltration, AlphaIntervals

logger = get_logger(__name__)

# 局所頂点ペア (p, q) -> セル内エッジ番号
_EDGE_LOOKUP = np.full((4, 4), -1, dtype=np.int64)
for _k, (_p, _q) in enumerate(CELL_EDGE_PAIRS):
    _EDGE_LOOKUP[_p, _q] = _k
    _EDGE_LOOKUP[_q, _p] = _k


def classify_intervals(intervals: AlphaIntervals, alpha: float) -> np.ndarray:
    """
    アルファ区間から単体ラベルを計算

    Args:
        intervals: (alpha_min, alpha_mid, alpha_max)
        alpha: 現在のアルファ

    Returns:
        SimplexClass 値の配列
    """
    amin, amid, amax = intervals.alpha_min, intervals.alpha_mid, intervals.alpha_max
    labels = np.full(len(intervals), SimplexClass.EXTERIOR, dtype=np.int64)

    with np.errstate(invalid='ignore'):
        singular = ~np.isnan(amin) & (alpha >= amin) & (alpha < amid)
        interior = np.isfinite(amax) & (alpha >= amax)
        regular = (alpha >= amid) & ~interior

    labels[singular] = SimplexClass.SINGULAR
    labels[regular] = SimplexClass.REGULAR
    labels[interior] = SimplexClass.INTERIOR
    return labels


class Classifier:
    """単体分類クラス"""

    def __init__(self, triangulation: Triangulation, filtration: AlphaFiltration,
                 config: Optional[ClassificationConfig] = None):
        self.triangulation = triangulation
        self.filtration = filtration
        self.config = config if config is not None else get_config().classification

    def classify_cells(self, alpha: float) -> np.ndarray:
        """セル: 臨界アルファ <= alpha なら内部、それ以外（無限セル含む）は外部"""
        interior = np.isfinite(self.filtration.cell_alpha) & (self.filtration.cell_alpha <= alpha)
        return np.where(interior, SimplexClass.INTERIOR, SimplexClass.EXTERIOR).astype(np.int64)

    def classify_facets(self, alpha: float) -> np.ndarray:
        return classify_intervals(self.filtration.facets, alpha)

    def classify_edges(self, alpha: float) -> np.ndarray:
        return classify_intervals(self.filtration.edges, alpha)

    def classify_vertices(self, alpha: float) -> np.ndarray:
        """頂点: 四面体分割に含まれない点は常に外部"""
        labels = classify_intervals(self.filtration.vertices, alpha)
        labels[~self.triangulation.vertex_present] = SimplexClass.EXTERIOR
        return labels

    def classify_points(self, points: np.ndarray, alpha: float) -> np.ndarray:
        """
        任意の点を分類

        点を含むセルを求め、重心座標が許容誤差内で0になる成分の数から
        点が属する最小次元の単体（セル・ファセット・エッジ・頂点）を決め、その単体を分類する。

        Args:
            points: 問い合わせ点 (Q, 3)
            alpha: 現在のアルファ

        Returns:
            SimplexClass 値の配列 (Q,)、凸包の外側は外部
        """
        tri = self.triangulation
        cells, bary = tri.locate(points)
        labels = np.full(len(cells), SimplexClass.EXTERIOR, dtype=np.int64)

        located = cells >= 0
        if not np.any(located):
            return labels

        tol = self.config.barycentric_tolerance
        with np.errstate(invalid='ignore'):
            on_face = np.abs(bary) <= tol
        zero_count = on_face.sum(axis=1)

        # セル内部
        mask = located & (zero_count == 0)
        if np.any(mask):
            labels[mask] = self.classify_cells(alpha)[cells[mask]]

        # ファセット上（対頂点の重心座標が0）
        mask = located & (zero_count == 1)
        if np.any(mask):
            local = np.argmax(on_face[mask], axis=1)
            facet_ids = tri.cell_facets[cells[mask], local]
            labels[mask] = self.classify_facets(alpha)[facet_ids]

        # エッジ上（残る2頂点がエッジ）
        mask = located & (zero_count == 2)
        if np.any(mask):
            kept = np.argsort(on_face[mask], axis=1, kind='stable')[:, :2]
            local_edge = _EDGE_LOOKUP[kept[:, 0], kept[:, 1]]
            edge_ids = tri.cell_edges[cells[mask], local_edge]
            labels[mask] = self.classify_edges(alpha)[edge_ids]

        # 頂点上
        mask = located & (zero_count == 3)
        if np.any(mask):
            local = np.argmin(on_face[mask], axis=1)
            vertex_ids = tri.cells[cells[mask], local]
            labels[mask] = self.classify_vertices(alpha)[vertex_ids]

        logger.debug("Classified %d points (%d inside hull)", len(labels), int(located.sum()))
        return labels

    def contains(self, points: np.ndarray, alpha: float) -> np.ndarray:
        """点が形状の内側または境界上にあるか"""
        return self.classify_points(points, alpha) != SimplexClass.EXTERIOR
