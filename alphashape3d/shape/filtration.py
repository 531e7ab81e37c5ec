#!/usr/bin/env python3
"""
アルファフィルトレーション

四面体分割のすべての単体（セル・ファセット・エッジ・頂点）について
アルファ区間 (alpha_min, alpha_mid, alpha_max) を計算し、
アルファスペクトルと臨界しきい値を導出します。

区間の意味（一般モード、特異単体を保持）:
- alpha < alpha_min                 : 外部
- alpha_min <= alpha < alpha_mid    : 特異
- alpha_mid <= alpha < alpha_max    : 正則（境界）
- alpha >= alpha_max（有限の場合） : 内部
alpha_min が未定義（NaN）の単体は alpha_mid 未満で外部になる。
"""

import time
from dataclasses import dataclass
from typing import Optional
import numpy as np
from scipy.cluster.hierarchy import DisjointSet
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components

from ..config import ClassificationConfig, get_config
from ..exceptions import InputError
from .. import get_logger
from .delaunay_3d import Triangulation
from .predicates import (
    tetra_circumspheres,
    triangle_circumspheres,
    edge_spheres,
    strictly_inside,
)

logger = get_logger(__name__)


@dataclass(eq=False)
class AlphaIntervals:
    """単体の種類ごとのアルファ区間"""
    alpha_min: np.ndarray     # NaN は未定義
    alpha_mid: np.ndarray
    alpha_max: np.ndarray

    def critical(self) -> np.ndarray:
        """単体が複体に入る臨界アルファ（alpha_min が未定義なら alpha_mid）"""
        return np.where(np.isnan(self.alpha_min), self.alpha_mid, self.alpha_min)

    def __len__(self) -> int:
        return len(self.alpha_mid)


class AlphaFiltration:
    """アルファフィルトレーションクラス

    四面体分割ごとに一度だけ計算し、以降は不変。
    """

    def __init__(self, triangulation: Triangulation,
                 config: Optional[ClassificationConfig] = None):
        """
        初期化（区間とスペクトルを計算）

        Args:
            triangulation: 無限セル付きの四面体分割
            config: 分類設定（球内判定の許容誤差）
        """
        self.triangulation = triangulation
        self.config = config if config is not None else get_config().classification

        start_time = time.perf_counter()
        self.cell_alpha = self._compute_cell_alpha()
        self.facets = self._compute_facet_intervals()
        self.edges = self._compute_edge_intervals()
        self.vertices = self._compute_vertex_intervals()
        self.spectrum = self._compute_spectrum()
        self._alpha_solid: Optional[float] = None

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Filtration computed: %d cells, %d facets, %d edges, spectrum size %d (%.1fms)",
            triangulation.num_finite_cells, len(self.facets), len(self.edges),
            len(self.spectrum), elapsed_ms
        )

    # ------------------------------------------------------------------
    # 区間計算
    # ------------------------------------------------------------------

    def _compute_cell_alpha(self) -> np.ndarray:
        tri = self.triangulation
        alpha = np.full(tri.num_cells, np.inf)
        _, r2 = tetra_circumspheres(tri.points, tri.finite_cells)
        alpha[:tri.num_finite_cells] = r2
        return alpha

    def _compute_facet_intervals(self) -> AlphaIntervals:
        tri = self.triangulation
        tol = self.config.sphere_tolerance
        points = tri.points

        centers, r2 = triangle_circumspheres(points, tri.facet_vertices)

        # 有限の隣接セルの対頂点が直径球の内側にあれば付随（Gabriel でない）
        opposite = tri.cells[tri.facet_cell, tri.facet_index]
        attached = strictly_inside(centers, r2, points[opposite], tol)

        finite_mirror = ~tri.is_infinite_cell(tri.mirror_cell)
        mirror_opposite = tri.cells[tri.mirror_cell[finite_mirror], tri.mirror_index[finite_mirror]]
        attached[finite_mirror] |= strictly_inside(
            centers[finite_mirror], r2[finite_mirror], points[mirror_opposite], tol
        )

        alpha_min = np.where(attached | ~np.isfinite(r2), np.nan, r2)
        a1 = self.cell_alpha[tri.facet_cell]
        a2 = self.cell_alpha[tri.mirror_cell]
        return AlphaIntervals(alpha_min, np.minimum(a1, a2), np.maximum(a1, a2))

    def _compute_edge_intervals(self) -> AlphaIntervals:
        tri = self.triangulation
        tol = self.config.sphere_tolerance
        num_edges = tri.num_edges

        midpoints, r2 = edge_spheres(tri.points, tri.edges)

        edge_ids = tri.facet_edges.reshape(-1)
        third = tri.facet_edge_opposite.reshape(-1)
        inside = strictly_inside(midpoints[edge_ids], r2[edge_ids], tri.points[third], tol)
        attached = np.zeros(num_edges, dtype=bool)
        np.logical_or.at(attached, edge_ids, inside)

        facet_critical = np.repeat(self.facets.critical(), 3)
        facet_max = np.repeat(self.facets.alpha_max, 3)
        alpha_mid = np.full(num_edges, np.inf)
        alpha_max = np.full(num_edges, -np.inf)
        np.minimum.at(alpha_mid, edge_ids, facet_critical)
        np.maximum.at(alpha_max, edge_ids, facet_max)

        alpha_min = np.where(attached, np.nan, r2)
        return AlphaIntervals(alpha_min, alpha_mid, alpha_max)

    def _compute_vertex_intervals(self) -> AlphaIntervals:
        tri = self.triangulation
        n = tri.num_vertices

        alpha_mid = np.full(n, np.inf)
        edge_critical = self.edges.critical()
        np.minimum.at(alpha_mid, tri.edges[:, 0], edge_critical)
        np.minimum.at(alpha_mid, tri.edges[:, 1], edge_critical)

        alpha_max = np.full(n, -np.inf)
        finite_alpha = self.cell_alpha[:tri.num_finite_cells]
        np.maximum.at(alpha_max, tri.finite_cells.reshape(-1), np.repeat(finite_alpha, 4))
        alpha_max[tri.hull_vertices()] = np.inf

        # 点のアルファ（半径0）は常に定義される
        alpha_min = np.zeros(n)
        absent = ~tri.vertex_present
        alpha_min[absent] = np.nan
        alpha_mid[absent] = np.inf
        alpha_max[absent] = np.inf
        return AlphaIntervals(alpha_min, alpha_mid, alpha_max)

    def _compute_spectrum(self) -> np.ndarray:
        candidates = np.concatenate([
            self.cell_alpha[:self.triangulation.num_finite_cells],
            self.facets.alpha_min,
            self.edges.alpha_min,
        ])
        candidates = candidates[np.isfinite(candidates) & (candidates > 0)]
        return np.unique(candidates)

    # ------------------------------------------------------------------
    # スペクトル問い合わせ
    # ------------------------------------------------------------------

    def nth_alpha(self, n: int) -> float:
        """
        n 番目に小さい臨界アルファ（1始まり）

        Raises:
            InputError: n が 1..len(spectrum) の範囲外
        """
        if not 1 <= n <= len(self.spectrum):
            raise InputError(
                f"nth_alpha index {n} out of range 1..{len(self.spectrum)}",
                details={'n': n, 'spectrum_size': len(self.spectrum)}
            )
        return float(self.spectrum[n - 1])

    def find_alpha_solid(self) -> float:
        """全頂点が内部セルに接続する最小アルファ"""
        if self._alpha_solid is None:
            tri = self.triangulation
            per_vertex = np.full(tri.num_vertices, np.inf)
            finite_alpha = self.cell_alpha[:tri.num_finite_cells]
            np.minimum.at(per_vertex, tri.finite_cells.reshape(-1), np.repeat(finite_alpha, 4))
            self._alpha_solid = float(per_vertex[tri.vertex_present].max())
        return self._alpha_solid

    def number_of_solid_components(self, alpha: float) -> int:
        """アルファでの内部セルの連結成分数（ファセット共有で連結）"""
        tri = self.triangulation
        nf = tri.num_finite_cells
        interior = self.cell_alpha[:nf] <= alpha
        count = int(interior.sum())
        if count == 0:
            return 0

        local = np.full(nf, -1, dtype=np.int64)
        local[interior] = np.arange(count)
        finite_mirror = ~tri.is_infinite_cell(tri.mirror_cell)
        a = tri.facet_cell[finite_mirror]
        b = tri.mirror_cell[finite_mirror]
        joined = interior[a] & interior[b]
        rows, cols = local[a[joined]], local[b[joined]]

        graph = coo_matrix(
            (np.ones(len(rows), dtype=np.int8), (rows, cols)), shape=(count, count)
        )
        n_components, _ = connected_components(graph, directed=False)
        return int(n_components)

    def find_optimal_alpha(self, nb_components: int = 1) -> float:
        """
        内部の連結成分数が nb_components 以下になる最小アルファ

        alpha_solid 以上のスペクトル値を昇順に走査し、
        セルを臨界アルファ順に素集合へ追加していく。

        Args:
            nb_components: 許容する連結成分数（1以上）

        Returns:
            条件を満たす最小のスペクトル値
        """
        if nb_components < 1:
            raise InputError(
                f"nb_components must be >= 1, got {nb_components}",
                details={'nb_components': nb_components}
            )

        alpha_solid = self.find_alpha_solid()
        candidates = self.spectrum[self.spectrum >= alpha_solid]
        if len(candidates) == 0:
            return alpha_solid

        tri = self.triangulation
        nf = tri.num_finite_cells
        order = np.argsort(self.cell_alpha[:nf], kind='stable')
        sorted_alpha = self.cell_alpha[order]

        components = DisjointSet()
        added = np.zeros(nf, dtype=bool)
        cursor = 0
        for alpha in candidates:
            while cursor < nf and sorted_alpha[cursor] <= alpha:
                cell = int(order[cursor])
                components.add(cell)
                added[cell] = True
                for nb in tri.neighbors[cell]:
                    if nb < nf and added[nb]:
                        components.merge(cell, int(nb))
                cursor += 1
            if components.n_subsets <= nb_components:
                return float(alpha)

        return float(candidates[-1])

    def get_statistics(self) -> dict:
        """フィルトレーションの概要"""
        return {
            'num_finite_cells': self.triangulation.num_finite_cells,
            'num_facets': len(self.facets),
            'num_edges': len(self.edges),
            'spectrum_size': len(self.spectrum),
            'alpha_solid': self.find_alpha_solid(),
        }
