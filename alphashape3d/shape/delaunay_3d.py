#!/usr/bin/env python3
"""
3D Delaunay四面体分割

scipy.spatial.Delaunay (Qhull) で有限セルを生成し、
凸包の外側を表す無限セルを補って閉じた隣接構造（アリーナ）を構築します。
セル・ファセット・エッジ・頂点はすべて整数IDで相互参照します。
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np
from scipy.spatial import Delaunay, QhullError

from ..constants import INFINITE_VERTEX, CELL_EDGE_PAIRS
from ..config import TriangulationConfig, get_config
from ..exceptions import GeometryError
from .. import get_logger
from .points import PointSet
from .predicates import tetra_volumes

logger = get_logger(__name__)

# セル内の局所インデックス i に対向するファセットの頂点順
# 正の向きのセルでは、この順の三角形の法線は頂点 i の側を向く
FACET_VERTEX_ORDER = np.array([
    [2, 1, 3],
    [2, 3, 0],
    [0, 3, 1],
    [0, 1, 2],
], dtype=np.int64)

# ソート済みファセット (a, b, c) の各エッジとその対頂点
FACET_EDGE_PAIRS = np.array([[1, 2], [0, 2], [0, 1]], dtype=np.int64)
FACET_EDGE_OPPOSITE = np.array([0, 1, 2], dtype=np.int64)

# getTriangulation 互換のセルあたり4三角形
CELL_TRIANGLE_ORDER = np.array([
    [0, 1, 2],
    [0, 2, 3],
    [1, 2, 3],
    [0, 1, 3],
], dtype=np.int64)


@dataclass(eq=False)
class Triangulation:
    """無限セル付きの3D Delaunay四面体分割

    先頭 num_finite_cells 個が有限セル（Qhull の simplices と同じ順）、
    以降が凸包ファセットごとの無限セル。
    """
    points: np.ndarray              # 入力点 (N, 3)
    cells: np.ndarray               # セル頂点 (C, 4)、無限頂点は -1
    neighbors: np.ndarray           # cells[c, i] に対向する隣接セル (C, 4)
    num_finite_cells: int
    swapped: np.ndarray             # Qhull の頂点順から 0,1 を入れ替えた有限セル
    delaunay: Delaunay              # 点位置特定用

    # ファセット表（各ファセットは1回だけ）
    facet_cell: np.ndarray = None       # 有限側のセル (F,)
    facet_index: np.ndarray = None      # そのセル内の対頂点インデックス (F,)
    mirror_cell: np.ndarray = None      # 反対側のセル (F,)
    mirror_index: np.ndarray = None     # 反対側セル内の対頂点インデックス (F,)
    facet_vertices: np.ndarray = None   # ソート済み頂点 (F, 3)
    cell_facets: np.ndarray = None      # 有限セルの各局所インデックスのファセットID (Cf, 4)

    # エッジ表
    edges: np.ndarray = None            # ソート済み有限エッジ (E, 2)
    cell_edges: np.ndarray = None       # 有限セルの6エッジのID (Cf, 6)
    facet_edges: np.ndarray = None      # ファセットの3エッジのID (F, 3)
    facet_edge_opposite: np.ndarray = None  # 各ファセットエッジの対頂点 (F, 3)

    vertex_present: np.ndarray = None   # 四面体分割に含まれる点 (N,)

    @property
    def num_cells(self) -> int:
        """無限セルを含むセル数"""
        return len(self.cells)

    @property
    def num_facets(self) -> int:
        return len(self.facet_cell)

    @property
    def num_edges(self) -> int:
        return len(self.edges)

    @property
    def num_vertices(self) -> int:
        """入力点数（IDの範囲）"""
        return len(self.points)

    @property
    def finite_cells(self) -> np.ndarray:
        return self.cells[:self.num_finite_cells]

    def is_infinite_cell(self, cells: np.ndarray) -> np.ndarray:
        """セルIDが無限セルか"""
        return np.asarray(cells) >= self.num_finite_cells

    def hull_vertices(self) -> np.ndarray:
        """凸包上の頂点ID（昇順）"""
        infinite = self.cells[self.num_finite_cells:]
        return np.unique(infinite[infinite != INFINITE_VERTEX])

    def oriented_facet(self, cells: np.ndarray, indices: np.ndarray) -> np.ndarray:
        """セル c の局所インデックス i に対向するファセットの頂点（法線は頂点 i 側）"""
        cells = np.asarray(cells, dtype=np.int64)
        order = FACET_VERTEX_ORDER[np.asarray(indices, dtype=np.int64)]
        return np.take_along_axis(self.cells[cells], order, axis=1)

    def simplex_triangles(self) -> np.ndarray:
        """有限セルごとに4つの三角形を並べた (4M, 3) 配列"""
        tris = self.finite_cells[:, CELL_TRIANGLE_ORDER]
        return tris.reshape(-1, 3)

    def locate(self, queries: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        点を含む有限セルと重心座標を求める

        Args:
            queries: 問い合わせ点 (Q, 3)

        Returns:
            (セルID, 重心座標 (Q, 4))。凸包の外側はセルID -1、重心座標 NaN
        """
        queries = np.asarray(queries, dtype=np.float64).reshape(-1, 3)
        simplex = np.asarray(self.delaunay.find_simplex(queries), dtype=np.int64)
        bary = np.full((len(queries), 4), np.nan)

        inside = simplex >= 0
        if np.any(inside):
            s = simplex[inside]
            transform = self.delaunay.transform[s]
            b = np.einsum('qij,qj->qi', transform[:, :3, :], queries[inside] - transform[:, 3, :])
            full = np.column_stack([b, 1.0 - b.sum(axis=1)])
            # 頂点順を入れ替えたセルに合わせる
            flip = self.swapped[s]
            full[flip, 0], full[flip, 1] = full[flip, 1].copy(), full[flip, 0].copy()
            bary[inside] = full

        return simplex, bary


class DelaunayTriangulator:
    """3D Delaunay四面体分割クラス"""

    def __init__(self, config: Optional[TriangulationConfig] = None):
        """
        初期化

        Args:
            config: 四面体分割設定（Noneの場合はグローバル設定）
        """
        self.config = config if config is not None else get_config().triangulation

        # パフォーマンス統計
        self.stats = {
            'total_triangulations': 0,
            'total_time_ms': 0.0,
            'average_time_ms': 0.0,
            'last_num_points': 0,
            'last_num_cells': 0,
            'last_num_flat_cells': 0,
        }

    def triangulate(self, point_set: PointSet) -> Triangulation:
        """
        点集合を四面体分割

        Args:
            point_set: 検証済みの点集合

        Returns:
            無限セル付きの四面体分割

        Raises:
            GeometryError: Qhull が失敗した場合
        """
        start_time = time.perf_counter()

        points = point_set.coordinates
        ids = np.asarray(point_set.distinct_ids, dtype=np.int64)
        try:
            delaunay = Delaunay(points[ids], qhull_options=self.config.qhull_options)
        except (QhullError, ValueError) as e:
            raise GeometryError(
                f"Delaunay triangulation failed: {e}",
                details={'num_points': len(ids)}
            ) from e

        cells = ids[delaunay.simplices].astype(np.int64)
        neighbors = delaunay.neighbors.astype(np.int64).copy()
        if len(cells) == 0:
            raise GeometryError("Delaunay triangulation produced no cells")

        cells, neighbors, swapped, num_flat = self._orient_cells(points, cells, neighbors)
        num_finite = len(cells)
        cells, neighbors = self._add_infinite_cells(cells, neighbors)

        tri = Triangulation(
            points=points,
            cells=cells,
            neighbors=neighbors,
            num_finite_cells=num_finite,
            swapped=swapped,
            delaunay=delaunay,
        )
        self._build_facet_table(tri)
        self._build_edge_table(tri)

        tri.vertex_present = np.zeros(len(points), dtype=bool)
        tri.vertex_present[tri.finite_cells.reshape(-1)] = True
        missing = len(ids) - int(tri.vertex_present.sum())
        if missing > 0:
            logger.warning("%d points were not used by Qhull", missing)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._update_stats(elapsed_ms, len(ids), num_finite, num_flat)
        logger.debug(
            "Triangulated %d points: %d finite cells, %d facets, %d edges (%.1fms)",
            len(ids), num_finite, tri.num_facets, tri.num_edges, elapsed_ms
        )
        return tri

    def _orient_cells(self, points: np.ndarray, cells: np.ndarray, neighbors: np.ndarray):
        """すべての有限セルを正の向きに揃える"""
        volumes = tetra_volumes(points, cells)
        diag = float(np.linalg.norm(points.max(axis=0) - points.min(axis=0)))
        tolerance = self.config.degenerate_volume_tolerance * diag ** 3

        flat = np.abs(volumes) <= tolerance
        swapped = (volumes < 0) & ~flat
        self._swap_first_two(cells, neighbors, np.flatnonzero(swapped))

        # ほぼ平坦なセルは向き付け済みの隣接セルから組合せ的に向きを伝播
        if np.any(flat):
            oriented = ~flat
            queue = deque(int(c) for c in np.flatnonzero(flat))
            stalled = 0
            while queue and stalled <= len(queue):
                c = queue.popleft()
                anchor = None
                for j in range(4):
                    nb = neighbors[c, j]
                    if nb >= 0 and oriented[nb]:
                        anchor = (j, int(nb))
                        break
                if anchor is None:
                    queue.append(c)
                    stalled += 1
                    continue
                stalled = 0
                j, nb = anchor
                i = int(np.flatnonzero(neighbors[nb] == c)[0])
                mine = cells[c, FACET_VERTEX_ORDER[j]].tolist()
                theirs = cells[nb, FACET_VERTEX_ORDER[i]].tolist()
                # 共有ファセットは両セルで逆向きに現れなければならない
                if _same_cyclic_order(mine, theirs):
                    self._swap_first_two(cells, neighbors, [c])
                    swapped[c] = True
                oriented[c] = True
            if queue:
                logger.warning("%d flat cells could not be oriented", len(queue))

        return cells, neighbors, swapped, int(flat.sum())

    @staticmethod
    def _swap_first_two(cells: np.ndarray, neighbors: np.ndarray, which):
        which = np.asarray(which, dtype=np.int64)
        if len(which) == 0:
            return
        cells[which[:, None], [0, 1]] = cells[which[:, None], [1, 0]]
        neighbors[which[:, None], [0, 1]] = neighbors[which[:, None], [1, 0]]

    @staticmethod
    def _add_infinite_cells(cells: np.ndarray, neighbors: np.ndarray):
        """凸包ファセットごとに無限セルを追加"""
        num_finite = len(cells)
        hull_c, hull_i = np.nonzero(neighbors == -1)
        num_inf = len(hull_c)

        inf_cells = cells[hull_c].copy()
        inf_cells[np.arange(num_inf), hull_i] = INFINITE_VERTEX
        # 有限側と逆向きにするため残り2頂点を入れ替える
        a = (hull_i + 1) % 4
        b = (hull_i + 2) % 4
        rows = np.arange(num_inf)
        inf_cells[rows, a], inf_cells[rows, b] = inf_cells[rows, b].copy(), inf_cells[rows, a].copy()

        inf_neighbors = np.full((num_inf, 4), -1, dtype=np.int64)
        inf_ids = num_finite + rows
        inf_neighbors[rows, hull_i] = hull_c
        neighbors = neighbors.copy()
        neighbors[hull_c, hull_i] = inf_ids

        return np.vstack([cells, inf_cells]), np.vstack([neighbors, inf_neighbors])

    @staticmethod
    def _build_facet_table(tri: Triangulation):
        nf = tri.num_finite_cells
        c = np.repeat(np.arange(nf, dtype=np.int64), 4)
        i = np.tile(np.arange(4, dtype=np.int64), nf)
        nb = tri.neighbors[:nf].reshape(-1)

        keep = (nb >= nf) | (c < nb)
        c, i, nb = c[keep], i[keep], nb[keep]

        mirror_index = i.copy()
        finite_mirror = nb < nf
        if np.any(finite_mirror):
            mirror_index[finite_mirror] = np.argmax(
                tri.neighbors[nb[finite_mirror]] == c[finite_mirror, None], axis=1
            )

        facet_ids = np.arange(len(c), dtype=np.int64)
        cell_facets = np.full((nf, 4), -1, dtype=np.int64)
        cell_facets[c, i] = facet_ids
        cell_facets[nb[finite_mirror], mirror_index[finite_mirror]] = facet_ids[finite_mirror]

        tri.facet_cell = c
        tri.facet_index = i
        tri.mirror_cell = nb
        tri.mirror_index = mirror_index
        tri.facet_vertices = np.sort(tri.oriented_facet(c, i), axis=1)
        tri.cell_facets = cell_facets

    @staticmethod
    def _build_edge_table(tri: Triangulation):
        n = max(tri.num_vertices, 1)
        pairs = tri.finite_cells[:, CELL_EDGE_PAIRS]          # (Cf, 6, 2)
        pairs = np.sort(pairs, axis=2).reshape(-1, 2)
        edges, inverse = np.unique(pairs, axis=0, return_inverse=True)
        tri.edges = edges
        tri.cell_edges = inverse.reshape(-1).reshape(-1, 6)

        fv = tri.facet_vertices
        facet_pairs = fv[:, FACET_EDGE_PAIRS]                  # (F, 3, 2)
        keys = facet_pairs[..., 0] * n + facet_pairs[..., 1]
        edge_keys = edges[:, 0] * n + edges[:, 1]
        tri.facet_edges = np.searchsorted(edge_keys, keys)
        tri.facet_edge_opposite = fv[:, FACET_EDGE_OPPOSITE]

    def _update_stats(self, elapsed_ms: float, num_points: int, num_cells: int, num_flat: int):
        """統計更新"""
        self.stats['total_triangulations'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['average_time_ms'] = self.stats['total_time_ms'] / self.stats['total_triangulations']
        self.stats['last_num_points'] = num_points
        self.stats['last_num_cells'] = num_cells
        self.stats['last_num_flat_cells'] = num_flat

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()

    def reset_stats(self):
        """統計をリセット"""
        for key in self.stats:
            self.stats[key] = 0.0 if key.endswith('_ms') else 0


def _same_cyclic_order(a, b) -> bool:
    """3要素列 a が b の巡回置換か"""
    return a in (b, b[1:] + b[:1], b[2:] + b[:2])


# 便利関数

def triangulate_points(points, config: Optional[TriangulationConfig] = None) -> Triangulation:
    """
    点群を直接四面体分割（簡単なインターフェース）

    Args:
        points: (N, 3) 点群
        config: 四面体分割設定

    Returns:
        無限セル付きの四面体分割
    """
    triangulator = DelaunayTriangulator(config)
    return triangulator.triangulate(PointSet.from_array(points))
