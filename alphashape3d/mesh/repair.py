#!/usr/bin/env python3
"""
ポリゴンスープ修復

外部から与えられた (点, ファセット) の組を Open3D の TriangleMesh 上で整え、
密なメッシュに詰め直します。
処理順:
1. 入力検証
2. 巻き順の一貫化（隣接三角形の向きを揃える）
3. 同一座標の頂点統合・退化三角形と重複三角形の除去
4. 未参照頂点の除去
5. 再度の向き付け（統合で連結成分がつながる場合がある）

出力に再適用しても変化しない（冪等）。
"""

import time
from typing import Optional, Tuple
import numpy as np
import open3d as o3d

from ..config import RepairConfig, get_config
from ..exceptions import InputError
from ..shape.points import as_points_array
from .. import get_logger
from .trimesh import TriangleMesh

logger = get_logger(__name__)


def validate_soup(points, facets) -> Tuple[np.ndarray, np.ndarray]:
    """点とファセットを検証して配列化"""
    points = as_points_array(points)
    try:
        facets = np.array(facets, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputError(f"facets must be a sequence of index triples: {e}") from e
    if facets.size == 0:
        return points, np.empty((0, 3), dtype=np.int64)
    if facets.ndim != 2 or facets.shape[1] != 3:
        raise InputError(
            f"facets must have shape (M, 3), got {facets.shape}",
            details={'shape': facets.shape}
        )
    if not np.all(np.isfinite(facets)) or not np.all(facets == np.round(facets)):
        raise InputError("facet indices must be integers")
    facets = facets.astype(np.int64)
    if facets.min() < 0 or facets.max() >= len(points):
        raise InputError(
            f"facet indices out of range 0..{len(points) - 1}",
            details={'min_index': int(facets.min()), 'max_index': int(facets.max()),
                     'num_points': len(points)}
        )
    return points, facets


def _to_open3d(points: np.ndarray, facets: np.ndarray) -> o3d.geometry.TriangleMesh:
    """numpy配列からOpen3Dメッシュへ変換"""
    o3d_mesh = o3d.geometry.TriangleMesh()
    o3d_mesh.vertices = o3d.utility.Vector3dVector(np.asarray(points, dtype=np.float64))
    o3d_mesh.triangles = o3d.utility.Vector3iVector(
        np.asarray(facets, dtype=np.int32).reshape(-1, 3)
    )
    return o3d_mesh


def _triangles_of(o3d_mesh: o3d.geometry.TriangleMesh) -> np.ndarray:
    return np.asarray(o3d_mesh.triangles, dtype=np.int64).reshape(-1, 3)


def _orient(o3d_mesh: o3d.geometry.TriangleMesh) -> bool:
    """
    巻き順を揃える

    向き付けできない（非多様体エッジ・メビウス状）場合は途中までの反転を戻し、
    入力の巻き順を保つ。
    """
    if len(o3d_mesh.triangles) == 0:
        return True
    before = np.asarray(o3d_mesh.triangles).copy()
    if o3d_mesh.orient_triangles():
        return True
    o3d_mesh.triangles = o3d.utility.Vector3iVector(before)
    return False


def orient_facets(facets: np.ndarray, num_vertices: int) -> np.ndarray:
    """
    隣接三角形の巻き順を揃える

    共有エッジを両側の面が逆向きに辿るように面を反転する。
    向き付け不可能な場合は入力の巻き順のまま返す。
    """
    facets = np.asarray(facets, dtype=np.int64).reshape(-1, 3)
    o3d_mesh = _to_open3d(np.zeros((num_vertices, 3)), facets)
    if not _orient(o3d_mesh):
        logger.debug("Facets are not orientable; winding left unchanged")
    return _triangles_of(o3d_mesh)


class SoupRepairer:
    """ポリゴンスープ修復クラス"""

    def __init__(self, area_tolerance: Optional[float] = None,
                 config: Optional[RepairConfig] = None):
        """
        初期化

        Args:
            area_tolerance: 退化三角形とみなす面積（対角長の2乗に対する比）
            config: 修復設定
        """
        config = config if config is not None else get_config().repair
        self.area_tolerance = config.area_tolerance if area_tolerance is None else area_tolerance

        self.stats = {
            'total_repairs': 0,
            'total_time_ms': 0.0,
            'last_merged_vertices': 0,
            'last_degenerate_facets': 0,
            'last_duplicate_facets': 0,
            'last_removed_vertices': 0,
            'last_orientable': True,
        }

    def repair(self, points, facets) -> Tuple[np.ndarray, np.ndarray]:
        """
        スープを修復して詰め直す

        Args:
            points: 点 (N, 3)
            facets: 三角形インデックス (M, 3)

        Returns:
            (詰め直した点, 詰め直したファセット)

        Raises:
            InputError: 形状不正・非有限値・範囲外インデックス
        """
        mesh = self.repair_mesh(points, facets)
        return mesh.vertices, mesh.triangles

    def repair_mesh(self, points, facets) -> TriangleMesh:
        """修復結果を TriangleMesh として返す"""
        start_time = time.perf_counter()
        points, facets = validate_soup(points, facets)
        o3d_mesh = _to_open3d(points, facets)

        _orient(o3d_mesh)

        o3d_mesh.remove_duplicated_vertices()
        merged = len(points) - len(o3d_mesh.vertices)

        num_before = len(o3d_mesh.triangles)
        o3d_mesh.remove_degenerate_triangles()
        self._remove_zero_area(o3d_mesh)
        degenerate = num_before - len(o3d_mesh.triangles)

        num_before = len(o3d_mesh.triangles)
        o3d_mesh.remove_duplicated_triangles()
        self._remove_reversed_duplicates(o3d_mesh)
        duplicates = num_before - len(o3d_mesh.triangles)

        o3d_mesh.remove_unreferenced_vertices()
        orientable = _orient(o3d_mesh)

        mesh = TriangleMesh(
            vertices=np.asarray(o3d_mesh.vertices, dtype=np.float64).reshape(-1, 3),
            triangles=_triangles_of(o3d_mesh)
        )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['total_repairs'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['last_merged_vertices'] = merged
        self.stats['last_degenerate_facets'] = degenerate
        self.stats['last_duplicate_facets'] = duplicates
        self.stats['last_removed_vertices'] = len(points) - mesh.num_vertices
        self.stats['last_orientable'] = orientable
        if not orientable:
            logger.warning("Repaired soup is not orientable; facet winding left as given")
        logger.debug(
            "Repaired soup: %d -> %d points, %d -> %d facets (%.1fms)",
            len(points), mesh.num_vertices, len(facets), mesh.num_triangles, elapsed_ms
        )
        return mesh

    def _remove_zero_area(self, o3d_mesh: o3d.geometry.TriangleMesh):
        """面積がほぼ0の三角形を除去（参照される点の対角長の2乗に対する比）"""
        triangles = _triangles_of(o3d_mesh)
        if len(triangles) == 0:
            return
        vertices = np.asarray(o3d_mesh.vertices)
        used = vertices[np.unique(triangles)]
        diag2 = float(np.sum((used.max(axis=0) - used.min(axis=0)) ** 2))
        areas = TriangleMesh(vertices=vertices, triangles=triangles).get_triangle_areas()
        degenerate = areas <= self.area_tolerance * diag2
        if np.any(degenerate):
            o3d_mesh.remove_triangles_by_mask(degenerate.tolist())

    @staticmethod
    def _remove_reversed_duplicates(o3d_mesh: o3d.geometry.TriangleMesh):
        """逆向きで同じ頂点集合の三角形は最初の1つだけ残す"""
        triangles = _triangles_of(o3d_mesh)
        if len(triangles) == 0:
            return
        _, first_index = np.unique(np.sort(triangles, axis=1), axis=0, return_index=True)
        duplicate = np.ones(len(triangles), dtype=bool)
        duplicate[first_index] = False
        if np.any(duplicate):
            o3d_mesh.remove_triangles_by_mask(duplicate.tolist())

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()


# 便利関数

def remove_unused_points(points, facets) -> Tuple[np.ndarray, np.ndarray]:
    """スープを修復して未参照頂点を除去（簡単なインターフェース）"""
    return SoupRepairer().repair(points, facets)
