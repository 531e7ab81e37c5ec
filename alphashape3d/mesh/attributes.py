#!/usr/bin/env python3
"""
メッシュ計測

境界メッシュの表面積・体積・面法線を計算します。
体積は発散定理による符号付き体積で、閉じた一貫した向きのメッシュを前提とします。
"""

import time
from dataclasses import dataclass
import numpy as np

from ..exceptions import GeometryError
from .. import get_logger
from .trimesh import TriangleMesh

logger = get_logger(__name__)


@dataclass
class MeshMeasures:
    """メッシュ計測結果"""
    surface_area: float
    volume: float              # 閉じていない場合は NaN
    is_closed: bool
    num_vertices: int          # 面から参照される頂点数
    num_triangles: int
    num_edges: int


def triangle_areas(mesh: TriangleMesh) -> np.ndarray:
    """三角形ごとの面積 (M,)"""
    return mesh.get_triangle_areas()


def triangle_normals(mesh: TriangleMesh) -> np.ndarray:
    """三角形の単位法線 (M, 3)、面積0の三角形はゼロベクトル"""
    v0 = mesh.vertices[mesh.triangles[:, 0]]
    v1 = mesh.vertices[mesh.triangles[:, 1]]
    v2 = mesh.vertices[mesh.triangles[:, 2]]
    normals = np.cross(v1 - v0, v2 - v0)
    norms = np.linalg.norm(normals, axis=1, keepdims=True)
    return np.divide(normals, norms, out=np.zeros_like(normals), where=norms > 0)


def surface_area(mesh: TriangleMesh) -> float:
    """表面積（三角形面積の総和）"""
    if mesh.num_triangles == 0:
        return 0.0
    return float(triangle_areas(mesh).sum())


def volume(mesh: TriangleMesh) -> float:
    """
    囲まれた体積

    外向きの巻き順を前提に v0·(v1×v2)/6 を総和する。

    Raises:
        GeometryError: メッシュが閉じていない場合
    """
    if mesh.num_triangles == 0:
        return 0.0
    if not mesh.is_closed:
        raise GeometryError(
            "Volume is undefined for a surface that is not closed",
            details={'boundary_halfedges': len(mesh.boundary_edges())}
        )
    v0 = mesh.vertices[mesh.triangles[:, 0]]
    v1 = mesh.vertices[mesh.triangles[:, 1]]
    v2 = mesh.vertices[mesh.triangles[:, 2]]
    return float(np.einsum('mi,mi->m', v0, np.cross(v1, v2)).sum() / 6.0)


class MeshAnalyzer:
    """メッシュ計測クラス"""

    def __init__(self):
        self.stats = {
            'total_analyses': 0,
            'total_time_ms': 0.0,
            'average_time_ms': 0.0,
        }

    def analyze(self, mesh: TriangleMesh) -> MeshMeasures:
        """
        メッシュを計測

        Args:
            mesh: 入力メッシュ

        Returns:
            計測結果（閉じていないメッシュの体積は NaN）
        """
        start_time = time.perf_counter()

        closed = mesh.is_closed
        measures = MeshMeasures(
            surface_area=surface_area(mesh),
            volume=volume(mesh) if closed else float('nan'),
            is_closed=closed,
            num_vertices=len(mesh.referenced_vertices()),
            num_triangles=mesh.num_triangles,
            num_edges=mesh.num_edges,
        )
        if not closed:
            logger.warning("Mesh is not closed; volume reported as NaN")

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.stats['total_analyses'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['average_time_ms'] = self.stats['total_time_ms'] / self.stats['total_analyses']
        return measures

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()
