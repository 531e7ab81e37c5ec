#!/usr/bin/env python3
"""
メッシュ簡略化

二次誤差（Garland-Heckbert）に基づくエッジ崩壊でメッシュを間引きます。
入力メッシュは変更せず、私的コピー上で処理して詰め直したメッシュを返します。
Open3D の quadric decimation も選択できます。
"""

import heapq
import math
import time
from enum import Enum
from typing import List, Optional, Set, Tuple
import numpy as np
import open3d as o3d

from ..config import SimplificationConfig, get_config
from ..constants import DEFAULT_STOP_RATIO
from ..exceptions import InputError
from .. import get_logger
from .trimesh import TriangleMesh, compact_mesh

logger = get_logger(__name__)


class SimplificationMethod(Enum):
    """簡略化手法の列挙"""
    EDGE_COLLAPSE = "edge_collapse"     # エッジ崩壊（組み込み、二次誤差コスト）
    QUADRIC_ERROR = "quadric"           # Open3D の Quadric Error Metrics


def validate_ratio(ratio: float) -> float:
    """停止比率が (0, 1] にあるか検証"""
    try:
        ratio = float(ratio)
    except (TypeError, ValueError) as e:
        raise InputError(f"Simplification ratio must be a number: {ratio!r}") from e
    if not (0.0 < ratio <= 1.0):
        raise InputError(
            f"Simplification ratio must be in (0, 1], got {ratio}",
            details={'ratio': ratio}
        )
    return ratio


def _plane_quadric(normal: np.ndarray, point: np.ndarray, weight: float) -> np.ndarray:
    """平面 n·x + d = 0 の基本二次誤差行列"""
    p = np.append(normal, -float(np.dot(normal, point)))
    return weight * np.outer(p, p)


class MeshSimplifier:
    """メッシュ簡略化クラス"""

    def __init__(
        self,
        stop_ratio: Optional[float] = None,           # 残すエッジ数の比率 (0, 1]
        method: Optional[SimplificationMethod] = None,
        boundary_weight: Optional[float] = None,      # 境界拘束の重み
        check_normal_flip: Optional[bool] = None,     # 法線反転を禁止するか
        config: Optional[SimplificationConfig] = None
    ):
        """
        初期化

        Args:
            stop_ratio: エッジ数がこの比率以下になったら停止
            method: 簡略化手法
            boundary_weight: 境界エッジの拘束平面の重み
            check_normal_flip: 面の法線が反転する崩壊を拒否するか
            config: 簡略化設定（未指定の引数はここから取る）
        """
        config = config if config is not None else get_config().simplification
        self.stop_ratio = validate_ratio(config.stop_ratio if stop_ratio is None else stop_ratio)
        self.method = method if method is not None else SimplificationMethod(config.method)
        self.boundary_weight = config.boundary_weight if boundary_weight is None else boundary_weight
        self.check_normal_flip = config.check_normal_flip if check_normal_flip is None else check_normal_flip

        # パフォーマンス統計
        self.stats = {
            'total_simplifications': 0,
            'total_time_ms': 0.0,
            'average_time_ms': 0.0,
            'last_input_edges': 0,
            'last_output_edges': 0,
            'last_collapses': 0,
            'last_rejected': 0,
        }

    def simplify_mesh(self, mesh: TriangleMesh) -> TriangleMesh:
        """
        メッシュを簡略化

        Args:
            mesh: 入力メッシュ（変更しない）

        Returns:
            未参照頂点を除いて詰め直した簡略化メッシュ
        """
        start_time = time.perf_counter()

        vertices = mesh.vertices.copy()
        triangles = mesh.triangles.copy()
        input_edges = mesh.num_edges

        if len(triangles) == 0:
            verts, tris, _ = compact_mesh(vertices, triangles)
            return TriangleMesh(vertices=verts, triangles=tris)

        if self.method == SimplificationMethod.QUADRIC_ERROR:
            verts, tris = self._simplify_open3d(vertices, triangles)
        else:
            verts, tris = self._simplify_edge_collapse(vertices, triangles, input_edges)

        verts, tris, _ = compact_mesh(verts, tris)
        result = TriangleMesh(vertices=verts, triangles=tris)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._update_stats(elapsed_ms, input_edges, result.num_edges)
        logger.debug(
            "Simplified mesh: %d -> %d edges, %d -> %d triangles (%.1fms)",
            input_edges, result.num_edges, len(triangles), result.num_triangles, elapsed_ms
        )
        return result

    # ------------------------------------------------------------------
    # 組み込みエッジ崩壊
    # ------------------------------------------------------------------

    def _simplify_edge_collapse(self, vertices: np.ndarray, triangles: np.ndarray,
                                input_edges: int) -> Tuple[np.ndarray, np.ndarray]:
        faces: List[Optional[List[int]]] = [list(map(int, t)) for t in triangles]
        vertex_faces: List[Set[int]] = [set() for _ in range(len(vertices))]
        for f, tri in enumerate(faces):
            for v in tri:
                vertex_faces[v].add(f)

        quadrics = self._initial_quadrics(vertices, triangles)
        is_boundary = np.zeros(len(vertices), dtype=bool)
        probe = TriangleMesh(vertices=vertices, triangles=triangles)
        is_boundary[probe.boundary_edges().reshape(-1)] = True

        version = np.zeros(len(vertices), dtype=np.int64)
        heap: List[Tuple[float, int, int, int, int]] = []
        for u, v in probe.edges():
            self._push_edge(heap, vertices, quadrics, version, int(u), int(v))

        edge_count = input_edges
        target = self.stop_ratio * input_edges
        collapses = 0
        rejected = 0

        while edge_count > target and heap:
            _, u, v, ver_u, ver_v = heapq.heappop(heap)
            if version[u] != ver_u or version[v] != ver_v:
                continue

            shared = vertex_faces[u] & vertex_faces[v]
            if not shared:
                continue

            position = self._optimal_position(vertices, quadrics, u, v)
            if not self._is_legal_collapse(faces, vertex_faces, vertices, is_boundary,
                                           u, v, shared, position):
                rejected += 1
                continue

            # v を u に統合
            vertices[u] = position
            quadrics[u] = quadrics[u] + quadrics[v]
            is_boundary[u] |= is_boundary[v]
            for f in shared:
                for w in faces[f]:
                    vertex_faces[w].discard(f)
                faces[f] = None
            for f in vertex_faces[v]:
                faces[f] = [u if w == v else w for w in faces[f]]
                vertex_faces[u].add(f)
            vertex_faces[v] = set()
            version[u] += 1
            version[v] += 1

            edge_count -= 1 + len(shared)
            collapses += 1

            for w in self._link(faces, vertex_faces, u):
                self._push_edge(heap, vertices, quadrics, version, u, w)

        if edge_count > target:
            logger.warning(
                "Edge collapse stopped at %d edges before reaching target %d (no legal collapse)",
                edge_count, math.ceil(target)
            )

        self.stats['last_collapses'] = collapses
        self.stats['last_rejected'] = rejected

        remaining = [f for f in faces if f is not None]
        tris = np.array(remaining, dtype=np.int64).reshape(-1, 3)
        return vertices, tris

    def _initial_quadrics(self, vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
        """面平面（面積重み）と境界拘束平面から頂点ごとの二次誤差行列を作る"""
        quadrics = np.zeros((len(vertices), 4, 4))
        v0 = vertices[triangles[:, 0]]
        v1 = vertices[triangles[:, 1]]
        v2 = vertices[triangles[:, 2]]
        cross = np.cross(v1 - v0, v2 - v0)
        norms = np.linalg.norm(cross, axis=1)
        normals = np.divide(cross, norms[:, None], out=np.zeros_like(cross), where=norms[:, None] > 0)
        areas = norms / 2.0

        d = -np.einsum('mi,mi->m', normals, v0)
        planes = np.column_stack([normals, d])
        face_q = areas[:, None, None] * np.einsum('mi,mj->mij', planes, planes)
        for k in range(3):
            np.add.at(quadrics, triangles[:, k], face_q)

        # 境界エッジには面に垂直な拘束平面を加える
        if self.boundary_weight > 0:
            mesh = TriangleMesh(vertices=vertices, triangles=triangles)
            he = mesh.halfedges()
            boundary = mesh.boundary_edges()
            if len(boundary):
                n = max(len(vertices), 1)
                he_keys = he[:, 0] * n + he[:, 1]
                b_keys = boundary[:, 0] * n + boundary[:, 1]
                face_of = np.flatnonzero(np.isin(he_keys, b_keys)) // 3
                for (a, b), f in zip(boundary, face_of):
                    direction = vertices[b] - vertices[a]
                    normal = np.cross(direction, normals[f])
                    length = np.linalg.norm(normal)
                    if length == 0:
                        continue
                    q = _plane_quadric(normal / length, vertices[a],
                                       self.boundary_weight * float(np.dot(direction, direction)))
                    quadrics[a] += q
                    quadrics[b] += q
        return quadrics

    @staticmethod
    def _optimal_position(vertices: np.ndarray, quadrics: np.ndarray, u: int, v: int) -> np.ndarray:
        """崩壊後の頂点位置（解けなければ端点・中点から最小誤差のもの）"""
        q = quadrics[u] + quadrics[v]
        a = q[:3, :3]
        if abs(np.linalg.det(a)) > 1e-12 * max(np.abs(a).max(), 1e-300) ** 3:
            return np.linalg.solve(a, -q[:3, 3])
        candidates = (vertices[u], vertices[v], 0.5 * (vertices[u] + vertices[v]))
        costs = [_quadric_cost(q, c) for c in candidates]
        return candidates[int(np.argmin(costs))].copy()

    def _push_edge(self, heap, vertices, quadrics, version, u: int, v: int):
        position = self._optimal_position(vertices, quadrics, u, v)
        cost = _quadric_cost(quadrics[u] + quadrics[v], position)
        heapq.heappush(heap, (cost, u, v, int(version[u]), int(version[v])))

    @staticmethod
    def _link(faces, vertex_faces, v: int) -> Set[int]:
        """頂点 v に隣接する頂点集合"""
        return {w for f in vertex_faces[v] for w in faces[f] if w != v}

    def _is_legal_collapse(self, faces, vertex_faces, vertices, is_boundary,
                           u: int, v: int, shared: Set[int], position: np.ndarray) -> bool:
        """リンク条件・面の重複・法線反転を検査"""
        # リンク条件: 共通の隣接頂点はエッジを含む面の対頂点だけ
        common = self._link(faces, vertex_faces, u) & self._link(faces, vertex_faces, v)
        if len(common) != len(shared):
            return False

        # 境界頂点同士を内部エッジで結ぶと境界がつままれる
        if is_boundary[u] and is_boundary[v] and len(shared) != 1:
            return False

        # 崩壊後に同じ頂点集合の面ができてはならない
        keys = set()
        for f in (vertex_faces[u] | vertex_faces[v]) - shared:
            key = frozenset(u if w == v else w for w in faces[f])
            if len(key) < 3 or key in keys:
                return False
            keys.add(key)

        if self.check_normal_flip:
            for f in (vertex_faces[u] | vertex_faces[v]) - shared:
                tri = faces[f]
                old = vertices[tri]
                new = old.copy()
                for k, w in enumerate(tri):
                    if w == u or w == v:
                        new[k] = position
                n_old = np.cross(old[1] - old[0], old[2] - old[0])
                n_new = np.cross(new[1] - new[0], new[2] - new[0])
                if np.dot(n_old, n_new) <= 0:
                    return False
        return True

    # ------------------------------------------------------------------
    # Open3D
    # ------------------------------------------------------------------

    def _simplify_open3d(self, vertices: np.ndarray, triangles: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        o3d_mesh = o3d.geometry.TriangleMesh()
        o3d_mesh.vertices = o3d.utility.Vector3dVector(vertices)
        o3d_mesh.triangles = o3d.utility.Vector3iVector(triangles.astype(np.int32))

        target_triangles = max(1, int(len(triangles) * self.stop_ratio))
        simplified = o3d_mesh.simplify_quadric_decimation(
            target_number_of_triangles=target_triangles,
            boundary_weight=self.boundary_weight
        )
        simplified.remove_unreferenced_vertices()
        return np.asarray(simplified.vertices), np.asarray(simplified.triangles)

    def _update_stats(self, elapsed_ms: float, input_edges: int, output_edges: int):
        """統計更新"""
        self.stats['total_simplifications'] += 1
        self.stats['total_time_ms'] += elapsed_ms
        self.stats['average_time_ms'] = self.stats['total_time_ms'] / self.stats['total_simplifications']
        self.stats['last_input_edges'] = input_edges
        self.stats['last_output_edges'] = output_edges

    def get_performance_stats(self) -> dict:
        """パフォーマンス統計を取得"""
        return self.stats.copy()

    def reset_stats(self):
        """統計をリセット"""
        for key in self.stats:
            self.stats[key] = 0.0 if key.endswith('_ms') else 0


def _quadric_cost(q: np.ndarray, position: np.ndarray) -> float:
    p = np.append(position, 1.0)
    return float(max(p @ q @ p, 0.0))


# 便利関数

def simplify_mesh(
    mesh: TriangleMesh,
    stop_ratio: float = DEFAULT_STOP_RATIO,
    method: SimplificationMethod = SimplificationMethod.EDGE_COLLAPSE
) -> TriangleMesh:
    """
    メッシュを簡略化（簡単なインターフェース）

    Args:
        mesh: 入力メッシュ
        stop_ratio: 残すエッジ数の比率
        method: 簡略化手法

    Returns:
        簡略化されたメッシュ
    """
    simplifier = MeshSimplifier(stop_ratio=stop_ratio, method=method)
    return simplifier.simplify_mesh(mesh)
