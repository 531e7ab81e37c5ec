#!/usr/bin/env python3
"""
三角形メッシュデータ構造

頂点配列と三角形インデックス配列から成るメッシュと、
そこから導出されるハーフエッジ・隣接ビューを提供します。
隣接関係はすべて整数インデックスで表現し、所有参照は持ちません。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import numpy as np


@dataclass(eq=False)
class TriangleMesh:
    """三角形メッシュデータ構造"""
    vertices: np.ndarray       # 頂点座標 (N, 3) - (x, y, z)
    triangles: np.ndarray      # 三角形インデックス (M, 3)
    _cache: Dict[str, object] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)

    @property
    def num_vertices(self) -> int:
        """頂点数を取得"""
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        """三角形数を取得"""
        return len(self.triangles)

    @property
    def num_edges(self) -> int:
        """無向エッジ数を取得"""
        return len(self.edges())

    def copy(self) -> 'TriangleMesh':
        """独立したコピーを返す"""
        return TriangleMesh(vertices=self.vertices.copy(), triangles=self.triangles.copy())

    def get_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """バウンディングボックスを取得"""
        min_bounds = np.min(self.vertices, axis=0)
        max_bounds = np.max(self.vertices, axis=0)
        return min_bounds, max_bounds

    def get_triangle_centers(self) -> np.ndarray:
        """三角形の重心を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]
        return (v0 + v1 + v2) / 3.0

    def get_triangle_areas(self) -> np.ndarray:
        """三角形の面積を計算"""
        v0 = self.vertices[self.triangles[:, 0]]
        v1 = self.vertices[self.triangles[:, 1]]
        v2 = self.vertices[self.triangles[:, 2]]

        # 3D外積の長さは2倍の面積
        cross = np.cross(v1 - v0, v2 - v0)
        return np.linalg.norm(cross, axis=1) / 2.0

    # ------------------------------------------------------------------
    # ハーフエッジビュー
    # ------------------------------------------------------------------

    def halfedges(self) -> np.ndarray:
        """有向ハーフエッジ (3M, 2)

        面 f のハーフエッジは行 3f, 3f+1, 3f+2 に (v0,v1), (v1,v2), (v2,v0) の順で並ぶ。
        """
        tris = self.triangles
        if len(tris) == 0:
            return np.empty((0, 2), dtype=np.int64)
        he = np.stack([tris, np.roll(tris, -1, axis=1)], axis=2)
        return he.reshape(-1, 2)

    def edges(self) -> np.ndarray:
        """一意な無向エッジ (E, 2)、各行は昇順"""
        if 'edges' not in self._cache:
            self._build_edge_tables()
        return self._cache['edges']

    def edge_face_counts(self) -> np.ndarray:
        """各無向エッジに接続する面の数 (E,)"""
        if 'edge_counts' not in self._cache:
            self._build_edge_tables()
        return self._cache['edge_counts']

    def boundary_edges(self) -> np.ndarray:
        """対になるハーフエッジを持たない有向ハーフエッジ (B, 2)"""
        he = self.halfedges()
        if len(he) == 0:
            return he
        n = max(self.num_vertices, 1)
        forward = he[:, 0] * n + he[:, 1]
        backward = he[:, 1] * n + he[:, 0]
        return he[~np.isin(forward, backward)]

    @property
    def is_closed(self) -> bool:
        """境界を持たないか

        すべての無向エッジについて u->v と v->u のハーフエッジ数が等しければ閉じている。
        非多様体エッジ（3面以上）は許容する。
        """
        if 'closed' not in self._cache:
            he = self.halfedges()
            if len(he) == 0:
                closed = True
            else:
                n = max(self.num_vertices, 1)
                keys, counts = np.unique(he[:, 0] * n + he[:, 1], return_counts=True)
                rev_keys = (keys % n) * n + keys // n
                rev_index = np.searchsorted(keys, rev_keys)
                rev_index = np.clip(rev_index, 0, len(keys) - 1)
                found = keys[rev_index] == rev_keys
                rev_counts = np.where(found, counts[rev_index], 0)
                closed = bool(np.all(counts == rev_counts))
            self._cache['closed'] = closed
        return self._cache['closed']

    @property
    def is_edge_manifold(self) -> bool:
        """すべてのエッジが1面または2面に接続するか"""
        counts = self.edge_face_counts()
        return bool(np.all(counts <= 2))

    def face_adjacency(self) -> List[List[int]]:
        """エッジを共有する面の隣接リスト（面番号の昇順）"""
        if 'face_adjacency' not in self._cache:
            if 'edge_faces' not in self._cache:
                self._build_edge_tables()
            adjacency: List[set] = [set() for _ in range(self.num_triangles)]
            for faces in self._cache['edge_faces']:
                for f in faces:
                    adjacency[f].update(g for g in faces if g != f)
            self._cache['face_adjacency'] = [sorted(a) for a in adjacency]
        return self._cache['face_adjacency']

    def referenced_vertices(self) -> np.ndarray:
        """いずれかの面から参照される頂点インデックス（昇順）"""
        return np.unique(self.triangles)

    def _build_edge_tables(self):
        he = self.halfedges()
        if len(he) == 0:
            self._cache['edges'] = np.empty((0, 2), dtype=np.int64)
            self._cache['edge_counts'] = np.empty(0, dtype=np.int64)
            self._cache['edge_faces'] = []
            return
        undirected = np.sort(he, axis=1)
        edges, inverse, counts = np.unique(
            undirected, axis=0, return_inverse=True, return_counts=True
        )
        inverse = inverse.reshape(-1)
        face_of_he = np.repeat(np.arange(self.num_triangles), 3)
        order = np.argsort(inverse, kind='stable')
        splits = np.cumsum(counts)[:-1]
        edge_faces = [g.tolist() for g in np.split(face_of_he[order], splits)]
        self._cache['edges'] = edges
        self._cache['edge_counts'] = counts
        self._cache['edge_faces'] = edge_faces


def compact_mesh(vertices: np.ndarray, triangles: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """参照されていない頂点を除去してインデックスを0から詰め直す

    Returns:
        (頂点, 三角形, 元の頂点インデックス) 。元のインデックスは昇順で、相対順序を保つ。
    """
    vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    used = np.unique(triangles)
    remap = np.full(len(vertices), -1, dtype=np.int64)
    remap[used] = np.arange(len(used))
    return vertices[used].copy(), remap[triangles], used


def empty_mesh(vertices: Optional[np.ndarray] = None) -> TriangleMesh:
    """面を持たないメッシュ"""
    if vertices is None:
        vertices = np.empty((0, 3))
    return TriangleMesh(vertices=vertices, triangles=np.empty((0, 3), dtype=np.int64))
