#!/usr/bin/env python3
"""
アルファシェイプ本体

点群の取り込みから四面体分割・フィルトレーション・境界メッシュ抽出までを束ね、
アルファ制御・計測・点分類・近傍検索・簡略化・入出力の窓口を提供します。

インスタンスは単一スレッドからの利用を前提とし、内部でロックは取りません。
アルファを変更すると境界メッシュは無効化され、次に読まれたときに再構築されます。
"""

import math
from pathlib import Path
from typing import Optional, Tuple, Union
import numpy as np

from .config import AlphaShapeConfig, get_config
from .constants import DEFAULT_STOP_RATIO
from .data_types import ArrayLike, CriticalAlphaKind
from .exceptions import GeometryError, InputError
from .mesh import io as off_io
from .mesh.attributes import surface_area, volume
from .mesh.index import VertexIndex
from .mesh.repair import SoupRepairer
from .mesh.simplify import MeshSimplifier, validate_ratio
from .mesh.trimesh import TriangleMesh
from .shape.classify import Classifier
from .shape.delaunay_3d import DelaunayTriangulator, Triangulation
from .shape.filtration import AlphaFiltration
from .shape.points import PointSet, as_points_array
from .shape.surface import SurfaceExtractor
from . import get_logger

logger = get_logger(__name__)


class AlphaShape3D:
    """3次元アルファシェイプ"""

    def __init__(self, points: Optional[ArrayLike] = None,
                 config: Optional[AlphaShapeConfig] = None):
        """
        初期化

        Args:
            points: 取り込む点群 (N, 3)（Noneの場合は後で new_shape を呼ぶ）
            config: 全体設定（Noneの場合はグローバル設定）
        """
        self.config = config if config is not None else get_config()
        self.triangulator = DelaunayTriangulator(self.config.triangulation)

        self._point_set: Optional[PointSet] = None
        self._triangulation: Optional[Triangulation] = None
        self._filtration: Optional[AlphaFiltration] = None
        self._classifier: Optional[Classifier] = None
        self._extractor: Optional[SurfaceExtractor] = None

        self._alpha = 0.0
        self._mesh: Optional[TriangleMesh] = None
        self._mesh_dirty = True

        if points is not None:
            self.new_shape(points)

    @classmethod
    def build(cls, points: ArrayLike, config: Optional[AlphaShapeConfig] = None) -> 'AlphaShape3D':
        """点群からアルファシェイプを構築"""
        return cls(points, config=config)

    def new_shape(self, points: ArrayLike) -> None:
        """
        点群を取り込み直す

        すべての派生状態を計算し終えてから差し替える。
        失敗した場合は以前の状態がそのまま残る。

        Raises:
            InputError: 点群が不正（点数不足・共面など）
            GeometryError: 四面体分割に失敗
        """
        point_set = PointSet.from_array(points)
        triangulation = self.triangulator.triangulate(point_set)
        filtration = AlphaFiltration(triangulation, self.config.classification)
        classifier = Classifier(triangulation, filtration, self.config.classification)
        extractor = SurfaceExtractor(classifier)

        self._point_set = point_set
        self._triangulation = triangulation
        self._filtration = filtration
        self._classifier = classifier
        self._extractor = extractor
        self._alpha = 0.0
        self._mesh = None
        self._mesh_dirty = True

        logger.info(
            "Alpha shape built: %d points, %d cells, spectrum size %d",
            point_set.num_points, triangulation.num_finite_cells, len(filtration.spectrum)
        )

    @property
    def is_built(self) -> bool:
        return self._filtration is not None

    def _require_shape(self):
        if self._filtration is None:
            raise GeometryError("No point set has been ingested; call new_shape() first")

    # ------------------------------------------------------------------
    # アルファ制御
    # ------------------------------------------------------------------

    @property
    def alpha(self) -> float:
        """現在のアルファ"""
        return self._alpha

    @alpha.setter
    def alpha(self, value: float):
        self.set_alpha(value)

    def get_alpha(self) -> float:
        return self._alpha

    def set_alpha(self, value: float) -> None:
        """アルファを設定（境界メッシュは次に読まれたときに再構築）"""
        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise InputError(f"alpha must be a number: {value!r}") from e
        if math.isnan(value):
            raise InputError("alpha must not be NaN")
        if value != self._alpha:
            self._alpha = value
            self._mesh_dirty = True

    def _current_mesh(self) -> TriangleMesh:
        self._require_shape()
        if self._mesh_dirty or self._mesh is None:
            mesh = self._extractor.extract(self._alpha)
            self._mesh = mesh
            self._mesh_dirty = False
        return self._mesh

    # ------------------------------------------------------------------
    # スペクトル
    # ------------------------------------------------------------------

    def alpha_spectrum(self) -> np.ndarray:
        """昇順の臨界アルファ列"""
        self._require_shape()
        return self._filtration.spectrum.copy()

    def nth_alpha(self, n: int) -> float:
        """n 番目（1始まり）の臨界アルファ"""
        self._require_shape()
        return self._filtration.nth_alpha(n)

    def num_solid_components(self) -> int:
        """現在のアルファでの内部の連結成分数"""
        self._require_shape()
        return self._filtration.number_of_solid_components(self._alpha)

    def critical_alpha(self, kind: Union[str, CriticalAlphaKind]) -> float:
        """
        臨界アルファを取得

        Args:
            kind: "all-points" / "one-region" または CriticalAlphaKind

        Returns:
            臨界アルファ。未知の種類の文字列には NaN を返す
        """
        self._require_shape()
        try:
            kind = CriticalAlphaKind(kind)
        except ValueError:
            logger.warning("Unknown critical alpha kind %r; returning NaN", kind)
            return float('nan')

        if kind is CriticalAlphaKind.ALL_POINTS:
            return self._filtration.find_alpha_solid()
        return self._filtration.find_optimal_alpha(1)

    # ------------------------------------------------------------------
    # 幾何クエリ
    # ------------------------------------------------------------------

    @property
    def mesh(self) -> TriangleMesh:
        """現在の境界メッシュのコピー（頂点は入力点全体）"""
        return self._current_mesh().copy()

    def surface_area(self) -> float:
        return surface_area(self._current_mesh())

    def volume(self) -> float:
        """
        囲まれた体積

        Raises:
            GeometryError: 境界メッシュが閉じていない場合
        """
        return volume(self._current_mesh())

    def boundary_facets(self) -> np.ndarray:
        """外向きに向き付けた境界三角形 (M, 3)、インデックスは入力点ID"""
        return self._current_mesh().triangles.copy()

    def write_boundary_facets(self, path: Union[str, Path]) -> None:
        """入力点全体と境界三角形をOFFファイルに書き出す"""
        mesh = self._current_mesh()
        off_io.write_off(path, mesh.vertices, mesh.triangles)

    def classify_point_labels(self, points: ArrayLike) -> np.ndarray:
        """問い合わせ点の SimplexClass ラベル"""
        self._require_shape()
        queries = as_points_array(points, name="queries")
        return self._classifier.classify_points(queries, self._alpha)

    def classify_points(self, points: ArrayLike) -> np.ndarray:
        """問い合わせ点が形状の内側（境界上を含む）にあるか"""
        self._require_shape()
        queries = as_points_array(points, name="queries")
        return self._classifier.contains(queries, self._alpha)

    def nearest_neighbor(self, points: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """
        境界メッシュ頂点への最近傍検索

        Returns:
            (入力点ID (Q,), 距離 (Q,))

        Raises:
            GeometryError: 境界メッシュが空の場合
        """
        index = VertexIndex(self._current_mesh(), config=self.config.index)
        return index.query(points)

    def simplify(self, ratio: float = DEFAULT_STOP_RATIO,
                 filename: Optional[Union[str, Path]] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        境界メッシュのコピーを簡略化

        Args:
            ratio: 残すエッジ数の比率 (0, 1]
            filename: 指定すれば結果をOFFファイルにも書き出す

        Returns:
            (点, 三角形)
        """
        ratio = validate_ratio(ratio)
        mesh = self._current_mesh().copy()
        simplifier = MeshSimplifier(stop_ratio=ratio, config=self.config.simplification)
        simplified = simplifier.simplify_mesh(mesh)
        if filename is not None:
            off_io.write_off(filename, simplified.vertices, simplified.triangles)
        return simplified.vertices, simplified.triangles

    def triangulation(self) -> np.ndarray:
        """有限セルごとに4三角形を並べた (4M, 3) 配列"""
        self._require_shape()
        return self._triangulation.simplex_triangles()

    # ------------------------------------------------------------------
    # 形状に依存しない操作
    # ------------------------------------------------------------------

    @staticmethod
    def remove_unused_points(points: ArrayLike, facets: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """スープを修復して未参照頂点を除去"""
        return SoupRepairer().repair(points, facets)

    @staticmethod
    def write_off(path: Union[str, Path], points: ArrayLike, faces: ArrayLike) -> None:
        off_io.write_off(path, points, faces)

    @staticmethod
    def read_off(path: Union[str, Path]) -> Tuple[np.ndarray, np.ndarray]:
        return off_io.read_off(path)


def boundary_3d(points: ArrayLike, shrink: float = 0.5) -> Tuple[np.ndarray, float]:
    """
    点群の境界面と体積（簡単なインターフェース）

    単一領域になる臨界アルファ以降のスペクトルから、
    shrink が大きいほど小さいアルファを選ぶ。

    Args:
        points: 点群 (N, 3)
        shrink: 0（凸包に近い）〜 1（最もきつい単一領域）

    Returns:
        (境界三角形 (M, 3), 体積)
    """
    if not 0.0 <= shrink <= 1.0:
        raise InputError(f"shrink must be in [0, 1], got {shrink}", details={'shrink': shrink})

    shape = AlphaShape3D(points)
    critical = shape.critical_alpha(CriticalAlphaKind.ONE_REGION)
    spectrum = shape.alpha_spectrum()
    subspectrum = spectrum[np.searchsorted(spectrum, critical):]
    if len(subspectrum) == 0:
        subspectrum = np.array([critical])

    idx = max(math.ceil((1.0 - shrink) * len(subspectrum)) - 1, 0)
    shape.set_alpha(subspectrum[idx])
    return shape.boundary_facets(), shape.volume()
