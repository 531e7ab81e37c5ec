#!/usr/bin/env python3
"""
入力点集合

点群を検証し、取り込み順に 0 始まりの安定IDを割り当てます。
以降のすべての構造（メッシュ・ファセット・分類結果）はこのIDで点を参照します。
"""

from dataclasses import dataclass
import numpy as np

from ..constants import MIN_POINTS, COPLANARITY_TOLERANCE
from ..data_types import ArrayLike
from ..exceptions import InputError
from .. import get_logger

logger = get_logger(__name__)


def as_points_array(points: ArrayLike, name: str = "points") -> np.ndarray:
    """(N, 3) の有限な float64 配列に変換（空配列も許容）"""
    try:
        arr = np.array(points, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputError(f"{name} must be a sequence of (x, y, z) triples: {e}") from e

    if arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim == 1 and arr.shape[0] == 3:
        arr = arr.reshape(1, 3)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise InputError(
            f"{name} must have shape (N, 3), got {arr.shape}",
            details={'shape': arr.shape}
        )
    if not np.all(np.isfinite(arr)):
        raise InputError(f"{name} contains non-finite coordinates")
    return arr


@dataclass(frozen=True, eq=False)
class PointSet:
    """検証済みの入力点集合（不変）"""
    coordinates: np.ndarray     # (N, 3) 取り込み順
    distinct_ids: np.ndarray    # 重複を除いた代表点のID（昇順）

    @property
    def num_points(self) -> int:
        """入力点数"""
        return len(self.coordinates)

    @property
    def num_distinct(self) -> int:
        """重複を除いた点数"""
        return len(self.distinct_ids)

    @classmethod
    def from_array(cls, points: ArrayLike) -> 'PointSet':
        """
        点群を検証して PointSet を生成

        Args:
            points: (N, 3) の座標列

        Returns:
            読み取り専用の PointSet

        Raises:
            InputError: 点数不足・次元不正・非有限値・共面／共線
        """
        coords = as_points_array(points).copy()

        if len(coords) < MIN_POINTS:
            raise InputError(
                f"At least {MIN_POINTS} points are required, got {len(coords)}",
                details={'num_points': len(coords)}
            )

        # 重複点は最初の出現を代表とする
        _, first_index = np.unique(coords, axis=0, return_index=True)
        distinct_ids = np.sort(first_index)
        if len(distinct_ids) < MIN_POINTS:
            raise InputError(
                f"At least {MIN_POINTS} distinct points are required, got {len(distinct_ids)}",
                details={'num_distinct': len(distinct_ids)}
            )
        if len(distinct_ids) < len(coords):
            logger.warning(
                "%d duplicate points ignored for triangulation", len(coords) - len(distinct_ids)
            )

        # アフィン次元が3未満なら四面体分割できない
        distinct = coords[distinct_ids]
        centered = distinct - distinct.mean(axis=0)
        singular_values = np.linalg.svd(centered, compute_uv=False)
        if singular_values[2] <= COPLANARITY_TOLERANCE * singular_values[0]:
            raise InputError(
                "Points are coplanar or collinear; a 3D triangulation is impossible",
                details={'singular_values': singular_values.tolist()}
            )

        coords.setflags(write=False)
        distinct_ids.setflags(write=False)
        return cls(coordinates=coords, distinct_ids=distinct_ids)

    def bounding_diagonal(self) -> float:
        """包囲ボックスの対角長"""
        return float(np.linalg.norm(self.coordinates.max(axis=0) - self.coordinates.min(axis=0)))
