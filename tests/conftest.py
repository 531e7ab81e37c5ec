#!/usr/bin/env python3
"""
pytest共通設定とフィクスチャ

テスト実行時のロギング設定と、各テストで共有する点群・ポリゴンスープを提供します。
"""

import pytest
import sys
import os
import numpy as np

# パッケージのパス追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from alphashape3d import setup_logging, get_logger

# =============================================================================
# テストロギング設定
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """テスト全体のロギング設定"""
    setup_logging(level="DEBUG", format_style="simple")
    logger = get_logger("test")
    logger.info("=== テストセッション開始 ===")
    yield
    logger.info("=== テストセッション終了 ===")


@pytest.fixture
def test_logger():
    """テスト用ロガー"""
    return get_logger("test")


# =============================================================================
# 点群データ
# =============================================================================

def make_cube_corners() -> np.ndarray:
    """単位立方体の8頂点（(0,0,0) がID 0）"""
    return np.array(
        [[x, y, z] for x in (0.0, 1.0) for y in (0.0, 1.0) for z in (0.0, 1.0)]
    )


def make_sphere_samples(n: int = 200, noise: float = 0.01, seed: int = 7) -> np.ndarray:
    """単位球面付近の点（半径方向に微小なノイズを加えて一般位置にする）"""
    rng = np.random.default_rng(seed)
    directions = rng.normal(size=(n, 3))
    directions /= np.linalg.norm(directions, axis=1, keepdims=True)
    radii = 1.0 + noise * rng.uniform(-1.0, 1.0, size=n)
    return directions * radii[:, None]


def make_jittered_grid(offset=(0.0, 0.0, 0.0), size: int = 4, spacing: float = 0.33,
                       jitter: float = 0.02, seed: int = 3) -> np.ndarray:
    """わずかに揺らした格子点"""
    rng = np.random.default_rng(seed)
    axis = np.arange(size) * spacing
    grid = np.array(np.meshgrid(axis, axis, axis, indexing='ij')).reshape(3, -1).T
    return grid + rng.uniform(-jitter, jitter, size=grid.shape) + np.asarray(offset)


def make_two_clusters() -> np.ndarray:
    """x方向に10離れた2つの塊"""
    return np.vstack([
        make_jittered_grid(offset=(0.0, 0.0, 0.0), seed=3),
        make_jittered_grid(offset=(10.0, 0.0, 0.0), seed=5),
    ])


def make_square_soup():
    """向きの不揃い・重複頂点・退化面・重複面・未使用点を含むスープ"""
    points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [0.0, 1.0, 0.0],
        [5.0, 5.0, 5.0],    # 未使用
        [1.0, 1.0, 0.0],    # 2 と同一座標
        [2.0, 0.0, 0.0],    # 0-1 と共線
    ])
    facets = np.array([
        [0, 1, 2],
        [0, 3, 5],          # 統合後に 0 と逆向き
        [1, 1, 2],          # インデックス重複
        [2, 1, 0],          # 0 と同じ頂点集合
        [0, 1, 6],          # 面積0
    ])
    return points, facets


@pytest.fixture
def cube_points():
    """単位立方体の頂点"""
    return make_cube_corners()


@pytest.fixture
def sphere_points():
    """球面付近の点群"""
    return make_sphere_samples()


@pytest.fixture
def two_clusters():
    """離れた2つの塊"""
    return make_two_clusters()


@pytest.fixture
def square_soup():
    """修復用ポリゴンスープ"""
    return make_square_soup()
