#!/usr/bin/env python3
"""
AlphaShape3D のテスト

構築・アルファ制御・臨界アルファ・計測・点分類・近傍検索・簡略化・
便利関数 boundary_3d を通しで確認します。
"""

import unittest
import math
import tempfile
import numpy as np

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from alphashape3d import (
    AlphaShape3D, boundary_3d, CriticalAlphaKind, SimplexClass,
    GeometryError, InputError, read_off
)
from conftest import make_cube_corners, make_sphere_samples, make_two_clusters


class TestCubeShape(unittest.TestCase):
    """単位立方体のアルファシェイプ"""

    def setUp(self):
        self.shape = AlphaShape3D(make_cube_corners())
        self.shape.set_alpha(self.shape.critical_alpha("one-region"))

    def test_measures(self):
        """単一領域アルファで立方体そのもの"""
        self.assertAlmostEqual(self.shape.volume(), 1.0, delta=1e-6)
        self.assertAlmostEqual(self.shape.surface_area(), 6.0, delta=1e-6)
        self.assertTrue(self.shape.mesh.is_closed)
        self.assertEqual(self.shape.boundary_facets().shape, (12, 3))

    def test_classify_points(self):
        """中心は内側、遠方は外側"""
        inside = self.shape.classify_points([[0.5, 0.5, 0.5], [10.0, 10.0, 10.0]])
        np.testing.assert_array_equal(inside, [True, False])
        labels = self.shape.classify_point_labels([[0.3, 0.45, 0.62], [0.5, 0.5, 0.0]])
        np.testing.assert_array_equal(labels, [SimplexClass.INTERIOR, SimplexClass.REGULAR])

    def test_nearest_neighbor(self):
        """最近傍は入力点IDと距離"""
        indices, distances = self.shape.nearest_neighbor([[0.0, 0.0, 0.1]])
        self.assertEqual(indices[0], 0)
        self.assertAlmostEqual(distances[0], 0.1)

    def test_triangulation_triangles(self):
        """有限セルごとに4三角形"""
        tris = self.shape.triangulation()
        self.assertEqual(tris.shape[1], 3)
        self.assertEqual(len(tris) % 4, 0)
        self.assertGreaterEqual(len(tris), 4 * 5)

    def test_mesh_is_a_copy(self):
        """返されたメッシュを変更しても内部状態は変わらない"""
        mesh = self.shape.mesh
        mesh.triangles[:] = 0
        self.assertAlmostEqual(self.shape.volume(), 1.0, delta=1e-6)

    def test_write_boundary_facets(self):
        """境界面をOFFに書き出す"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "cube.off")
            self.shape.write_boundary_facets(path)
            points, faces = read_off(path)
        self.assertEqual(points.shape, (8, 3))
        np.testing.assert_array_equal(faces, self.shape.boundary_facets())


class TestAlphaControl(unittest.TestCase):
    """アルファ制御テスト"""

    def setUp(self):
        self.shape = AlphaShape3D(make_sphere_samples())

    def test_default_alpha(self):
        """構築直後のアルファは0で境界は空"""
        self.assertEqual(self.shape.alpha, 0.0)
        self.assertEqual(len(self.shape.boundary_facets()), 0)
        self.assertEqual(self.shape.volume(), 0.0)
        self.assertEqual(self.shape.surface_area(), 0.0)

    def test_empty_surface_nearest_neighbor(self):
        """空の境界に対する近傍検索はエラー"""
        with self.assertRaises(GeometryError):
            self.shape.nearest_neighbor([[0.0, 0.0, 0.0]])

    def test_set_alpha_validation(self):
        """NaN や非数値は拒否し、値は変わらない"""
        self.shape.set_alpha(0.5)
        with self.assertRaises(InputError):
            self.shape.set_alpha(float('nan'))
        with self.assertRaises(InputError):
            self.shape.set_alpha("large")
        self.assertEqual(self.shape.get_alpha(), 0.5)

    def test_alpha_property(self):
        """プロパティ経由の設定"""
        self.shape.alpha = 0.25
        self.assertEqual(self.shape.get_alpha(), 0.25)

    def test_lazy_rebuild(self):
        """メッシュは読まれたときに一度だけ再構築される"""
        extractor = self.shape._extractor
        spectrum = self.shape.alpha_spectrum()
        self.shape.set_alpha(spectrum[-1])
        self.shape.set_alpha(spectrum[len(spectrum) // 2])
        self.assertEqual(extractor.get_performance_stats()['total_extractions'], 0)

        self.shape.surface_area()
        self.shape.boundary_facets()
        self.assertEqual(extractor.get_performance_stats()['total_extractions'], 1)

        # 同じ値の再設定では無効化しない
        self.shape.set_alpha(spectrum[len(spectrum) // 2])
        self.shape.surface_area()
        self.assertEqual(extractor.get_performance_stats()['total_extractions'], 1)

    def test_spectrum_copy(self):
        """スペクトルはコピー"""
        spectrum = self.shape.alpha_spectrum()
        spectrum[:] = -1.0
        self.assertTrue(np.all(self.shape.alpha_spectrum() > 0))
        self.assertEqual(self.shape.nth_alpha(1), self.shape.alpha_spectrum()[0])

    def test_hull_at_largest_alpha(self):
        """最大アルファで全入力点が内側"""
        self.shape.set_alpha(self.shape.alpha_spectrum()[-1])
        self.assertTrue(np.all(self.shape.classify_points(make_sphere_samples() * 0.9)))
        self.assertEqual(self.shape.num_solid_components(), 1)
        self.assertGreater(self.shape.volume(), 0.0)


class TestCriticalAlpha(unittest.TestCase):
    """臨界アルファテスト"""

    def setUp(self):
        self.shape = AlphaShape3D(make_two_clusters())

    def test_kinds(self):
        """文字列と列挙型は同じ結果"""
        all_points = self.shape.critical_alpha("all-points")
        one_region = self.shape.critical_alpha("one-region")
        self.assertEqual(all_points, self.shape.critical_alpha(CriticalAlphaKind.ALL_POINTS))
        self.assertEqual(one_region, self.shape.critical_alpha(CriticalAlphaKind.ONE_REGION))
        self.assertLessEqual(all_points, one_region)

    def test_unknown_kind(self):
        """未知の種類は NaN"""
        self.assertTrue(math.isnan(self.shape.critical_alpha("bogus")))

    def test_component_counts(self):
        """単一領域アルファで成分1つ、その直前では複数"""
        one_region = self.shape.critical_alpha("one-region")
        self.shape.set_alpha(one_region)
        self.assertEqual(self.shape.num_solid_components(), 1)

        spectrum = self.shape.alpha_spectrum()
        previous = spectrum[np.searchsorted(spectrum, one_region) - 1]
        self.shape.set_alpha(previous)
        self.assertGreater(self.shape.num_solid_components(), 1)


class TestShapeLifecycle(unittest.TestCase):
    """構築と状態管理のテスト"""

    def test_unbuilt_shape(self):
        """点群なしのクエリはエラー"""
        shape = AlphaShape3D()
        self.assertFalse(shape.is_built)
        with self.assertRaises(GeometryError):
            shape.alpha_spectrum()
        with self.assertRaises(GeometryError):
            shape.volume()
        with self.assertRaises(GeometryError):
            shape.critical_alpha("one-region")

    def test_failed_new_shape_keeps_state(self):
        """取り込み失敗時は以前の状態を保つ"""
        shape = AlphaShape3D.build(make_cube_corners())
        alpha = shape.critical_alpha("one-region")
        shape.set_alpha(alpha)

        coplanar = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0], [2, 2, 0]], dtype=float)
        with self.assertRaises(InputError):
            shape.new_shape(coplanar)

        self.assertEqual(shape.get_alpha(), alpha)
        self.assertAlmostEqual(shape.volume(), 1.0, delta=1e-6)

    def test_new_shape_resets_alpha(self):
        """新しい点群でアルファは0に戻る"""
        shape = AlphaShape3D(make_cube_corners())
        shape.set_alpha(1.0)
        shape.new_shape(make_sphere_samples(n=50))
        self.assertEqual(shape.get_alpha(), 0.0)
        self.assertEqual(len(shape.boundary_facets()), 0)


class TestSimplifyAndRepair(unittest.TestCase):
    """簡略化と修復の窓口"""

    def setUp(self):
        self.shape = AlphaShape3D(make_sphere_samples())
        self.shape.set_alpha(self.shape.alpha_spectrum()[-1])

    def test_simplify(self):
        """簡略化結果は詰め直されている"""
        edges_before = self.shape.mesh.num_edges
        points, faces = self.shape.simplify(0.5)
        self.assertTrue(np.all(faces < len(points)))
        np.testing.assert_array_equal(np.unique(faces), np.arange(len(points)))
        self.assertLess(len(faces), len(self.shape.boundary_facets()))
        self.assertEqual(self.shape.mesh.num_edges, edges_before)

    def test_simplify_to_file(self):
        """ファイル名を指定するとOFFにも書き出す"""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "simplified.off")
            points, faces = self.shape.simplify(0.5, filename=path)
            read_points, read_faces = read_off(path)
        np.testing.assert_array_equal(read_points, points)
        np.testing.assert_array_equal(read_faces, faces)

    def test_simplify_invalid_ratio(self):
        """比率の検証"""
        with self.assertRaises(InputError):
            self.shape.simplify(0.0)

    def test_remove_unused_points(self):
        """境界面に使われない内部点を除去"""
        points = make_sphere_samples()
        inner = np.vstack([points, [[0.0, 0.0, 0.0], [0.1, 0.1, 0.1]]])
        shape = AlphaShape3D(inner)
        shape.set_alpha(shape.alpha_spectrum()[-1])
        kept, facets = AlphaShape3D.remove_unused_points(inner, shape.boundary_facets())
        self.assertEqual(len(kept), len(np.unique(shape.boundary_facets())))
        self.assertLess(len(kept), len(inner))
        self.assertEqual(len(facets), len(shape.boundary_facets()))


class TestBoundary3D(unittest.TestCase):
    """boundary_3d 便利関数"""

    def test_cube(self):
        """立方体は shrink によらず体積1"""
        for shrink in (0.0, 0.5, 1.0):
            facets, vol = boundary_3d(make_cube_corners(), shrink)
            self.assertAlmostEqual(vol, 1.0, delta=1e-6)
            self.assertEqual(facets.shape, (12, 3))

    def test_shrink_orders_volume(self):
        """shrink を大きくすると体積は増えない"""
        points = make_sphere_samples()
        _, loose = boundary_3d(points, 0.0)
        _, tight = boundary_3d(points, 1.0)
        self.assertLessEqual(tight, loose + 1e-12)

    def test_invalid_shrink(self):
        """shrink は [0, 1]"""
        with self.assertRaises(InputError):
            boundary_3d(make_cube_corners(), 1.5)


if __name__ == '__main__':
    unittest.main()
