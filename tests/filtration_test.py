#!/usr/bin/env python3
"""
アルファフィルトレーションと分類のテスト

アルファ区間の整合性、スペクトルの順序、単調性、臨界しきい値、
単体分類と点分類を確認します。
"""

import unittest
import numpy as np

# テスト対象モジュール
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from alphashape3d import InputError, SimplexClass
from alphashape3d.shape import (
    PointSet, DelaunayTriangulator, AlphaFiltration, Classifier, SurfaceExtractor
)
from alphashape3d.shape.predicates import tetra_circumspheres
from conftest import make_cube_corners, make_sphere_samples, make_two_clusters


def build(points):
    tri = DelaunayTriangulator().triangulate(PointSet.from_array(points))
    filtration = AlphaFiltration(tri)
    return tri, filtration, Classifier(tri, filtration)


class TestAlphaIntervals(unittest.TestCase):
    """アルファ区間テスト"""

    def setUp(self):
        self.points = make_sphere_samples()
        self.tri, self.filtration, self.classifier = build(self.points)

    def test_cell_alpha(self):
        """有限セルは外接半径の2乗、無限セルは無限大"""
        f = self.filtration
        nf = self.tri.num_finite_cells
        self.assertTrue(np.all(np.isfinite(f.cell_alpha[:nf])))
        self.assertTrue(np.all(f.cell_alpha[:nf] > 0))
        self.assertTrue(np.all(np.isinf(f.cell_alpha[nf:])))

        # 外接球は4頂点すべてを通る
        c = 0
        p = self.points[self.tri.cells[c]]
        centers, r2 = tetra_circumspheres(self.points, self.tri.cells[[c]])
        d2 = np.sum((p - centers[0]) ** 2, axis=1)
        np.testing.assert_allclose(d2, r2[0], rtol=1e-9)
        self.assertAlmostEqual(f.cell_alpha[c], r2[0])

    def test_interval_ordering(self):
        """alpha_min <= alpha_mid <= alpha_max"""
        for intervals in (self.filtration.facets, self.filtration.edges):
            defined = ~np.isnan(intervals.alpha_min)
            self.assertTrue(np.any(defined))
            self.assertTrue(np.all(
                intervals.alpha_min[defined] <= intervals.alpha_mid[defined] * (1 + 1e-9)
            ))
            self.assertTrue(np.all(intervals.alpha_mid <= intervals.alpha_max))

    def test_hull_facets_unbounded(self):
        """凸包ファセットの alpha_max は無限大"""
        f = self.filtration
        on_hull = self.tri.is_infinite_cell(self.tri.mirror_cell)
        self.assertTrue(np.all(np.isinf(f.facets.alpha_max[on_hull])))
        self.assertTrue(np.all(np.isfinite(f.facets.alpha_max[~on_hull])))

    def test_vertex_intervals(self):
        """頂点の alpha_mid は接続エッジの臨界アルファの最小値"""
        f = self.filtration
        v = int(self.tri.edges[0, 0])
        incident = np.any(self.tri.edges == v, axis=1)
        self.assertAlmostEqual(f.vertices.alpha_mid[v], f.edges.critical()[incident].min())
        self.assertEqual(f.vertices.alpha_min[v], 0.0)

    def test_spectrum_strictly_ascending(self):
        """スペクトルは正の有限値で狭義単調増加"""
        spectrum = self.filtration.spectrum
        self.assertGreater(len(spectrum), 0)
        self.assertTrue(np.all(np.diff(spectrum) > 0))
        self.assertTrue(np.all(np.isfinite(spectrum)))
        self.assertTrue(np.all(spectrum > 0))

    def test_nth_alpha(self):
        """1始まりの添字"""
        spectrum = self.filtration.spectrum
        self.assertEqual(self.filtration.nth_alpha(1), spectrum[0])
        self.assertEqual(self.filtration.nth_alpha(len(spectrum)), spectrum[-1])
        with self.assertRaises(InputError):
            self.filtration.nth_alpha(0)
        with self.assertRaises(InputError):
            self.filtration.nth_alpha(len(spectrum) + 1)

    def test_monotonic_inclusion(self):
        """アルファを増やすと内部・複体はともに単調に増える"""
        spectrum = self.filtration.spectrum
        alphas = spectrum[np.linspace(0, len(spectrum) - 1, 12).astype(int)]
        c = self.classifier
        previous = None
        for alpha in alphas:
            current = {
                'cells': c.classify_cells(alpha),
                'facets': c.classify_facets(alpha),
                'edges': c.classify_edges(alpha),
                'vertices': c.classify_vertices(alpha),
            }
            if previous is not None:
                for key in current:
                    was_interior = previous[key] == SimplexClass.INTERIOR
                    self.assertTrue(np.all(current[key][was_interior] == SimplexClass.INTERIOR), key)
                    was_in = previous[key] != SimplexClass.EXTERIOR
                    self.assertTrue(np.all(current[key][was_in] != SimplexClass.EXTERIOR), key)
            previous = current

    def test_everything_interior_at_top(self):
        """最大のアルファでは全有限セルが内部、凸包ファセットは正則"""
        alpha = self.filtration.spectrum[-1]
        cells = self.classifier.classify_cells(alpha)
        nf = self.tri.num_finite_cells
        self.assertTrue(np.all(cells[:nf] == SimplexClass.INTERIOR))
        self.assertTrue(np.all(cells[nf:] == SimplexClass.EXTERIOR))

        facets = self.classifier.classify_facets(alpha)
        on_hull = self.tri.is_infinite_cell(self.tri.mirror_cell)
        self.assertTrue(np.all(facets[on_hull] == SimplexClass.REGULAR))
        self.assertTrue(np.all(facets[~on_hull] == SimplexClass.INTERIOR))

    def test_nothing_at_zero(self):
        """アルファ0ではセル・ファセット・エッジはすべて外部、頂点は特異"""
        c = self.classifier
        self.assertTrue(np.all(c.classify_cells(0.0) == SimplexClass.EXTERIOR))
        self.assertTrue(np.all(c.classify_facets(0.0) == SimplexClass.EXTERIOR))
        self.assertTrue(np.all(c.classify_edges(0.0) == SimplexClass.EXTERIOR))
        self.assertTrue(np.all(c.classify_vertices(0.0) == SimplexClass.SINGULAR))

    def test_alpha_solid(self):
        """alpha_solid では全頂点が内部セルに接続する"""
        f = self.filtration
        alpha_solid = f.find_alpha_solid()
        self.assertIn(alpha_solid, f.spectrum)

        nf = self.tri.num_finite_cells
        interior = f.cell_alpha[:nf] <= alpha_solid
        covered = np.unique(self.tri.finite_cells[interior])
        self.assertEqual(len(covered), len(self.points))

        below = f.spectrum[f.spectrum < alpha_solid]
        if len(below):
            interior = f.cell_alpha[:nf] <= below[-1]
            self.assertLess(len(np.unique(self.tri.finite_cells[interior])), len(self.points))

    def test_optimal_alpha_single_component(self):
        """最適アルファで連結成分は1つ"""
        f = self.filtration
        optimal = f.find_optimal_alpha(1)
        self.assertGreaterEqual(optimal, f.find_alpha_solid())
        self.assertEqual(f.number_of_solid_components(optimal), 1)
        self.assertEqual(f.number_of_solid_components(f.spectrum[-1]), 1)
        self.assertEqual(f.number_of_solid_components(0.0), 0)

    def test_optimal_alpha_invalid(self):
        """成分数は1以上"""
        with self.assertRaises(InputError):
            self.filtration.find_optimal_alpha(0)

    def test_statistics(self):
        """概要の集計"""
        stats = self.filtration.get_statistics()
        self.assertEqual(stats['num_finite_cells'], self.tri.num_finite_cells)
        self.assertEqual(stats['spectrum_size'], len(self.filtration.spectrum))
        self.assertEqual(stats['alpha_solid'], self.filtration.find_alpha_solid())


class TestTwoClusters(unittest.TestCase):
    """離れた2つの塊のテスト"""

    def setUp(self):
        self.points = make_two_clusters()
        self.tri, self.filtration, self.classifier = build(self.points)

    def test_components(self):
        """塊をつなぐセルは外接半径が大きい"""
        f = self.filtration
        one = f.find_optimal_alpha(1)
        two = f.find_optimal_alpha(2)
        self.assertGreaterEqual(one, 16.0)
        self.assertLess(two, 16.0)
        self.assertEqual(f.number_of_solid_components(two), 2)
        self.assertEqual(f.number_of_solid_components(one), 1)

        # より小さい候補では3成分以上
        candidates = f.spectrum[(f.spectrum >= f.find_alpha_solid()) & (f.spectrum < two)]
        for alpha in candidates[-20:]:
            self.assertGreater(f.number_of_solid_components(alpha), 2)


class TestPointClassification(unittest.TestCase):
    """点分類テスト"""

    def setUp(self):
        self.points = make_cube_corners()
        self.tri, self.filtration, self.classifier = build(self.points)
        self.alpha = self.filtration.find_optimal_alpha(1)

    def test_one_region_alpha(self):
        """立方体の単一領域アルファは外接球半径の2乗"""
        self.assertAlmostEqual(self.alpha, 0.75)

    def test_inside_and_outside(self):
        """中心は内側、遠方は外側"""
        inside = self.classifier.contains([[0.5, 0.5, 0.5], [10.0, 10.0, 10.0]], self.alpha)
        np.testing.assert_array_equal(inside, [True, False])

    def test_boundary_counts_as_inside(self):
        """面・辺・頂点上の点は内側"""
        queries = np.array([
            [0.5, 0.5, 0.0],    # 面上
            [0.5, 0.0, 0.0],    # 辺上
            [0.0, 0.0, 0.0],    # 頂点
            [1.0, 0.3, 0.6],    # 面上
        ])
        labels = self.classifier.classify_points(queries, self.alpha)
        self.assertTrue(np.all(labels == SimplexClass.REGULAR))
        self.assertTrue(np.all(self.classifier.contains(queries, self.alpha)))

    def test_outside_at_zero(self):
        """アルファ0では内部点は外部"""
        labels = self.classifier.classify_points([[0.5, 0.5, 0.5], [0.2, 0.3, 0.4]], 0.0)
        self.assertTrue(np.all(labels == SimplexClass.EXTERIOR))

    def test_outside_hull(self):
        """凸包外は常に外部"""
        labels = self.classifier.classify_points([[2.0, 0.5, 0.5], [-0.1, 0.0, 0.0]], 100.0)
        self.assertTrue(np.all(labels == SimplexClass.EXTERIOR))


class TestSurfaceExtraction(unittest.TestCase):
    """境界面抽出テスト"""

    def test_hull_surface(self):
        """最大アルファの境界は凸包で、閉じて外向き"""
        from scipy.spatial import ConvexHull
        from alphashape3d.mesh import surface_area, volume

        points = make_sphere_samples()
        tri, filtration, classifier = build(points)
        extractor = SurfaceExtractor(classifier)
        mesh = extractor.extract(filtration.spectrum[-1])

        hull = ConvexHull(points)
        self.assertTrue(mesh.is_closed)
        self.assertTrue(mesh.is_edge_manifold)
        self.assertEqual(mesh.num_triangles, len(hull.simplices))
        self.assertAlmostEqual(volume(mesh), hull.volume, places=9)
        self.assertAlmostEqual(surface_area(mesh), hull.area, places=9)
        self.assertTrue(extractor.get_performance_stats()['last_closed'])

    def test_empty_surface(self):
        """アルファ0では境界なし"""
        tri, filtration, classifier = build(make_cube_corners())
        mesh = SurfaceExtractor(classifier).extract(0.0)
        self.assertEqual(mesh.num_triangles, 0)
        self.assertEqual(mesh.num_vertices, 8)


if __name__ == '__main__':
    unittest.main()
