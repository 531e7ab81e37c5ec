from __future__ import annotations

"""Geometric predicates and constructions.

Vectorised helpers shared by the triangulator, the filtration and the mesh
modules. Signs are evaluated in floating point with explicit relative
tolerances; every caller passes the tolerance from the active config.
"""

import numpy as np


# ---------------------------------------------------------------------------
# Orientation
# ---------------------------------------------------------------------------

def orient3d(a: np.ndarray, b: np.ndarray, c: np.ndarray, d: np.ndarray) -> np.ndarray:
    """det[b - a, c - a, d - a] for stacked points (..., 3).

    Positive when ``d`` lies on the side of plane ``abc`` that the normal
    ``(b - a) x (c - a)`` points to.
    """
    return np.einsum('...i,...i->...', np.cross(b - a, c - a), d - a)


def tetra_volumes(points: np.ndarray, cells: np.ndarray) -> np.ndarray:
    """Signed volumes of tetrahedra ``cells`` (M, 4)."""
    p = points[cells]
    return orient3d(p[:, 0], p[:, 1], p[:, 2], p[:, 3]) / 6.0


# ---------------------------------------------------------------------------
# Circumspheres
# ---------------------------------------------------------------------------

def tetra_circumspheres(points: np.ndarray, cells: np.ndarray):
    """Circumcentres and squared circumradii of tetrahedra.

    Flat cells (four concyclic points) fall back to the minimum-norm least
    squares solution, i.e. the centre of the circle through them.
    """
    p = points[cells]
    base = p[:, 0]
    rel = p[:, 1:] - base[:, None, :]
    rhs = 0.5 * np.einsum('mij,mij->mi', rel, rel)

    centers = np.empty_like(base)
    det = np.linalg.det(rel)
    scale = np.einsum('mij,mij->m', rel, rel) ** 1.5
    regular = np.abs(det) > 1e-12 * np.maximum(scale, np.finfo(float).tiny)
    if np.any(regular):
        centers[regular] = np.linalg.solve(rel[regular], rhs[regular][..., None])[..., 0]
    for m in np.flatnonzero(~regular):
        centers[m] = np.linalg.lstsq(rel[m], rhs[m], rcond=None)[0]

    r2 = np.einsum('mi,mi->m', centers, centers)
    return base + centers, r2


def triangle_circumspheres(points: np.ndarray, triangles: np.ndarray):
    """Smallest circumscribing spheres of triangles (centre in the triangle plane).

    Collinear triangles have no circumsphere; their radius is ``inf``.
    """
    p = points[triangles]
    a = p[:, 0]
    u = p[:, 1] - a
    v = p[:, 2] - a
    w = np.cross(u, v)
    ww = np.einsum('mi,mi->m', w, w)
    uu = np.einsum('mi,mi->m', u, u)
    vv = np.einsum('mi,mi->m', v, v)

    numer = np.cross(uu[:, None] * v - vv[:, None] * u, w)
    degenerate = ww <= 1e-30 * np.maximum(uu * vv, np.finfo(float).tiny)
    with np.errstate(divide='ignore', invalid='ignore'):
        offset = numer / (2.0 * ww[:, None])
    offset[degenerate] = 0.0

    r2 = np.einsum('mi,mi->m', offset, offset)
    r2[degenerate] = np.inf
    return a + offset, r2


def edge_spheres(points: np.ndarray, edges: np.ndarray):
    """Diametral spheres of edges: midpoint and squared half-length."""
    a = points[edges[:, 0]]
    b = points[edges[:, 1]]
    d = b - a
    return 0.5 * (a + b), 0.25 * np.einsum('mi,mi->m', d, d)


def strictly_inside(centers: np.ndarray, r2: np.ndarray, query: np.ndarray,
                    tolerance: float) -> np.ndarray:
    """True where ``query`` lies strictly inside the sphere (centre, r2).

    Points within ``tolerance * r2`` of the sphere surface count as on it.
    """
    diff = query - centers
    d2 = np.einsum('mi,mi->m', diff, diff)
    with np.errstate(invalid='ignore'):
        return d2 < r2 * (1.0 - tolerance)
