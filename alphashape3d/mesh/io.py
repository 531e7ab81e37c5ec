#!/usr/bin/env python3
"""
OFF形式の読み書き

書き出し形式:
    OFF
    <点数> <面数> 0
    x y z            （点ごと）
    3 i0 i1 i2       （面ごと、0始まり）
"""

from pathlib import Path
from typing import List, Tuple, Union
import numpy as np

from ..constants import OFF_HEADER
from ..exceptions import InputError, IoError
from .. import get_logger
from .repair import validate_soup

logger = get_logger(__name__)

PathLike = Union[str, Path]


def write_off(path: PathLike, points, faces) -> None:
    """
    点と三角形をOFFファイルに書き出す

    Args:
        path: 出力ファイルパス
        points: 点 (N, 3)
        faces: 三角形インデックス (M, 3)

    Raises:
        InputError: 点や面の形状が不正
        IoError: 書き込みに失敗した場合
    """
    points, faces = validate_soup(points, faces)
    path = Path(path)

    lines = [OFF_HEADER, f"{len(points)} {len(faces)} 0"]
    lines.extend(f"{x:.17g} {y:.17g} {z:.17g}" for x, y, z in points)
    lines.extend(f"3 {i} {j} {k}" for i, j, k in faces)

    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write("\n".join(lines) + "\n")
    except OSError as e:
        raise IoError(
            f"Failed to write OFF file {path}: {e}",
            details={'path': str(path)}
        ) from e

    logger.debug("Wrote %d points and %d faces to %s", len(points), len(faces), path)


def read_off(path: PathLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    OFFファイルを読み込む

    個数行の辺数は省略可。以降は空白区切りのトークン列として解釈し、'#' 以降はコメントとして無視する。
    4頂点以上の面は扇状に三角形分割する。

    Args:
        path: 入力ファイルパス

    Returns:
        (点 (N, 3), 三角形インデックス (M, 3))

    Raises:
        IoError: 読み込み失敗・形式不正
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise IoError(f"Failed to read OFF file {path}: {e}", details={'path': str(path)}) from e

    lines: List[List[str]] = []
    for line in text.splitlines():
        line_tokens = line.split('#', 1)[0].split()
        if line_tokens:
            lines.append(line_tokens)

    if not lines or lines[0][0] != OFF_HEADER:
        raise IoError(f"{path} is not an OFF file (missing '{OFF_HEADER}' header)")

    # 個数行は「点数 面数 [辺数]」（ヘッダーと同じ行でもよい）、辺数は読み飛ばす
    if len(lines[0]) > 1:
        counts, body = lines[0][1:], lines[1:]
    else:
        counts, body = (lines[1] if len(lines) > 1 else []), lines[2:]
    if len(counts) not in (2, 3):
        raise IoError(
            f"{path}: expected '<points> <faces> [<edges>]' after the header, got {counts}",
            details={'path': str(path)}
        )
    tokens = [t for line_tokens in body for t in line_tokens]

    try:
        num_points, num_faces = int(counts[0]), int(counts[1])
        cursor = 0

        coords = tokens[cursor:cursor + 3 * num_points]
        if len(coords) < 3 * num_points:
            raise IoError(f"{path}: expected {num_points} points, file is truncated")
        points = np.array(coords, dtype=np.float64).reshape(num_points, 3)
        cursor += 3 * num_points

        triangles = []
        for _ in range(num_faces):
            count = int(tokens[cursor])
            indices = [int(t) for t in tokens[cursor + 1:cursor + 1 + count]]
            if len(indices) < count:
                raise IoError(f"{path}: expected {num_faces} faces, file is truncated")
            cursor += 1 + count
            for k in range(1, count - 1):
                triangles.append((indices[0], indices[k], indices[k + 1]))
    except (IndexError, ValueError) as e:
        raise IoError(f"Malformed OFF file {path}: {e}", details={'path': str(path)}) from e

    faces = np.array(triangles, dtype=np.int64).reshape(-1, 3)
    try:
        points, faces = validate_soup(points, faces)
    except InputError as e:
        raise IoError(f"Malformed OFF file {path}: {e}", details={'path': str(path)}) from e

    logger.debug("Read %d points and %d faces from %s", len(points), len(faces), path)
    return points, faces
