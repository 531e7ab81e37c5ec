#!/usr/bin/env python3
"""
alphashape3d メインパッケージ

3次元点群からアルファシェイプ（凹包）を構築し、境界メッシュの抽出・
計測・近傍検索・簡略化・修復を行う計算幾何カーネルです。
プロジェクト全体で使用される共通ロギング機能もここで提供します。
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# プロジェクト情報
__version__ = "0.1.0"
__author__ = "alphashape3d Development Team"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed"
) -> logging.Logger:
    """
    プロジェクト全体の統一ログ設定

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルパス（Noneならコンソールのみ）
        format_style: フォーマットスタイル ("simple", "detailed", "debug")

    Returns:
        設定済みルートロガー
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formats = {
        "simple": "%(levelname)s: %(message)s",
        "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "debug": "%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d: %(message)s"
    }

    log_format = formats.get(format_style, formats["detailed"])
    formatter = logging.Formatter(log_format, datefmt='%H:%M:%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # 既存ハンドラークリア
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    モジュール用ロガーを取得

    Args:
        name: ロガー名（通常は __name__ を使用）

    Returns:
        設定済みロガー
    """
    return logging.getLogger(name)


_default_logger_initialized = False


def ensure_default_logging() -> None:
    """デフォルトロギングが初期化されていることを確認

    ホストアプリケーションに組み込まれるカーネルのため、インポート時には
    呼び出さない。必要なホストが一度だけ呼ぶ。
    """
    global _default_logger_initialized
    if not _default_logger_initialized:
        setup_logging(level="INFO", format_style="detailed")
        _default_logger_initialized = True


# 公開API（ロギング定義の後でインポートする）
from .exceptions import AlphaShapeError, InputError, GeometryError, IoError  # noqa: E402
from .data_types import SimplexClass, CriticalAlphaKind  # noqa: E402
from .alpha_shape import AlphaShape3D, boundary_3d  # noqa: E402
from .mesh.trimesh import TriangleMesh  # noqa: E402
from .mesh.io import write_off, read_off  # noqa: E402

__all__ = [
    'setup_logging',
    'get_logger',
    'ensure_default_logging',
    # 例外
    'AlphaShapeError',
    'InputError',
    'GeometryError',
    'IoError',
    # 型
    'SimplexClass',
    'CriticalAlphaKind',
    'TriangleMesh',
    # 本体
    'AlphaShape3D',
    'boundary_3d',
    'write_off',
    'read_off',
]
