#!/usr/bin/env python3
"""
例外定義

入力エラー・幾何エラー・入出力エラーの3系統を提供します。
どの例外も呼び出し前の形状状態を変更しません。
"""

from typing import Any, Dict, Optional


class AlphaShapeError(Exception):
    """alphashape3d の基底例外"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class InputError(AlphaShapeError, ValueError):
    """入力データ不正（点数・次元・共面・インデックス範囲など）"""


class GeometryError(AlphaShapeError, RuntimeError):
    """三角形分割失敗や、前提条件を満たさない幾何クエリ"""


class IoError(AlphaShapeError, OSError):
    """ファイル入出力の失敗"""
