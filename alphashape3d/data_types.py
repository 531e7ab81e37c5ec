#!/usr/bin/env python3
"""
共通型定義

アプリケーション全体で使用される型定義を一元管理し、
モジュール間の循環依存を解消します。
"""

from enum import Enum, IntEnum
from typing import List, Tuple, Union
import numpy as np

from .constants import CRITICAL_ALPHA_ALL_POINTS, CRITICAL_ALPHA_ONE_REGION

# 型エイリアス
ArrayLike = Union[np.ndarray, List, Tuple]


class SimplexClass(IntEnum):
    """現在のアルファに対する単体の分類

    値の大小は「複体への含まれ具合」の順序になっている。
    """
    EXTERIOR = 0    # 複体に含まれない
    SINGULAR = 1    # 複体に含まれるが境界面にも内部にも属さない
    REGULAR = 2     # 境界（内部セルと外部セルを隔てる）
    INTERIOR = 3    # 内部


class CriticalAlphaKind(Enum):
    """臨界アルファの種類"""
    ALL_POINTS = CRITICAL_ALPHA_ALL_POINTS   # 全頂点が複体に含まれる最小アルファ
    ONE_REGION = CRITICAL_ALPHA_ONE_REGION   # 単一の連結ソリッドになる最小アルファ
