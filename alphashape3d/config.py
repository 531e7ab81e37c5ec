#!/usr/bin/env python3
"""
alphashape3d 設定管理システム

カーネル全体で使用される許容誤差や既定値を統一管理し、
Magic Numberのハードコーディングを解消します。
"""

import yaml
from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any
from pathlib import Path

from . import get_logger
from .constants import (
    DEFAULT_QHULL_OPTIONS,
    DEGENERATE_VOLUME_TOLERANCE,
    BARYCENTRIC_TOLERANCE,
    SPHERE_TOLERANCE,
    DEFAULT_STOP_RATIO,
    DEFAULT_BOUNDARY_WEIGHT,
    DEFAULT_KDTREE_LEAFSIZE,
    DEGENERATE_AREA_TOLERANCE,
)

logger = get_logger(__name__)


@dataclass
class TriangulationConfig:
    """Delaunay四面体分割設定"""
    qhull_options: str = DEFAULT_QHULL_OPTIONS
    degenerate_volume_tolerance: float = DEGENERATE_VOLUME_TOLERANCE


@dataclass
class ClassificationConfig:
    """単体・点分類設定"""
    barycentric_tolerance: float = BARYCENTRIC_TOLERANCE
    sphere_tolerance: float = SPHERE_TOLERANCE


@dataclass
class SimplificationConfig:
    """メッシュ簡略化設定"""
    stop_ratio: float = DEFAULT_STOP_RATIO
    method: str = "edge_collapse"
    boundary_weight: float = DEFAULT_BOUNDARY_WEIGHT
    check_normal_flip: bool = True


@dataclass
class IndexConfig:
    """空間インデックス設定"""
    leafsize: int = DEFAULT_KDTREE_LEAFSIZE


@dataclass
class RepairConfig:
    """ポリゴンスープ修復設定"""
    area_tolerance: float = DEGENERATE_AREA_TOLERANCE


@dataclass
class AlphaShapeConfig:
    """プロジェクト全体設定"""
    triangulation: TriangulationConfig = field(default_factory=TriangulationConfig)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    simplification: SimplificationConfig = field(default_factory=SimplificationConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)

    # ログ設定
    log_level: str = "INFO"
    log_format_style: str = "detailed"


_SECTIONS = ('triangulation', 'classification', 'simplification', 'index', 'repair')


class ConfigManager:
    """設定管理クラス"""

    def __init__(self):
        self._config: Optional[AlphaShapeConfig] = None
        self._config_file_path: Optional[Path] = None

    def load_config(self, config_file: Optional[Path] = None) -> AlphaShapeConfig:
        """
        設定ファイルを読み込み

        Args:
            config_file: 設定ファイルパス（Noneの場合は既定の場所を探す）

        Returns:
            読み込まれた設定
        """
        if config_file is None:
            project_root = Path(__file__).parent.parent
            default_paths = [
                project_root / "alphashape3d.yaml",
                project_root / "config.yaml",
                Path.home() / ".alphashape3d" / "config.yaml"
            ]

            for path in default_paths:
                if path.exists():
                    config_file = path
                    break
        else:
            config_file = Path(config_file)

        if config_file and config_file.exists():
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    config_dict = yaml.safe_load(f) or {}

                self._config = self._dict_to_config(config_dict)
                self._config_file_path = config_file
                logger.info(f"Configuration loaded from {config_file}")

            except (yaml.YAMLError, OSError, TypeError) as e:
                logger.warning(f"Failed to load config from {config_file}: {e}")
                logger.info("Using default configuration")
                self._config = AlphaShapeConfig()
        else:
            logger.debug("No config file found, using default configuration")
            self._config = AlphaShapeConfig()

        return self._config

    def save_config(self, config_file: Optional[Path] = None) -> bool:
        """
        設定をファイルに保存

        Args:
            config_file: 保存先ファイルパス

        Returns:
            保存成功したかどうか
        """
        if self._config is None:
            logger.error("No configuration to save")
            return False

        if config_file is None:
            config_file = self._config_file_path or Path("alphashape3d.yaml")
        config_file = Path(config_file)

        try:
            config_dict = self._config_to_dict(self._config)
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                yaml.dump(config_dict, f, default_flow_style=False,
                          allow_unicode=True, indent=2)

            logger.info(f"Configuration saved to {config_file}")
            return True

        except OSError as e:
            logger.error(f"Failed to save config to {config_file}: {e}")
            return False

    def get_config(self) -> AlphaShapeConfig:
        """現在の設定を取得"""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def set_config(self, config: AlphaShapeConfig) -> None:
        """設定を差し替え"""
        self._config = config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> AlphaShapeConfig:
        """辞書を設定オブジェクトに変換（未知のキーは無視）"""
        config = AlphaShapeConfig()

        for section in _SECTIONS:
            section_dict = config_dict.get(section)
            if isinstance(section_dict, dict):
                target = getattr(config, section)
                for key, value in section_dict.items():
                    if hasattr(target, key):
                        setattr(target, key, value)
                    else:
                        logger.warning(f"Unknown config key ignored: {section}.{key}")

        for key in ('log_level', 'log_format_style'):
            if key in config_dict:
                setattr(config, key, config_dict[key])

        return config

    def _config_to_dict(self, config: AlphaShapeConfig) -> Dict[str, Any]:
        """設定オブジェクトを辞書に変換"""
        result: Dict[str, Any] = {}
        for section in _SECTIONS:
            target = getattr(config, section)
            result[section] = {f.name: getattr(target, f.name) for f in fields(target)}
        result['log_level'] = config.log_level
        result['log_format_style'] = config.log_format_style
        return result


# グローバル設定マネージャー
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """グローバル設定マネージャーを取得"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> AlphaShapeConfig:
    """現在の設定を取得"""
    return get_config_manager().get_config()


def load_config(config_file: Optional[Path] = None) -> AlphaShapeConfig:
    """設定を読み込み"""
    return get_config_manager().load_config(config_file)


def save_config(config_file: Optional[Path] = None) -> bool:
    """設定を保存"""
    return get_config_manager().save_config(config_file)
