"""
Configuration for the Level Signal Engine
"""

from .strategy_config import (
    StrategyConfig,
    SwingConfig,
    ClusterConfig,
    SelectionConfig,
    FilterConfig,
    ConfidenceConfig,
    WeightMatrixConfig,
    FactorWeight,
    StopLossConfig,
    TakeProfitConfig,
    TakeProfitTarget,
    WhaleWallConfig,
    RegimeConfig,
    RegimeParams,
    WallTrackingConfig,
    StrengthMode,
    ConfidenceMode,
    StopLossMode,
    STOP_LOSS_METHODS,
    get_config,
    reload_config,
    load_config_from_file,
    save_config_to_file
)

__all__ = [
    "StrategyConfig",
    "SwingConfig",
    "ClusterConfig",
    "SelectionConfig",
    "FilterConfig",
    "ConfidenceConfig",
    "WeightMatrixConfig",
    "FactorWeight",
    "StopLossConfig",
    "TakeProfitConfig",
    "TakeProfitTarget",
    "WhaleWallConfig",
    "RegimeConfig",
    "RegimeParams",
    "WallTrackingConfig",
    "StrengthMode",
    "ConfidenceMode",
    "StopLossMode",
    "STOP_LOSS_METHODS",
    "get_config",
    "reload_config",
    "load_config_from_file",
    "save_config_to_file"
]
