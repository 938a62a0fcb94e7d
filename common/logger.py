# =============================================================================
# 模块: common/logger.py
# 功能: 日志系统初始化的便捷封装
# 架构角色: 作为日志配置的入口，main.py 在模块加载时调用一次 setup_logging。
#   实际的配置加载逻辑委托给 config_loader.setup_logging_from_yaml。
# =============================================================================
"""Logging setup for NewsDesk.

Uses YAML-based configuration from /config/logging.yaml with optional
runtime overrides for log level and log file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from common.config_loader import setup_logging_from_yaml


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Setup logging using YAML config with optional overrides.

    使用 YAML 配置文件初始化日志系统，可选覆盖日志级别和日志文件路径。

    Args:
        log_level: Override the root logger level (default: INFO).
            main.py 中根据 settings.debug 传入 "DEBUG" 或 "INFO"。
        log_file: Override the file handler's filename (optional).
    """
    setup_logging_from_yaml(
        log_level_override=log_level,
        log_file_override=log_file,
    )
