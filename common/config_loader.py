# =============================================================================
# 模块: common/config_loader.py
# 功能: YAML 配置文件加载与日志初始化工具模块
# 架构角色: 作为配置基础设施层，为日志系统提供 YAML 配置读取能力。
#   日志配置由两部分深度合并而成：
#   - /config/logging.yaml：完整的 dictConfig 配置（处理器、格式化器、记录器）
#   - /config/defaults.yaml 的 logging 段：部署时的少量覆盖（如某个记录器的级别）
#   defaults.yaml 中的覆盖优先。
#
# 设计决策:
#   - 使用模块级变量 _config_cache 缓存主配置，避免重复读取文件
#   - deep_merge 实现字典深度合并，支持嵌套配置结构
#   - 日志配置使用 Python 标准库 logging.config.dictConfig
# =============================================================================
"""YAML configuration loader for NewsDesk."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# 项目根目录：从 common/ 目录向上一级
BASE_DIR = Path(__file__).resolve().parents[1]
# 全局配置文件目录
CONFIG_DIR = BASE_DIR / "config"

# 模块级配置缓存，None 表示尚未加载
_config_cache: Optional[Dict[str, Any]] = None


def load_yaml(file_path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    文件不存在或为空时返回空字典，不抛出异常。

    Args:
        file_path: Path to the YAML file.

    Returns:
        Dictionary containing the YAML contents, or empty dict if file doesn't exist.
    """
    if not file_path.exists():
        return {}
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_config() -> Dict[str, Any]:
    """Load and cache the main config from /config/defaults.yaml."""
    global _config_cache
    if _config_cache is None:
        _config_cache = load_yaml(CONFIG_DIR / "defaults.yaml")
    return _config_cache


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries. Override values take precedence.

    对于嵌套字典递归合并，保留 base 中未被覆盖的键；
    非字典类型的值由 override 直接替换。

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary; neither input is modified.

    示例:
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        override = {"a": {"x": 10, "z": 30}}
        结果 = {"a": {"x": 10, "y": 2, "z": 30}, "b": 3}
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def build_logging_config(
    config_path: Optional[Path] = None,
    log_level_override: Optional[str] = None,
    log_file_override: Optional[Path] = None,
) -> Dict[str, Any]:
    """Assemble the dictConfig mapping without applying it.

    Args:
        config_path: Path to logging YAML config. Defaults to /config/logging.yaml.
        log_level_override: Override the root logger level.
        log_file_override: Override the file handler's filename.

    Returns:
        The merged logging configuration (empty if no YAML is present).
    """
    config = load_yaml(config_path or CONFIG_DIR / "logging.yaml")
    if not config:
        return {}

    # defaults.yaml 的 logging 段覆盖 logging.yaml
    config = deep_merge(config, get_config().get("logging", {}))

    if log_level_override:
        config.setdefault("root", {})["level"] = log_level_override.upper()

    if log_file_override and "file" in config.get("handlers", {}):
        config["handlers"]["file"]["filename"] = str(log_file_override)

    # 相对路径基于项目根目录解析
    for handler in config.get("handlers", {}).values():
        if "filename" in handler and not Path(handler["filename"]).is_absolute():
            handler["filename"] = str(BASE_DIR / handler["filename"])

    return config


def setup_logging_from_yaml(
    config_path: Optional[Path] = None,
    log_level_override: Optional[str] = None,
    log_file_override: Optional[Path] = None,
) -> None:
    """Configure logging from YAML with optional overrides.

    如果 YAML 配置文件不存在，回退到 basicConfig 基础配置。

    副作用:
        - 调用 logging.config.dictConfig 配置全局日志系统
        - 自动创建日志文件所在目录
    """
    config = build_logging_config(config_path, log_level_override, log_file_override)

    if not config:
        logging.basicConfig(
            level=(log_level_override or "INFO").upper(),
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
        return

    # 确保日志文件所在目录存在
    for handler in config.get("handlers", {}).values():
        if "filename" in handler:
            Path(handler["filename"]).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(config)


def clear_config_cache() -> None:
    """Clear the configuration cache. Useful for testing."""
    global _config_cache
    _config_cache = None
