"""日志配置。

库本身只通过 logging.getLogger(__name__) 记录日志，不主动配置 handler。
调用方（工作流脚本、CLI 等）在入口处调用 setup_logging() 即可。
"""

from __future__ import annotations

import json
import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
PACKAGE_LOGGER = "cli_agent_signals"
# 标记由 setup_logging 安装的 handler，重复调用时替换而不是叠加
_HANDLER_MARK = "_cas_handler"


class JsonSerializingFormatter(logging.Formatter):
    """尝试将日志参数中的对象 JSON 序列化（用于调试文件）。"""

    def format(self, record: logging.LogRecord) -> str:
        if record.args and isinstance(record.args, tuple):
            new_args = []
            for arg in record.args:
                try:
                    if hasattr(arg, "model_dump"):
                        # Pydantic 模型（如 Signal）
                        new_args.append(json.dumps(arg.model_dump(mode="json"), ensure_ascii=False))
                    elif isinstance(arg, dict):
                        new_args.append(json.dumps(arg, ensure_ascii=False, default=str))
                    else:
                        new_args.append(arg)
                except (TypeError, ValueError):
                    new_args.append(arg)
            record.args = tuple(new_args)
        return super().format(record)


def setup_logging(config: Config | None = None) -> logging.Logger:
    """配置 cli_agent_signals 命名空间的日志输出。

    Args:
        config: 配置实例（默认使用全局配置）

    Returns:
        包级 logger
    """
    config = config or get_config()

    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(JsonSerializingFormatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 直接挂在包 logger 上：宿主已配置 root logger 时同样生效，root 保持不变
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()
    for handler in log_handlers:
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)
    logger.setLevel(log_level)
    logger.propagate = False
    return logger
