"""Core types shared by every layer: results, exit codes and run config."""

from .config import (
    BumpChoice,
    ConfigError,
    ConfigRecord,
    RunConfig,
    build_run_config,
    load_config_record,
)
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "BumpChoice",
    "ConfigError",
    "ConfigRecord",
    "RunConfig",
    "build_run_config",
    "load_config_record",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
