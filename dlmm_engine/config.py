"""
Configuration management for the DLMM engine

Loads settings from environment variables and .env file.
Includes logging configuration with file output and rotation.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, List

from dotenv import load_dotenv


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # dlmm_engine package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_optional_int(key: str) -> Optional[int]:
    """Get environment variable as int, None when unset or blank"""
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return _get_env_int(key, 0)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class RpcConfig:
    """Chain reader configuration"""
    url: str = field(default_factory=lambda: _get_env("SOLANA_RPC_URL", ""))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("RPC_TIMEOUT_SECONDS", 30.0))
    # Transport-level attempts per endpoint; the engine itself never retries
    max_retries: int = field(default_factory=lambda: _get_env_int("RPC_MAX_RETRIES", 1))
    retry_delay_seconds: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_DELAY_SECONDS", 0.5))
    commitment: str = field(default_factory=lambda: _get_env("RPC_COMMITMENT", "confirmed"))
    # getMultipleAccounts accepts at most 100 keys per request
    max_batch_size: int = field(default_factory=lambda: _get_env_int("RPC_MAX_BATCH_SIZE", 100))
    max_concurrent_requests: int = field(default_factory=lambda: _get_env_int("RPC_MAX_CONCURRENT_REQUESTS", 4))


@dataclass
class JupiterConfig:
    """Jupiter price and quote API configuration"""
    price_url: str = field(default_factory=lambda: _get_env("JUPITER_PRICE_URL", "https://lite-api.jup.ag/price/v2"))
    quote_url: str = field(default_factory=lambda: _get_env("JUPITER_QUOTE_URL", "https://lite-api.jup.ag/swap/v1/quote"))
    timeout: float = field(default_factory=lambda: _get_env_float("JUPITER_TIMEOUT", 15.0))
    slippage_bps: int = field(default_factory=lambda: _get_env_int("JUPITER_SLIPPAGE_BPS", 50))


@dataclass
class MeteoraConfig:
    """Meteora DLMM program and pool directory configuration"""
    program_id: str = field(default_factory=lambda: _get_env("METEORA_PROGRAM_ID", "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"))
    api_url: str = field(default_factory=lambda: _get_env("METEORA_API_URL", "https://dlmm-api.meteora.ag"))
    timeout: float = field(default_factory=lambda: _get_env_float("METEORA_TIMEOUT", 15.0))


@dataclass
class PlannerConfig:
    """
    Deposit planner tuning

    Range widths are the number of bins (excluding the active bin) a new
    position spans for each strategy. Each must be <= 69 so the position
    fits one 70-bin PositionV2 account.
    """
    debounce_seconds: float = field(default_factory=lambda: _get_env_float("PLANNER_DEBOUNCE_SECONDS", 0.5))
    spot_width_bins: int = field(default_factory=lambda: _get_env_int("PLANNER_SPOT_WIDTH_BINS", 20))
    curve_width_bins: int = field(default_factory=lambda: _get_env_int("PLANNER_CURVE_WIDTH_BINS", 40))
    bid_ask_width_bins: int = field(default_factory=lambda: _get_env_int("PLANNER_BIDASK_WIDTH_BINS", 60))

    @property
    def range_widths(self) -> Dict[str, int]:
        """{strategy: rangeWidthBins}"""
        return {
            "Spot": self.spot_width_bins,
            "Curve": self.curve_width_bins,
            "BidAsk": self.bid_ask_width_bins,
        }


@dataclass
class ValuationConfig:
    """Valuation and display precision"""
    # Optional cap on displayed fractional digits (None = token's native decimals)
    display_decimals: Optional[int] = field(default_factory=lambda: _get_env_optional_int("VALUATION_DISPLAY_DECIMALS"))
    # Fractional digits kept for monetary values
    value_places: int = field(default_factory=lambda: _get_env_int("VALUATION_VALUE_PLACES", 9))
    native_mint: str = field(default_factory=lambda: _get_env("NATIVE_MINT", "So11111111111111111111111111111111111111112"))


def _get_default_log_path() -> str:
    """Get default log file path under dlmm_engine/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"dlmm_engine_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with optional file output.

    Environment variables:
        LOG_FILE: Path to log file (empty disables file output)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from dlmm_engine.config import config

        print(config.rpc.url)
        print(config.planner.range_widths)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    jupiter: JupiterConfig = field(default_factory=JupiterConfig)
    meteora: MeteoraConfig = field(default_factory=MeteoraConfig)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    valuation: ValuationConfig = field(default_factory=ValuationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "dlmm_engine",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure (default: dlmm_engine)

    Returns:
        Configured logger instance
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close and remove existing handlers to avoid duplicates on reload
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent, only the level is set here
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
        f"{logger_name}.protocols",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger


def enable_file_logging(
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Quick setup for file logging.

    Args:
        log_file: Path to log file (defaults to dlmm_engine/log/dlmm_engine_<ts>.log)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        console: Also output to console

    Returns:
        Configured logger
    """
    if log_file is None:
        log_file = config.logging.log_file or _get_default_log_path()

    log_config = LoggingConfig(
        log_file=log_file,
        log_level=level,
        console_output=console,
    )
    return setup_logging(log_config)
