import logging
import sys
from pathlib import Path

from loguru import logger

from books_api.runtime.config.config_data import ConfigData, LoggingConfig
from books_api.runtime.context import get_config

_PLAIN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "[<cyan>{extra[request_id]}</cyan>] | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Third-party loggers and the floor applied to each once they reach loguru
_LIBRARY_LEVELS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "aiokafka": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.CRITICAL,
}


class InterceptHandler(logging.Handler):
    """Redirect standard 'logging' records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Request logging is done by our middleware
        if record.name == "uvicorn.access":
            return

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=2, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_file_sink(cfg: LoggingConfig, verbose_errors: bool) -> None:
    is_json = cfg.format == "json"
    path = Path(cfg.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(path),
        level=cfg.level,
        format="{message}" if is_json else _PLAIN_FORMAT,
        serialize=is_json,
        rotation=f"{cfg.max_size_mb} MB",
        retention=cfg.backup_count,
        compression="zip",
        enqueue=True,
        backtrace=verbose_errors,
        diagnose=verbose_errors,
    )


def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        stdlog = logging.getLogger(name)
        stdlog.handlers = []
        stdlog.propagate = True

    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging(config: ConfigData | None = None) -> None:
    """Install the loguru sinks and send stdlib logging through them.

    The console sink is always plain text. A rotating file sink is added
    when ``logging.file`` is set, in JSON unless ``logging.format`` is plain.
    Tracebacks carry local variables outside production only.
    """
    main_config = config or get_config()
    cfg = main_config.logging
    env = main_config.app.environment
    verbose_errors = env != "production"

    logger.remove()
    # Guarantee {extra[request_id]} outside of a request
    logger.configure(extra={"request_id": "-"})

    logger.add(
        sys.stderr,
        level=cfg.level,
        format=_PLAIN_FORMAT,
        colorize=True,
        backtrace=verbose_errors,
        diagnose=verbose_errors,
    )
    if cfg.file:
        _add_file_sink(cfg, verbose_errors)

    _route_stdlib_logging()

    logger.bind(
        log_level=cfg.level,
        log_format=cfg.format,
        log_file=cfg.file,
        environment=env,
    ).info("Logging configured")
