from __future__ import annotations

import logging.config
import threading
from abc import ABC, abstractmethod
from typing import Annotated, Any, ClassVar, Protocol, cast, runtime_checkable

from typing_extensions import Doc

LOGGER_NAME = "pushserve"


@runtime_checkable
class LoggerProtocol(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...


class LoggerProxy:
    """
    Stands in for the logger of the server until `setup_logging` binds one.

    The first use before any binding sets up the standard logging.
    """

    def __init__(self) -> None:
        self._bound: LoggerProtocol | None = None
        self._lock = threading.RLock()

    def bind_logger(self, logger: LoggerProtocol | None) -> None:  # noqa
        with self._lock:
            self._bound = logger

    def __getattr__(self, item: str) -> Any:
        with self._lock:
            if self._bound is None:
                setup_logging()
            return getattr(self._bound, item)


logger: LoggerProtocol = cast(LoggerProtocol, LoggerProxy())


class LoggingConfig(ABC):
    """
    Base of the logging configurations.

    `configure()` sets up the logging backend once and `get_logger()` returns
    the logger the server writes to.

    **Example**

    ```python
    from pushserve import PushServer
    from pushserve.logging import StandardLoggingConfig

    app = PushServer(logging_config=StandardLoggingConfig(level="DEBUG"))
    ```
    """

    levels: ClassVar[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

    def __init__(
        self,
        level: Annotated[
            str,
            Doc(
                """
                The logging level, case insensitive.
                """
            ),
        ] = "DEBUG",
        **kwargs: Any,
    ) -> None:
        self.level = level.upper()
        assert self.level in self.levels, (
            f"'{level}' is not a valid logging level. Use one of {', '.join(self.levels)}."
        )
        self.options = kwargs
        self.skip_setup_configure: bool = kwargs.get("skip_setup_configure", False)

    def configure(self) -> None:
        raise NotImplementedError(f"{type(self).__name__} must implement `configure()`.")

    @abstractmethod
    def get_logger(self) -> Any: ...


class StandardLoggingConfig(LoggingConfig):
    """
    Logs through the standard library on the `pushserve` logger, to stderr.
    """

    def __init__(self, config: dict[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config = config or self.default_config()

    def default_config(self) -> dict[str, Any]:  # noqa
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "pushserve": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "pushserve",
                },
            },
            "loggers": {
                LOGGER_NAME: {
                    "level": self.level,
                    "handlers": ["stderr"],
                    "propagate": False,
                },
            },
        }

    def configure(self) -> None:
        logging.config.dictConfig(self.config)

    def get_logger(self) -> Any:
        return logging.getLogger(LOGGER_NAME)


def setup_logging(logging_config: LoggingConfig | None = None) -> None:
    """
    Configures logging and binds the module `logger` to the configured logger.

    Args:
        logging_config: The configuration to apply. A `StandardLoggingConfig`
            at `INFO` when omitted.

    Raises:
        ValueError: If `logging_config` is not a `LoggingConfig`.
    """
    if logging_config is not None and not isinstance(logging_config, LoggingConfig):
        raise ValueError("`logging_config` must be an instance of LoggingConfig.")

    config = logging_config or StandardLoggingConfig(level="INFO")
    if not config.skip_setup_configure:
        config.configure()
    logger.bind_logger(config.get_logger())
