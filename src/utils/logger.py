"""
Structured logging utilities for the Level Signal Engine

Structured output through structlog, with a single configuration entry point
and helpers that bind per-symbol and per-evaluation context.
"""

import logging
import os
import sys
import time
from typing import Optional, Dict, Any, Union
from pathlib import Path
from enum import Enum

import structlog
from structlog.types import Processor


class LogLevel(str, Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Форматы логирования"""
    JSON = "json"
    TEXT = "text"
    COLORED = "colored"


# Глобальная конфигурация логирования
_logging_configured = False
_log_level = LogLevel.INFO
_log_format = LogFormat.JSON


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    format_type: LogFormat = LogFormat.JSON,
    log_file: Optional[Union[str, Path]] = None,
    service_name: str = "level-signal-engine",
    service_version: str = "1.0.0",
    environment: str = "development",
    force: bool = False
) -> None:
    """
    Конфигурация структурированного логирования для всего приложения

    Args:
        level: Уровень логирования
        format_type: Формат вывода логов
        log_file: Путь к файлу логов (опционально)
        service_name: Имя сервиса
        service_version: Версия сервиса
        environment: Среда выполнения
        force: Переконфигурировать даже если уже настроено
    """
    global _logging_configured, _log_level, _log_format

    if _logging_configured and not force:
        return

    _log_level = LogLevel(level)
    _log_format = LogFormat(format_type)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.format_exc_info,
        _add_service_context(service_name, service_version, environment),
    ]

    if _log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    elif _log_format == LogFormat.COLORED:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:  # TEXT
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=['timestamp', 'level', 'logger', 'event']
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, _log_level.value)
    )
    logging.getLogger().setLevel(getattr(logging, _log_level.value))

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, _log_level.value))
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(file_handler)

    _logging_configured = True


def _add_service_context(
    service_name: str,
    service_version: str,
    environment: str
) -> Processor:
    """
    Создание процессора для добавления контекста сервиса

    Args:
        service_name: Имя сервиса
        service_version: Версия сервиса
        environment: Среда выполнения

    Returns:
        Процессор structlog
    """
    def processor(logger, method_name, event_dict):
        event_dict.update({
            'service': service_name,
            'version': service_version,
            'environment': environment,
            'pid': os.getpid(),
        })
        return event_dict

    return processor


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Получение настроенного структурированного логгера

    Args:
        name: Имя логгера (опционально, по умолчанию __name__ caller'а)

    Returns:
        Настроенный структурированный логгер
    """
    if not _logging_configured:
        configure_logging()

    if name is None:
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return structlog.get_logger(name)


def get_symbol_logger(
    symbol: str,
    timeframe: Optional[str] = None,
    strategy: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """
    Получение логгера с контекстом инструмента

    Args:
        symbol: Торговый символ
        timeframe: Таймфрейм основного окна свечей
        strategy: Имя стратегии

    Returns:
        Логгер с привязанным контекстом инструмента
    """
    logger = get_logger("strategy")

    context = {'symbol': symbol}
    if timeframe:
        context['timeframe'] = timeframe
    if strategy:
        context['strategy'] = strategy

    return logger.bind(**context)


def log_performance_metrics(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    duration_seconds: float,
    success: bool = True,
    additional_metrics: Optional[Dict[str, Any]] = None
):
    """
    Логирование метрик производительности

    Args:
        logger: Логгер для записи
        operation: Название операции
        duration_seconds: Длительность в секундах
        success: Успешность операции
        additional_metrics: Дополнительные метрики
    """
    metrics = {
        'operation': operation,
        'duration_seconds': round(duration_seconds, 4),
        'success': success,
        'performance_log': True
    }

    if additional_metrics:
        metrics.update(additional_metrics)

    if success:
        logger.debug(f"Performance: {operation} completed", **metrics)
    else:
        logger.error(f"Performance: {operation} failed", **metrics)


class LoggerMixin:
    """
    Mixin класс для добавления логирования в другие классы

    Предоставляет свойство ``logger`` с автоматическим контекстом класса.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = None
        self._log_context = {}

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        """Получение логгера для класса"""
        if getattr(self, '_logger', None) is None:
            class_name = self.__class__.__name__
            module_name = self.__class__.__module__

            base_logger = get_logger(f"{module_name}.{class_name}")
            context = {
                'class': class_name,
                **getattr(self, '_log_context', {})
            }
            self._logger = base_logger.bind(**context)

        return self._logger

    def set_log_context(self, **kwargs):
        """
        Установка дополнительного контекста для логирования

        Args:
            **kwargs: Контекстные переменные
        """
        if not hasattr(self, '_log_context'):
            self._log_context = {}
        self._log_context.update(kwargs)
        self._logger = None


def timed_operation(operation_name: Optional[str] = None):
    """
    Декоратор для измерения времени выполнения операций

    Args:
        operation_name: Имя операции (по умолчанию имя функции)

    Returns:
        Декоратор функции
    """
    def decorator(func):
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            op_name = operation_name or func.__name__

            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_performance_metrics(
                    logger, op_name, time.perf_counter() - start_time,
                    success=False,
                    additional_metrics={'error': str(e), 'error_type': type(e).__name__}
                )
                raise

            log_performance_metrics(logger, op_name, time.perf_counter() - start_time)
            return result

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator
