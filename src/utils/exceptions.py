"""
Custom exceptions for the Level Signal Engine

Exception hierarchy for caller contract violations. Regular "no signal"
outcomes are never raised: they travel back as rejected evaluation results.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class LevelEngineException(Exception):
    """
    Базовое исключение для движка сигналов по уровням

    Все специфические исключения должны наследоваться от этого класса
    для обеспечения единообразной обработки ошибок.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        """
        Инициализация базового исключения

        Args:
            message: Сообщение об ошибке
            error_code: Код ошибки для программной обработки
            details: Дополнительные детали ошибки
            original_exception: Исходное исключение (если есть)
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        if original_exception:
            self.details['original_error'] = str(original_exception)
            self.details['original_type'] = type(original_exception).__name__

    def to_dict(self) -> Dict[str, Any]:
        """
        Конвертация исключения в словарь для JSON сериализации

        Returns:
            Словарь с информацией об ошибке
        """
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': str(self.original_exception) if self.original_exception else None
        }

    def __str__(self) -> str:
        """Строковое представление ошибки"""
        base_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            base_msg += f" | Details: {self.details}"
        return base_msg


class InsufficientDataException(LevelEngineException):
    """
    Исключение для случаев недостатка данных

    Вызывается когда окно свечей пустое или слишком короткое для
    операции, которая не может деградировать до пустого результата.
    """

    def __init__(
        self,
        message: str,
        required_samples: Optional[int] = None,
        provided_samples: Optional[int] = None
    ):
        details = {}
        if required_samples is not None:
            details['required_samples'] = required_samples
        if provided_samples is not None:
            details['provided_samples'] = provided_samples

        super().__init__(
            message=message,
            error_code="INSUFFICIENT_DATA",
            details=details
        )


class InvalidDataException(LevelEngineException):
    """
    Исключение для некорректных входных данных

    Вызывается при отсутствии обязательных колонок, немонотонных
    временных метках, нечисловых ценах и т.д.
    """

    def __init__(
        self,
        message: str,
        validation_errors: Optional[Dict[str, Any]] = None,
        data_info: Optional[Dict[str, Any]] = None
    ):
        details = {}
        if validation_errors:
            details['validation_errors'] = validation_errors
        if data_info:
            details['data_info'] = data_info

        super().__init__(
            message=message,
            error_code="INVALID_DATA",
            details=details
        )


class ConfigurationException(LevelEngineException):
    """
    Исключение для ошибок конфигурации

    Вызывается при некорректной или противоречивой конфигурации.
    """

    def __init__(
        self,
        message: str,
        config_section: Optional[str] = None,
        invalid_params: Optional[Dict[str, Any]] = None
    ):
        details = {}
        if config_section:
            details['config_section'] = config_section
        if invalid_params:
            details['invalid_params'] = invalid_params

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details
        )


class SignalConstructionException(LevelEngineException):
    """
    Исключение при построении сигнала

    Вызывается когда расчёт цен выхода дал нечисловой результат
    (NaN или бесконечность), который нельзя отдать исполнителю.
    """

    def __init__(
        self,
        message: str,
        direction: Optional[str] = None,
        entry_price: Optional[float] = None,
        stage: Optional[str] = None
    ):
        details = {}
        if direction:
            details['direction'] = direction
        if entry_price is not None:
            details['entry_price'] = entry_price
        if stage:
            details['stage'] = stage

        super().__init__(
            message=message,
            error_code="SIGNAL_CONSTRUCTION_ERROR",
            details=details
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> LevelEngineException:
    """
    Обработка и конвертация исключений в доменные исключения

    Args:
        exception: Исходное исключение
        context: Дополнительный контекст

    Returns:
        Конвертированное доменное исключение
    """
    if isinstance(exception, LevelEngineException):
        return exception

    context = context or {}

    if isinstance(exception, (ValueError, TypeError)):
        return InvalidDataException(
            message=f"Data validation error: {str(exception)}",
            validation_errors={"original_error": str(exception)},
            data_info=context
        )

    if isinstance(exception, KeyError):
        return InvalidDataException(
            message=f"Missing required field: {str(exception)}",
            validation_errors={"missing_key": str(exception)},
            data_info=context
        )

    return LevelEngineException(
        message=f"Unexpected error: {str(exception)}",
        error_code="UNEXPECTED_ERROR",
        details=context,
        original_exception=exception
    )
