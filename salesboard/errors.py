"""Custom exception types for the sales extraction pipeline."""

from __future__ import annotations

from typing import Any, Optional


class SalesboardError(Exception):
    """Base class for failures surfaced to the invocation boundary."""

    default_message = "Extraction failed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        step: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.step = step
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.step:
            context_parts.append(f"step={self.step}")
        if self.url:
            context_parts.append(f"url={self.url}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class ConfigurationError(SalesboardError):
    """Raised when the endpoint, cookies or request parameters are unusable."""

    default_message = "Invalid configuration."


class InvalidDateError(ConfigurationError):
    """Raised when the d/m/y request parameters cannot form a date."""

    default_message = "Parâmetros d/m/y obrigatórios (?d=DD&m=MM&y=YYYY)"


class ConnectionExhaustedError(SalesboardError):
    """Raised when every endpoint candidate ran out of retries."""

    default_message = "Remote browser unavailable after retries."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        last_error: Optional[BaseException] = None,
        attempts: int = 0,
        **kwargs: Any,
    ) -> None:
        self.last_error = last_error
        self.attempts = attempts
        if message is None and last_error is not None:
            message = f"{self.default_message} Last error: {last_error}"
        super().__init__(message, **kwargs)


class BrowserError(SalesboardError):
    """Wraps an unanticipated failure reported by the remote browser."""

    default_message = "Remote browser error."


class PageNotReadyError(SalesboardError):
    """Raised when the target page never became interactive."""

    default_message = "Page did not become ready."


class PickerError(SalesboardError):
    """Base class for date-range picker failures."""

    default_message = "Date picker interaction failed."


class PickerNotFoundError(PickerError):
    default_message = "Datepicker não encontrado"


class InputsNotFoundError(PickerError):
    default_message = "Inputs do date-range não encontrados"


class DayNotFoundError(PickerError):
    default_message = "Dia alvo não encontrado no calendário"


class NavigationExhaustedError(PickerError):
    default_message = "Mês alvo não alcançado no calendário"


class ColumnsNotFoundError(SalesboardError):
    """Raised when the results table lacks one of the required columns."""

    default_message = "Colunas obrigatórias não encontradas na tabela"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        missing: tuple[str, ...] = (),
        headers: tuple[str, ...] = (),
        **kwargs: Any,
    ) -> None:
        self.missing = tuple(missing)
        self.headers = tuple(headers)
        if message is None and self.missing:
            message = f"{self.default_message}: {', '.join(self.missing)}"
        super().__init__(message, **kwargs)


class InvocationTimeoutError(SalesboardError):
    """Raised when the overall invocation deadline expires."""

    default_message = "Invocation deadline exceeded."


__all__ = [
    "BrowserError",
    "ColumnsNotFoundError",
    "ConfigurationError",
    "ConnectionExhaustedError",
    "DayNotFoundError",
    "InputsNotFoundError",
    "InvalidDateError",
    "InvocationTimeoutError",
    "NavigationExhaustedError",
    "PageNotReadyError",
    "PickerError",
    "PickerNotFoundError",
    "SalesboardError",
]
