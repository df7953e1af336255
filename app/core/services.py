"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult.success: The operation did what it was asked to do
    - ServiceResult.failure: Expected failure (validation, business rules)
    - ServiceResult.degraded: Best-effort step that fell back (e.g. fee lookup
      returned zeros); carries the fallback value in ``data``
    - Exceptions: Unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class FeeService(BaseService):
        @classmethod
        def lookup(cls, charge_id: str) -> ServiceResult[FeeBreakdown]:
            try:
                charge = processor.retrieve_charge(charge_id)
            except StripeError as e:
                return ServiceResult.degraded(
                    str(e), error_code=e.error_code, data=FeeBreakdown.zero()
                )
            return ServiceResult.success(FeeBreakdown.from_charge(charge))

Related:
    - core.exceptions: For unexpected/exceptional errors
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations)
    and for best-effort sub-steps that degrade instead of failing.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful, or the fallback value if degraded
        error: Error message if failed or degraded (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        is_degraded: True when a best-effort step fell back to a default

    Usage:
        # Success case
        return ServiceResult.success(payment)

        # Failure case
        return ServiceResult.failure("Clinic not found", "MISSING_LINKAGE")

        # Degraded case (step gave up but the caller carries on)
        return ServiceResult.degraded("Charge lookup failed", data=FeeBreakdown.zero())

        # Check result
        result = FeeService.lookup(charge_id)
        if result.is_degraded:
            logger.warning(result.error)
        fees = result.data
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    is_degraded: bool = False

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def degraded(
        cls,
        reason: str,
        error_code: str | None = None,
        data: T | None = None,
    ) -> ServiceResult[T]:
        """
        Create a degraded result for a best-effort step.

        A degraded step did not achieve its goal, but its failure must not
        abort the surrounding operation. ``data`` holds whatever fallback
        value the caller should continue with (zero fees, None, ...).

        Args:
            reason: Human-readable description of what went wrong
            error_code: Machine-readable reason code
            data: Fallback value to continue with

        Returns:
            ServiceResult with success=False, is_degraded=True
        """
        return cls(
            success=False,
            data=data,
            error=reason,
            error_code=error_code or "DEGRADED",
            is_degraded=True,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Args:
            exc: The caught exception
            error_code: Optional error code (defaults to the exception's
                error_code attribute, then its class name)

        Returns:
            ServiceResult with error details from exception
        """
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code
            or getattr(exc, "error_code", None)
            or exc.__class__.__name__.upper(),
        )

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            result = PatientResolver.find_or_create(...)
            if result:  # Same as: if result.success
                patient = result.data
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Note:
            This is a thin wrapper around Django's transaction.atomic().
            Use it to make transaction boundaries explicit in service code.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
        degrade: bool = False,
        fallback: Any = None,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)
            degrade: Return a degraded result instead of a failure
            fallback: Value carried by a degraded result

        Returns:
            ServiceResult with error details
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        logger.log(log_level, message, exc_info=True)

        error_code = getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        if degrade:
            return ServiceResult.degraded(message, error_code=error_code, data=fallback)
        return ServiceResult.from_exception(exc, error_code)
