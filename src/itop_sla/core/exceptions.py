"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class CalendarParseError(DomainException):
    """Work-hour bounds could not be parsed as HH:MM."""

    def __init__(self, work_start: str, work_end: str):
        self.work_start = work_start
        self.work_end = work_end
        super().__init__(
            f"Invalid work hours {work_start!r}-{work_end!r}, expected HH:MM",
            {"work_start": work_start, "work_end": work_end}
        )


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ITopException(ExternalServiceException):
    """Exception for iTop REST API failures (transport, HTTP, decode, API code)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("iTop", message, details)


class ResolutionFetchError(ITopException):
    """Exception raised when an SLA deadline could not be resolved."""

    def __init__(
        self,
        ticket_class: str,
        priority: str,
        service_name: str,
        reason: str
    ):
        self.ticket_class = ticket_class
        self.priority = priority
        self.service_name = service_name
        super().__init__(
            f"SLT resolution failed for {ticket_class}/{priority}/{service_name}: {reason}",
            {
                "ticket_class": ticket_class,
                "priority": priority,
                "service_name": service_name,
            }
        )
