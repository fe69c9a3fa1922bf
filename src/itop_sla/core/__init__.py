"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from itop_sla.core.exceptions import (
    ApplicationException,
    DomainException,
    ConfigurationException,
    CalendarParseError,
    ExternalServiceException,
    ITopException,
    ResolutionFetchError,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "ConfigurationException",
    "CalendarParseError",
    "ExternalServiceException",
    "ITopException",
    "ResolutionFetchError",
]
