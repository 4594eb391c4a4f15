"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
"""

from leadflow.core.exceptions import (
    ConfigurationError,
    LeadFlowError,
    PersistenceError,
    TemplateError,
    ValidationError,
)

__all__ = [
    "LeadFlowError",
    "ConfigurationError",
    "ValidationError",
    "TemplateError",
    "PersistenceError",
]
