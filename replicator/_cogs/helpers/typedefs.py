"""
Rudimentary type [re-]definitions for Python & mypy.

Some StdLib types are generics for mypy, but not subscriptable at runtime.
Examples: asyncio.Task, asyncio.Future, logging.LoggerAdapter, and others.

This modules defines them in a most suitable and reusable way. Plus it adds
some common plain type definitions used across the codebase (for convenience).
"""
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# We only promise that it is based on one of the built-in loggable classes.
Logger = logging.Logger | LoggerAdapter
