"""Utility modules for the term resolver.

This package provides logging configuration and string normalization helpers.
"""

from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

__all__: list[str] = ["LoggerUtils", "StringUtils"]
