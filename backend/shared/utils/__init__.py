"""
Utilities module: Exceptions, money helpers.
"""

from shared.utils.exceptions import (
    ReconciliationError,
    ProviderUnavailableError,
    ProviderNotConfiguredError,
)
from shared.utils.money import to_decimal, quantize_money, format_money

__all__ = [
    # exceptions
    "ReconciliationError",
    "ProviderUnavailableError",
    "ProviderNotConfiguredError",
    # money
    "to_decimal",
    "quantize_money",
    "format_money",
]
