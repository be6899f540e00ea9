# ComplianceLedger - Audit Retention and Compliance Tracking
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Core infrastructure components for the compliance ledger."""

from .clock import Clock, FixedClock, SystemClock
from .config import Settings, get_settings
from .errors import (
    ConcurrentModificationError,
    LedgerError,
    RecordAlreadyExistsError,
    RecordNotFoundError,
    RecordValidationError,
    StoreUnavailableError,
)
from .result_types import Err, Ok, Result

__all__ = [
    "Clock",
    "ConcurrentModificationError",
    "Err",
    "FixedClock",
    "LedgerError",
    "Ok",
    "RecordAlreadyExistsError",
    "RecordNotFoundError",
    "RecordValidationError",
    "Result",
    "Settings",
    "StoreUnavailableError",
    "SystemClock",
    "get_settings",
]
