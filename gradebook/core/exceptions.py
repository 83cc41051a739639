"""
Typed errors raised by the gradebook core.

Every mutating operation rolls back before one of these reaches the caller,
so an error always means "nothing was written".
"""

from typing import Optional, Any, Dict


class GradebookError(Exception):
    """Base exception for all gradebook errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ArgumentError(GradebookError):
    """Raised for malformed input, out-of-range grades or invalid item bounds."""

    def __init__(self, message: str, error_code: Optional[str] = "invalid_argument", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class NotFoundError(GradebookError):
    """Raised when a gradebook, category, item, grade, adjustment or enrollment is missing."""

    def __init__(self, message: str, error_code: Optional[str] = "not_found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class DuplicateError(GradebookError):
    """Raised when a unique record (grade per enrollment and item, gradebook per course) already exists."""

    def __init__(self, message: str, error_code: Optional[str] = "duplicate", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class InvariantViolationError(ArgumentError):
    """Raised when a mutation would leave the weight hierarchy inconsistent."""

    BASELINE_WEIGHT_SUM = "baseline_weight_sum"
    EMPTY_CATEGORY_WEIGHT = "empty_category_weight"
    EXTRA_CREDIT_REQUIRES_WEIGHT = "extra_credit_requires_weight"
    CATEGORY_NOT_EMPTY = "category_not_empty"
    HIERARCHY_STRUCTURE = "hierarchy_structure"

    def __init__(self, message: str, rule: str, scope: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code=rule, details=details)
        self.rule = rule
        self.scope = scope


class NotEmptyError(InvariantViolationError):
    """Raised when deleting a category that still has child categories or items."""

    def __init__(self, message: str, scope: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, rule=InvariantViolationError.CATEGORY_NOT_EMPTY, scope=scope, details=details)
