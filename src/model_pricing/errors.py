"""Custom exceptions for model pricing persistence and lookup."""


class PricingError(Exception):
    """Base exception for model pricing errors."""


class PricingRepositoryError(PricingError):
    """Raised when the pricing database cannot be read or written."""


class PriceSpecError(PricingError):
    """Raised when the community price specification cannot be fetched or decoded."""
