"""Form validation package."""

from kasa.validation.validator import FormValidator, parse_amount

__all__ = ["FormValidator", "parse_amount"]
