from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

NAME_FIELD = "customer_name"
PHONE_FIELD = "phone_number"
NOTES_FIELD = "notes"

NAME_MIN_LENGTH = 2
PHONE_DIGITS = 10

NAME_TOO_SHORT = "Name must be at least 2 characters long."
NAME_INVALID_CHARACTERS = "Name can only contain letters and spaces."
PHONE_WRONG_LENGTH = "Phone number must be exactly 10 digits."
PHONE_REPEATED_DIGIT = "Phone number cannot be the same digit repeated."

FieldErrors = Dict[str, List[str]]

_NON_DIGITS = re.compile(r"[^0-9]")


def clean_phone_number(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def validate_name(value: str) -> List[str]:
    """Return every rule the customer name breaks, empty when valid."""
    name = (value or "").strip()
    errors: List[str] = []
    if len(name) < NAME_MIN_LENGTH:
        errors.append(NAME_TOO_SHORT)
    if not all(char.isalpha() or char.isspace() for char in name):
        errors.append(NAME_INVALID_CHARACTERS)
    return errors


def validate_phone_number(value: str) -> List[str]:
    digits = clean_phone_number(value)
    if len(digits) != PHONE_DIGITS:
        return [PHONE_WRONG_LENGTH]
    if len(set(digits)) == 1:
        return [PHONE_REPEATED_DIGIT]
    return []


@dataclass
class CheckoutForm:
    """Customer details entered at checkout, with per-field errors."""

    customer_name: str = ""
    phone_number: str = ""
    notes: Optional[str] = None
    errors: FieldErrors = field(default_factory=dict)

    def set_field(self, name: str, value: Optional[str]) -> None:
        if name not in (NAME_FIELD, PHONE_FIELD, NOTES_FIELD):
            raise ValueError(f"Unknown checkout field: {name}")
        setattr(self, name, value)
        # Editing a field only clears its own error.
        self.errors.pop(name, None)

    def validate(self) -> bool:
        errors: FieldErrors = {}
        name_errors = validate_name(self.customer_name)
        if name_errors:
            errors[NAME_FIELD] = name_errors
        phone_errors = validate_phone_number(self.phone_number)
        if phone_errors:
            errors[PHONE_FIELD] = phone_errors
        self.errors = errors
        return not errors

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def cleaned_phone_number(self) -> str:
        return clean_phone_number(self.phone_number)

    @property
    def cleaned_notes(self) -> Optional[str]:
        notes = (self.notes or "").strip()
        return notes or None

    def reset(self) -> None:
        self.customer_name = ""
        self.phone_number = ""
        self.notes = None
        self.errors = {}
