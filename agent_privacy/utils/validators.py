"""
Request validators for the privacy engine

Every failure raises ValidationError naming the offending field,
so callers can pattern-match on the field name in the message.
"""

from typing import Any, List, Optional

from ..exceptions import ValidationError


def validate_required_text(
    value: Any,
    field_name: str
) -> str:
    """
    Validate a required, non-blank string field.
    
    Args:
        value: Value to validate
        field_name: Field name for error messages
    
    Returns:
        The stripped string
    
    Raises:
        ValidationError: If the value is missing, blank or not a string
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required", field=field_name)
    
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    
    return value.strip()


def validate_string_list(
    values: Any,
    field_name: str,
    required: bool = True
) -> List[str]:
    """
    Validate a list of strings, collapsing duplicates in first-seen order.
    
    Args:
        values: List to validate
        field_name: Field name for error messages
        required: Whether the list must contain at least one entry
    
    Returns:
        De-duplicated list of strings
    
    Raises:
        ValidationError: If the list is missing, empty when required,
            or contains blank / non-string entries
    """
    if values is None:
        values = []
    
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple, set, frozenset)):
        raise ValidationError(f"{field_name} must be a list", field=field_name)
    
    if required and not values:
        raise ValidationError(f"{field_name} must be a non-empty list", field=field_name)
    
    cleaned: List[str] = []
    for item in values:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError(
                f"{field_name} entries must be non-empty strings",
                field=field_name
            )
        if item not in cleaned:
            cleaned.append(item)
    
    return cleaned


def normalize_limit(limit: Any) -> Optional[int]:
    """Return a positive int limit, or None for 'no limit'"""
    if limit is None or isinstance(limit, bool):
        return None
    try:
        limit_int = int(limit)
    except (TypeError, ValueError):
        return None
    return limit_int if limit_int > 0 else None
