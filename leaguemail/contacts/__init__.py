"""
Contact normalization for recipient selection.

Turns raw directory records into canonical contacts and removes duplicates.
"""

from .normalize import (
    consolidate_phone_numbers,
    deduplicate_contacts,
    filter_contacts_by_query,
    generate_display_name,
    normalize_contact,
    normalize_contacts,
    sort_contacts_by_display_name,
    validate_contact_collection,
    validate_email,
)

__all__ = [
    "consolidate_phone_numbers",
    "deduplicate_contacts",
    "filter_contacts_by_query",
    "generate_display_name",
    "normalize_contact",
    "normalize_contacts",
    "sort_contacts_by_display_name",
    "validate_contact_collection",
    "validate_email",
]
