"""
Normalization and validation of directory contact records.

Pure functions: raw directory records in, canonical immutable contacts out.
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, TypeVar, Union

import structlog
from email_validator import SPECIAL_USE_DOMAIN_NAMES, EmailNotValidError
from email_validator import validate_email as _check_email

from leaguemail.core.models import (
    UNKNOWN_CONTACT_NAME,
    Contact,
    ContactQualityReport,
    ContactRole,
    RawContact,
    RawContactRole,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def generate_display_name(
    first_name: Optional[str], last_name: Optional[str], middle_name: Optional[str] = None
) -> str:
    """
    Build a display name from name parts.

    Args:
        first_name: First name, may be blank
        last_name: Last name, may be blank
        middle_name: Middle name, only used when both other parts are present

    Returns:
        "first middle last", whichever single part exists, or "Unknown Contact"
    """
    first = _clean(first_name)
    last = _clean(last_name)
    middle = _clean(middle_name)

    if not first and not last:
        return UNKNOWN_CONTACT_NAME
    if not first:
        return last
    if not last:
        return first
    if middle:
        return f"{first} {middle} {last}"
    return f"{first} {last}"


def _with_public_tld(address: str) -> str:
    # email_validator refuses reserved TLDs such as .local and .test outright;
    # their syntax is checked against an ordinary TLD instead
    head, dot, tld = address.rpartition(".")
    if dot and tld.lower() in SPECIAL_USE_DOMAIN_NAMES:
        return f"{head}.org"
    return address


def validate_email(email: Optional[str]) -> bool:
    """
    Check whether an address is well-formed enough to send to.

    Surrounding whitespace is ignored; no DNS lookups are made. Reserved
    domains like ``club.local`` are accepted when well-formed, but the domain
    must contain a dot and end in an alphabetic TLD of two or more letters.
    """
    address = _clean(email)
    if not address:
        return False

    # Header injection attempts
    if any(ch in address for ch in ("\r", "\n", "%0a", "%0d", "%0A", "%0D")):
        return False

    domain = address.rpartition("@")[2]
    if "." not in domain:
        return False

    try:
        _check_email(_with_public_tld(address), check_deliverability=False)
    except EmailNotValidError:
        return False

    tld = domain.rsplit(".", 1)[-1]
    return len(tld) >= 2 and tld.isalpha()


def consolidate_phone_numbers(*phones: Optional[str]) -> Optional[str]:
    """Return the first non-empty phone number, in priority order."""
    for phone in phones:
        cleaned = _clean(phone)
        if cleaned:
            return cleaned
    return None


def _normalize_role(role: RawContactRole) -> ContactRole:
    return ContactRole(
        id=role.id,
        role_id=role.role_id,
        role_name=role.role_name or "",
        role_data=role.role_data or "",
        context_name=role.context_name,
    )


def normalize_contact(raw: Union[RawContact, Mapping[str, Any]]) -> Contact:
    """
    Transform a directory record into a canonical contact.

    Args:
        raw: Directory record, either parsed or as a JSON mapping

    Returns:
        Immutable Contact with derived display name, email flag and phone
    """
    if not isinstance(raw, RawContact):
        raw = RawContact.model_validate(raw)

    if not raw.id:
        logger.warning(
            "Contact missing required id field",
            first_name=raw.first_name,
            last_name=raw.last_name,
        )

    details = raw.contact_details
    phone = consolidate_phone_numbers(
        details.phone1 if details else None,
        details.phone2 if details else None,
        details.phone3 if details else None,
    )
    email = _clean(raw.email) or None

    return Contact(
        id=raw.id or "",
        first_name=raw.first_name or "",
        last_name=raw.last_name or "",
        display_name=generate_display_name(raw.first_name, raw.last_name, raw.middle_name),
        email=email,
        has_valid_email=validate_email(email),
        phone=phone,
        roles=tuple(_normalize_role(role) for role in raw.contact_roles),
        teams=tuple(raw.teams),
    )


def normalize_contacts(raws: Iterable[Union[RawContact, Mapping[str, Any]]]) -> List[Contact]:
    """Normalize a batch of directory records, dropping duplicate identities."""
    return deduplicate_contacts([normalize_contact(raw) for raw in raws])


def _identity(item: Any) -> Any:
    if isinstance(item, Mapping):
        return item.get("id")
    return getattr(item, "id")


def deduplicate_contacts(contacts: Sequence[T]) -> List[T]:
    """
    Remove entries that share an identity, keeping the first occurrence.

    Works on contacts, raw records or plain mappings with an ``id`` key.
    Entries without an id have no identity to share and are all kept.
    """
    seen: Set[Any] = set()
    unique: List[T] = []
    for contact in contacts:
        key = _identity(contact)
        if key:
            if key in seen:
                continue
            seen.add(key)
        unique.append(contact)
    return unique


def validate_contact_collection(contacts: Sequence[Contact]) -> ContactQualityReport:
    """Summarize email validity, duplicates and missing names for a batch."""
    total = len(contacts)
    valid = sum(1 for c in contacts if c.has_valid_email)
    identified = [c.id for c in contacts if c.id]
    duplicate_count = len(identified) - len(set(identified))

    issues = []
    if duplicate_count > 0:
        issues.append(f"{duplicate_count} duplicate contact(s) detected")

    nameless = [c for c in contacts if not c.first_name.strip() and not c.last_name.strip()]
    if nameless:
        issues.append(f"{len(nameless)} contact(s) missing both first and last names")

    partial = [c for c in contacts if bool(c.first_name.strip()) != bool(c.last_name.strip())]
    if partial:
        issues.append(f"{len(partial)} contact(s) missing either first or last name")

    return ContactQualityReport(
        total_contacts=total,
        valid_email_count=valid,
        invalid_email_count=total - valid,
        duplicate_count=duplicate_count,
        data_quality_issues=issues,
    )


def filter_contacts_by_query(contacts: Sequence[Contact], query: str) -> List[Contact]:
    """Case-insensitive substring filter over names, email and phone."""
    term = query.strip().lower()
    if not term:
        return list(contacts)

    def matches(contact: Contact) -> bool:
        fields = (
            contact.display_name,
            contact.first_name,
            contact.last_name,
            contact.email,
            contact.phone,
        )
        return any(term in field.lower() for field in fields if field)

    return [c for c in contacts if matches(c)]


def sort_contacts_by_display_name(contacts: Sequence[Contact]) -> List[Contact]:
    return sorted(contacts, key=lambda c: c.display_name.casefold())
