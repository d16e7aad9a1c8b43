"""
Data models and type definitions for LeagueMail.

Provides type-safe data structures for directory records, canonical contacts,
pagination windows and recipient selection state.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UNKNOWN_CONTACT_NAME = "Unknown Contact"


# Directory records (as received)


class RawContactDetails(BaseModel):
    """Optional phone details attached to a directory record."""

    phone1: Optional[str] = None
    phone2: Optional[str] = None
    phone3: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class RawContactRole(BaseModel):
    """Role assignment as returned by the directory service."""

    id: Optional[str] = None
    role_id: Optional[str] = Field(None, alias="roleId")
    role_name: Optional[str] = Field(None, alias="roleName")
    role_data: Optional[str] = Field(None, alias="roleData")
    context_name: Optional[str] = Field(None, alias="contextName")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", "role_id", "role_data", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return None if v is None else str(v)


class RawContact(BaseModel):
    """Contact record exactly as the directory service returns it."""

    id: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    middle_name: Optional[str] = Field(None, alias="middleName")
    email: Optional[str] = None
    contact_details: Optional[RawContactDetails] = Field(None, alias="contactDetails")
    contact_roles: List[RawContactRole] = Field(default_factory=list, alias="contactroles")
    teams: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        """Identities are opaque; numeric ids are kept as strings."""
        return None if v is None else str(v)

    @field_validator("contact_roles", mode="before")
    @classmethod
    def default_roles(cls, v):
        return v or []

    @field_validator("teams", mode="before")
    @classmethod
    def parse_teams(cls, v):
        """Accept plain team ids or team objects."""
        teams = []
        for team in v or []:
            if isinstance(team, dict):
                team = team.get("id") or team.get("teamSeasonId") or team.get("teamId")
            if team is not None:
                teams.append(str(team))
        return teams


class PageResult(BaseModel):
    """One page of directory records plus its cursor flags."""

    contacts: List[RawContact] = Field(default_factory=list)
    has_next: bool = False
    has_prev: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def unwrap_response(cls, data: Any) -> Any:
        """Accept the directory service's JSON envelope."""
        if not isinstance(data, dict) or not ("pagination" in data or "data" in data):
            return data

        contacts = data.get("contacts")
        if contacts is None and isinstance(data.get("data"), dict):
            contacts = data["data"].get("contacts")

        pagination = data.get("pagination") or {}
        return {
            "contacts": contacts or [],
            "has_next": bool(pagination.get("hasNext", False)),
            "has_prev": bool(pagination.get("hasPrev", False)),
        }


# Canonical value objects


class ContactRole(BaseModel):
    """Role descriptor attached to a contact."""

    id: Optional[str] = None
    role_id: Optional[str] = None
    role_name: str = ""
    role_data: str = ""
    context_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Contact(BaseModel):
    """Canonical, immutable contact used throughout recipient selection."""

    id: str
    first_name: str = ""
    last_name: str = ""
    display_name: str = UNKNOWN_CONTACT_NAME
    email: Optional[str] = None
    has_valid_email: bool = False
    phone: Optional[str] = None
    roles: Tuple[ContactRole, ...] = ()
    teams: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class PaginationWindow(BaseModel):
    """The displayed page of a cursor-only collection."""

    items: Tuple[Contact, ...] = ()
    page: int = Field(default=1, ge=1)
    has_next: bool = False
    has_prev: bool = False
    loading: bool = False
    is_initial_load: bool = False
    is_paginating: bool = False

    model_config = ConfigDict(frozen=True)


class SelectionCacheEntry(BaseModel):
    """Snapshot of a selected contact and when it was selected."""

    contact: Contact
    selected_at: float

    model_config = ConfigDict(frozen=True)


class GroupKind(str, Enum):
    """Ways contacts can be addressed as a group."""

    TEAM = "team"
    ROLE = "role"


class RecipientGroup(BaseModel):
    """A team or role selected as a whole, with the members known when it was picked."""

    kind: GroupKind
    group_id: str = Field(min_length=1)
    name: str = ""
    members: Tuple[Contact, ...] = ()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_contacts(
        cls, kind: GroupKind, group_id: str, contacts: Iterable[Contact], name: str = ""
    ) -> RecipientGroup:
        """Build a group from the contacts that belong to the team or hold the role."""
        if kind is GroupKind.TEAM:
            members = [c for c in contacts if group_id in c.teams]
        else:
            members = [c for c in contacts if any(r.role_id == group_id for r in c.roles)]
        # Contacts without an id cannot be told apart once selected
        return cls(
            kind=kind, group_id=group_id, name=name, members=tuple(c for c in members if c.id)
        )

    def contains(self, contact_id: str) -> bool:
        return any(member.id == contact_id for member in self.members)


class RecipientSelectionState(BaseModel):
    """Selected recipients plus the counts derived from them."""

    selected_ids: FrozenSet[str] = frozenset()
    selected_team_ids: FrozenSet[str] = frozenset()
    selected_role_ids: FrozenSet[str] = frozenset()
    all_selected: bool = False
    total_recipients: int = 0
    valid_email_count: int = 0
    invalid_email_count: int = 0
    search_query: str = ""
    last_selected_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_groups(self) -> bool:
        return bool(self.selected_team_ids or self.selected_role_ids)

    @model_validator(mode="after")
    def check_selection_modes(self) -> RecipientSelectionState:
        """Explicit ids and groups are mutually exclusive with 'everyone'."""
        if self.all_selected and (self.selected_ids or self.has_groups):
            raise ValueError("all_selected requires no explicit ids and no groups")
        if self.all_selected:
            return self
        if self.has_groups:
            if self.total_recipients < len(self.selected_ids):
                raise ValueError("total_recipients must cover every selected id")
        elif self.total_recipients != len(self.selected_ids):
            raise ValueError("total_recipients must equal the number of selected ids")
        return self


class ContactQualityReport(BaseModel):
    """Data quality summary for a batch of contacts."""

    total_contacts: int = 0
    valid_email_count: int = 0
    invalid_email_count: int = 0
    duplicate_count: int = 0
    data_quality_issues: List[str] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()
