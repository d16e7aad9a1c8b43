"""Derived recipient counts for the current selection."""

from typing import AbstractSet, Dict, List, Optional, Sequence

import structlog

from leaguemail.core.models import Contact, GroupKind, RecipientGroup, RecipientSelectionState
from leaguemail.selection.resolver import HybridResolver

logger = structlog.get_logger(__name__)


class SelectionAggregate:
    """
    Recompute recipient counts from the selected ids and groups.

    Counting policy:
    - "everyone" mode has no client-side count endpoint, so the total is the
      size of the (empty) explicit id set and every recipient counts as valid.
    - An id that no source can resolve any more (its cache snapshot was
      evicted) is counted as a valid email.
    - A contact reached both explicitly and through groups counts once. Group
      members are counted as they were when the group was picked, including
      members without a valid email.
    """

    def __init__(self, resolver: HybridResolver):
        self._resolver = resolver

    def effective_recipients(
        self, selected_ids: AbstractSet[str], groups: Sequence[RecipientGroup] = ()
    ) -> List[Contact]:
        """
        Every contact the selection reaches, each once.

        Explicit selections come first in id order, then group members in
        group order. Explicit ids that cannot be resolved are left out.
        """
        recipients: Dict[str, Contact] = {}
        for contact_id in sorted(selected_ids):
            contact = self._resolver.resolve(contact_id) or _member(groups, contact_id)
            if contact is not None:
                recipients[contact_id] = contact
        for group in groups:
            for member in group.members:
                recipients.setdefault(member.id, member)
        return list(recipients.values())

    def recompute(
        self,
        selected_ids: AbstractSet[str],
        all_selected: bool,
        search_query: str = "",
        last_selected_id: Optional[str] = None,
        groups: Sequence[RecipientGroup] = (),
    ) -> RecipientSelectionState:
        ids = frozenset(selected_ids)

        if all_selected:
            total = len(ids)
            return RecipientSelectionState(
                selected_ids=ids,
                all_selected=True,
                total_recipients=total,
                valid_email_count=total,
                invalid_email_count=0,
                search_query=search_query,
                last_selected_id=last_selected_id,
            )

        valid = 0
        invalid = 0
        unresolved = 0
        for contact_id in ids:
            contact = self._resolver.resolve(contact_id) or _member(groups, contact_id)
            if contact is None:
                unresolved += 1
                valid += 1
            elif contact.has_valid_email:
                valid += 1
            else:
                invalid += 1

        if unresolved:
            logger.debug("Unresolved selections counted as valid", unresolved=unresolved)

        counted = set(ids)
        for group in groups:
            for member in group.members:
                if member.id in counted:
                    continue
                counted.add(member.id)
                if member.has_valid_email:
                    valid += 1
                else:
                    invalid += 1

        return RecipientSelectionState(
            selected_ids=ids,
            selected_team_ids=frozenset(g.group_id for g in groups if g.kind is GroupKind.TEAM),
            selected_role_ids=frozenset(g.group_id for g in groups if g.kind is GroupKind.ROLE),
            all_selected=False,
            total_recipients=len(counted),
            valid_email_count=valid,
            invalid_email_count=invalid,
            search_query=search_query,
            last_selected_id=last_selected_id,
        )


def _member(groups: Sequence[RecipientGroup], contact_id: str) -> Optional[Contact]:
    for group in groups:
        for member in group.members:
            if member.id == contact_id:
                return member
    return None
