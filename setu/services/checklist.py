"""Document checklists for scheme applications.

Turns a scheme's ``required_documents`` into a prioritised,
alternative-aware checklist:

    * documents are partitioned into mandatory and optional lists;
    * every document that declares ``alternatives`` -- or is reachable as
      someone's alternative -- is emitted once, inside an alternative
      group, and never standalone; groups sharing a member are merged;
    * partitions are ordered by ascending priority with ties kept in
      declaration order;
    * entries the profile likely lacks are flagged, and mandatory
      standalone documents get substitute guidance from a static table.

The catalog guarantees alternatives form a DAG, so the traversal here
does not guard against cycles beyond de-duplicating by document id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

import structlog

from setu.models.results import AlternativeGroup, Checklist, ChecklistItem

if TYPE_CHECKING:
    from setu.models.scheme import Document, Scheme
    from setu.models.user_profile import UserProfile
    from setu.services.catalog import CatalogStore

logger = structlog.get_logger(__name__)


# Document name keywords -> profile credential flags
_DOCUMENT_FIELD_MAP: Final[dict[str, str]] = {
    "aadhaar": "has_aadhaar",
    "aadhaar card": "has_aadhaar",
    "aadhar": "has_aadhaar",
    "voter id": "has_voter_id",
    "epic card": "has_voter_id",
    "bank account": "has_bank_account",
    "bank passbook": "has_bank_account",
    "savings account": "has_bank_account",
    "ration card": "has_ration_card",
    "bpl card": "has_ration_card",
    "land records": "has_land_records",
    "land ownership": "has_land_records",
    "khatauni": "has_land_records",
    "7/12 extract": "has_land_records",
    "income certificate": "has_income_certificate",
    "caste certificate": "has_caste_certificate",
    "sc/st certificate": "has_caste_certificate",
    "obc certificate": "has_caste_certificate",
    "domicile certificate": "has_domicile_certificate",
    "residence proof": "has_domicile_certificate",
}

# Credential flag -> (substitute, flag the substitute itself depends on)
_SUBSTITUTIONS: Final[dict[str, tuple[tuple[str, str | None], ...]]] = {
    "has_aadhaar": (
        ("Voter ID card", "has_voter_id"),
        ("Ration card", "has_ration_card"),
        ("Passport", None),
    ),
    "has_voter_id": (
        ("Aadhaar Card", "has_aadhaar"),
        ("Passport", None),
    ),
    "has_ration_card": (
        ("BPL certificate from the Block Development Office", None),
    ),
    "has_bank_account": (
        ("Jan Dhan (PMJDY) zero-balance account passbook", None),
        ("Post office savings account passbook", None),
    ),
    "has_income_certificate": (
        ("BPL card", "has_ration_card"),
        ("Income self-declaration attested by the Gram Panchayat", None),
    ),
    "has_domicile_certificate": (
        ("Ration card", "has_ration_card"),
        ("Voter ID card", "has_voter_id"),
    ),
    "has_land_records": (
        ("Land possession certificate from the Tehsildar", None),
    ),
}


def credential_flag(document: Document) -> str | None:
    """Map a document to the profile flag recording whether it is held."""
    text = f"{document.document_id} {document.name}".lower().replace("_", " ")
    matched_field = None
    best_keyword_len = 0
    for keyword, field_name in _DOCUMENT_FIELD_MAP.items():
        if keyword in text and len(keyword) > best_keyword_len:
            matched_field = field_name
            best_keyword_len = len(keyword)
    return matched_field


def _likely_missing(profile: UserProfile, document: Document) -> bool:
    flag = credential_flag(document)
    return flag is not None and profile.credential(flag) is False


def _substitutes(profile: UserProfile, document: Document) -> list[str]:
    flag = credential_flag(document)
    if flag is None:
        return []
    return [
        name
        for name, depends_on in _SUBSTITUTIONS.get(flag, ())
        if depends_on is None or profile.credential(depends_on) is not False
    ]


@dataclass
class _Group:
    first_index: int
    members: list[Document] = field(default_factory=list)
    ids: set[str] = field(default_factory=set)

    def add(self, document: Document) -> None:
        if document.document_id not in self.ids:
            self.ids.add(document.document_id)
            self.members.append(document)


def _closure(document: Document) -> list[Document]:
    """The document followed by all its alternatives, depth-first in declaration order."""
    ordered: list[Document] = []
    seen: set[str] = set()
    stack = [document]
    while stack:
        doc = stack.pop()
        if doc.document_id in seen:
            continue
        seen.add(doc.document_id)
        ordered.append(doc)
        stack.extend(reversed(doc.alternatives))
    return ordered


class ChecklistBuilder:
    """Builds per-scheme checklists against the current catalog snapshot."""

    __slots__ = ("_store",)

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    def build(self, scheme: Scheme | str, profile: UserProfile) -> Checklist:
        """Build the checklist for ``scheme`` (a scheme or its id).

        Raises
        ------
        SchemeNotFoundError
            If the scheme id is not in the current catalog snapshot.
        CatalogUnavailableError
            If no snapshot has been published.
        """
        catalog = self._store.current()
        scheme_id = scheme if isinstance(scheme, str) else scheme.scheme_id
        resolved = catalog.get(scheme_id)

        groups = self._group_alternatives(resolved.required_documents)
        grouped_ids = set().union(*(g.ids for g in groups))

        mandatory: list[ChecklistItem] = []
        optional: list[ChecklistItem] = []
        seen: set[str] = set()
        for doc in resolved.required_documents:
            if doc.document_id in grouped_ids or doc.document_id in seen:
                continue
            seen.add(doc.document_id)
            if doc.is_mandatory:
                missing = _likely_missing(profile, doc)
                mandatory.append(
                    ChecklistItem(
                        document=doc,
                        likely_missing=missing,
                        substitutes=_substitutes(profile, doc) if missing else [],
                    )
                )
            else:
                optional.append(ChecklistItem(document=doc))

        mandatory.sort(key=lambda item: item.document.priority)
        optional.sort(key=lambda item: item.document.priority)

        checklist = Checklist(
            scheme_id=resolved.scheme_id,
            mandatory=mandatory,
            optional=optional,
            alternative_groups=[self._render_group(g, profile) for g in groups],
        )
        logger.info(
            "checklist.built",
            scheme_id=resolved.scheme_id,
            catalog_version=catalog.version,
            mandatory=len(mandatory),
            optional=len(optional),
            groups=len(checklist.alternative_groups),
            likely_missing=sum(1 for item in mandatory if item.likely_missing)
            + sum(1 for g in checklist.alternative_groups if g.likely_missing),
        )
        return checklist

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _group_alternatives(documents: list[Document]) -> list[_Group]:
        groups: list[_Group] = []
        for index, doc in enumerate(documents):
            if not doc.alternatives:
                continue
            members = _closure(doc)
            member_ids = {m.document_id for m in members}
            overlapping = [g for g in groups if g.ids & member_ids]
            if overlapping:
                target = overlapping[0]
                for other in overlapping[1:]:
                    for member in other.members:
                        target.add(member)
                    groups.remove(other)
            else:
                target = _Group(first_index=index)
                groups.append(target)
            for member in members:
                target.add(member)

        groups.sort(key=lambda g: (min(m.priority for m in g.members), g.first_index))
        return groups

    @staticmethod
    def _render_group(group: _Group, profile: UserProfile) -> AlternativeGroup:
        options = [ChecklistItem(document=doc) for doc in group.members]
        head, *others = group.members
        is_mandatory = any(doc.is_mandatory for doc in group.members)
        return AlternativeGroup(
            description=f"{head.name}, OR any of: " + ", ".join(d.name for d in others),
            options=options,
            is_mandatory=is_mandatory,
            priority=min(doc.priority for doc in group.members),
            likely_missing=is_mandatory
            and all(_likely_missing(profile, doc) for doc in group.members),
        )
