"""
TicketBot - Category Registry
=============================

Resolves ticket categories from two layers with explicit precedence.

DESIGN:
    1. Config overlay: categories declared in the panel document. They
       carry roles, forms, templates and role givers, and never change at
       runtime except through an explicit reload.
    2. Database registry: categories created with /ticket create. These
       only have a name and a role list.

    A name found in the overlay always wins over a database category with
    the same name (case-insensitive).
"""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from ticketbot.core.database import CategoryRecord, DatabaseManager
from ticketbot.core.panels import (
    CategoryConfig,
    FormField,
    PanelConfig,
    PanelsDocument,
    RoleGiverConfig,
)


SOURCE_CONFIG = "config"
SOURCE_DATABASE = "database"


@dataclass(frozen=True)
class TicketCategory:
    """A resolved category, independent of where it was defined."""

    name: str
    approval_role_ids: FrozenSet[int] = frozenset()
    form: Tuple[FormField, ...] = ()
    channel_name_template: Optional[str] = None
    role_givers: Tuple[RoleGiverConfig, ...] = ()
    source: str = SOURCE_DATABASE
    panel_name: Optional[str] = None
    description: Optional[str] = None
    emoji: Optional[str] = None
    form_title: Optional[str] = None

    @property
    def requires_form(self) -> bool:
        return bool(self.form)

    @property
    def requires_approval(self) -> bool:
        return bool(self.approval_role_ids)

    @classmethod
    def from_config(cls, panel: PanelConfig, category: CategoryConfig) -> "TicketCategory":
        return cls(
            name=category.name,
            approval_role_ids=frozenset(category.roles),
            form=tuple(category.form),
            channel_name_template=category.channel_name_template,
            role_givers=tuple(category.role_givers),
            source=SOURCE_CONFIG,
            panel_name=panel.name,
            description=category.description,
            emoji=category.emoji,
            form_title=category.form_title,
        )

    @classmethod
    def from_record(cls, record: CategoryRecord) -> "TicketCategory":
        return cls(
            name=record["name"],
            approval_role_ids=frozenset(record.get("roles") or ()),
            source=SOURCE_DATABASE,
        )


class CategoryRegistry:
    """Config overlay over the database category table."""

    def __init__(self, document: PanelsDocument, db: DatabaseManager) -> None:
        self.document = document
        self.db = db

    def replace_document(self, document: PanelsDocument) -> None:
        self.document = document

    # =========================================================================
    # Lookup
    # =========================================================================

    def _find_config_category(
        self,
        category_name: str,
        panel_name: Optional[str] = None,
    ) -> Optional[TicketCategory]:
        key = category_name.casefold()

        panel = self.document.find_panel(panel_name)
        if panel:
            for category in panel.categories:
                if category.name.casefold() == key:
                    return TicketCategory.from_config(panel, category)

        for panel, category in self.document.iter_categories():
            if category.name.casefold() == key:
                return TicketCategory.from_config(panel, category)
        return None

    def resolve_category(
        self,
        guild_id: int,
        category_name: str,
        panel_name: Optional[str] = None,
    ) -> Optional[TicketCategory]:
        """
        Resolve a category by name.

        Order: the named panel's categories, any configured panel, then the
        guild's database categories. Returns None when nothing matches.
        """
        if not category_name:
            return None

        category = self._find_config_category(category_name, panel_name)
        if category:
            return category

        record = self.db.get_category(guild_id, category_name)
        if record:
            return TicketCategory.from_record(record)
        return None

    def list_categories(self, guild_id: int) -> List[TicketCategory]:
        """Config categories first, then database categories they do not shadow."""
        categories: List[TicketCategory] = []
        seen = set()
        for panel, category in self.document.iter_categories():
            key = category.name.casefold()
            if key in seen:
                continue
            seen.add(key)
            categories.append(TicketCategory.from_config(panel, category))

        for record in self.db.get_categories(guild_id):
            if record["name"].casefold() in seen:
                continue
            categories.append(TicketCategory.from_record(record))
        return categories

    def panel_categories(self, panel: PanelConfig) -> List[TicketCategory]:
        return [TicketCategory.from_config(panel, category) for category in panel.categories]

    def is_config_category(self, category_name: str) -> bool:
        return self._find_config_category(category_name) is not None

    def staff_role_ids(self, guild_id: int) -> FrozenSet[int]:
        """Every role referenced by any category in the guild."""
        role_ids = set()
        for category in self.list_categories(guild_id):
            role_ids.update(category.approval_role_ids)
        return frozenset(role_ids)

    # =========================================================================
    # Role Givers
    # =========================================================================

    def find_role_giver(self, giver_id: str) -> Optional[Tuple[TicketCategory, RoleGiverConfig]]:
        """Find a role giver by id across all configured categories."""
        for panel, category in self.document.iter_categories():
            for giver in category.role_givers:
                if giver.id == giver_id:
                    return TicketCategory.from_config(panel, category), giver
        return None


__all__ = [
    "TicketCategory",
    "CategoryRegistry",
    "SOURCE_CONFIG",
    "SOURCE_DATABASE",
]
