"""Typed models for routed file records and configurations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RoutedFile:
    """A routesets definition (DF) or digitmap (DM) record.

    Attributes:
        id: Record identifier within its file database.
        name: File name shown in the listing.
        file_type: ``routesets_definitions`` or ``routesets_digitmaps``.
        db_id: File database (configuration) identifier.
        update_url: Edit page path, if listed.
        export_url: CSV export path, if listed.
        delete_url: Record path used for deletion, if listed.
    """

    id: str
    name: str
    file_type: str
    db_id: str
    update_url: str | None = None
    export_url: str | None = None
    delete_url: str | None = None


@dataclass
class ConfigurationEntry:
    """One entry of the console's configuration selector.

    Attributes:
        id: Configuration identifier.
        name: Display name (leading ``*`` marker removed).
        active: Whether the entry sits in the "Active" option group.
        selected: Whether the option is marked selected.
    """

    id: str
    name: str
    active: bool = False
    selected: bool = False
