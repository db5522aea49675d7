"""
TicketBot - Panel Document
==========================

Pydantic models for the declarative panel document (config.json).

DESIGN:
    The document lists panels; each panel lists the categories offered by
    its dropdown. A category may declare approval roles, an intake form,
    a channel-name template and role-giver buttons.

    String values of the form "ENV_NAME" are replaced with the NAME
    environment variable before validation, so ids can stay out of the
    committed file.

Example:
    {
      "panels": [{
        "name": "support",
        "channel_id": "ENV_SUPPORT_PANEL_CHANNEL",
        "title": "Need help?",
        "categories": [{
          "name": "Staff App",
          "roles": ["ENV_STAFF_ROLE"],
          "form": [{"id": "reason", "label": "Why?", "kind": "paragraph"}],
          "channel_name_template": "app-{username}-{reason|none}"
        }]
      }]
    }
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ticketbot.core.config import ConfigValidationError
from ticketbot.core.logger import logger


# =============================================================================
# Constants
# =============================================================================

ENV_PREFIX = "ENV_"
MAX_FORM_FIELDS = 5
MAX_PANEL_CATEGORIES = 25


# =============================================================================
# Models
# =============================================================================

class FormField(BaseModel):
    """Single text input shown in a category's intake form."""
    id: str = Field(pattern=r"^[A-Za-z0-9_]{1,45}$", description="Field id used in templates")
    label: str = Field(min_length=1, max_length=45, description="Input label")
    required: bool = Field(True, description="Whether the input must be filled")
    kind: Literal["short", "paragraph"] = Field("short", description="Input style")
    placeholder: Optional[str] = Field(None, max_length=100)
    max_length: int = Field(1000, ge=1, le=4000)


class RoleGiverConfig(BaseModel):
    """Button that grants one role to the ticket owner."""
    id: str = Field(pattern=r"^[A-Za-z0-9_-]{1,50}$", description="Stable id used in the button custom id")
    name: str = Field(min_length=1, max_length=60, description="Button label")
    role_id: int = Field(description="Role granted on press")
    color: str = Field("blue", description="green, red, blue, grey or blurple")
    emoji: Optional[str] = None
    disable_after_use: bool = True


class CategoryConfig(BaseModel):
    """Ticket category offered by a panel."""
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=100)
    emoji: Optional[str] = None
    roles: List[int] = Field(default_factory=list, description="Approval / staff role ids")
    form: List[FormField] = Field(default_factory=list, max_length=MAX_FORM_FIELDS)
    form_title: Optional[str] = Field(None, max_length=45)
    channel_name_template: Optional[str] = Field(None, max_length=200)
    role_givers: List[RoleGiverConfig] = Field(default_factory=list, max_length=10)

    @field_validator("form")
    @classmethod
    def _unique_field_ids(cls, fields: List[FormField]) -> List[FormField]:
        seen = set()
        for form_field in fields:
            if form_field.id in seen:
                raise ValueError(f"duplicate form field id '{form_field.id}'")
            seen.add(form_field.id)
        return fields


class PanelConfig(BaseModel):
    """Dropdown message deployed to one channel."""
    name: str = Field(pattern=r"^[A-Za-z0-9_-]{1,50}$")
    channel_id: int
    title: str = Field(min_length=1, max_length=256)
    description: str = Field("", max_length=4000)
    placeholder: str = Field("Select a ticket category...", max_length=150)
    categories: List[CategoryConfig] = Field(min_length=1, max_length=MAX_PANEL_CATEGORIES)

    @field_validator("categories")
    @classmethod
    def _unique_category_names(cls, categories: List[CategoryConfig]) -> List[CategoryConfig]:
        seen = set()
        for category in categories:
            key = category.name.casefold()
            if key in seen:
                raise ValueError(f"duplicate category '{category.name}'")
            seen.add(key)
        return categories


class PanelsDocument(BaseModel):
    """Root of the panel document."""
    panels: List[PanelConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "PanelsDocument":
        panel_names = set()
        giver_ids = set()
        for panel in self.panels:
            if panel.name in panel_names:
                raise ValueError(f"duplicate panel name '{panel.name}'")
            panel_names.add(panel.name)
            for category in panel.categories:
                for giver in category.role_givers:
                    if giver.id in giver_ids:
                        raise ValueError(f"duplicate role giver id '{giver.id}'")
                    giver_ids.add(giver.id)
        return self

    def find_panel(self, name: Optional[str]) -> Optional[PanelConfig]:
        if not name:
            return None
        for panel in self.panels:
            if panel.name == name:
                return panel
        return None

    def iter_categories(self) -> Iterator[Tuple[PanelConfig, CategoryConfig]]:
        for panel in self.panels:
            for category in panel.categories:
                yield panel, category


# =============================================================================
# Loading
# =============================================================================

def substitute_env_placeholders(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """
    Recursively replace "ENV_NAME" strings with the NAME environment variable.

    Raises:
        ConfigValidationError: If a referenced variable is not set.
    """
    env = os.environ if environ is None else environ

    if isinstance(value, str):
        if value.startswith(ENV_PREFIX) and len(value) > len(ENV_PREFIX):
            key = value[len(ENV_PREFIX):]
            if key not in env:
                raise ConfigValidationError(f"Panel document references unset variable {key}")
            return env[key]
        return value
    if isinstance(value, list):
        return [substitute_env_placeholders(item, env) for item in value]
    if isinstance(value, dict):
        return {k: substitute_env_placeholders(v, env) for k, v in value.items()}
    return value


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        problems.append(f"{location or 'document'}: {item.get('msg')}")
    return "; ".join(problems)


def parse_panels_document(
    raw: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> PanelsDocument:
    """
    Validate an already-decoded document.

    Raises:
        ConfigValidationError: If the document is malformed.
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError("Panel document must be a JSON object")
    resolved = substitute_env_placeholders(raw, environ)
    try:
        return PanelsDocument.model_validate(resolved)
    except ValidationError as e:
        raise ConfigValidationError(f"Invalid panel document: {_format_validation_error(e)}")


def load_panels_document(
    path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> PanelsDocument:
    """
    Read and validate the panel document.

    A missing file yields an empty document, leaving database categories
    as the only source.

    Raises:
        ConfigValidationError: If the file is not valid JSON or fails validation.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Panel Document Not Found", [
            ("Path", str(path)),
            ("Effect", "Only database categories available"),
        ])
        return PanelsDocument()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"Panel document {path} is not valid JSON: {e}")

    document = parse_panels_document(raw, environ)

    logger.tree("Panel Document Loaded", [
        ("Path", str(path)),
        ("Panels", str(len(document.panels))),
        ("Categories", str(sum(len(p.categories) for p in document.panels))),
    ], emoji="📋")
    return document


__all__ = [
    "FormField",
    "RoleGiverConfig",
    "CategoryConfig",
    "PanelConfig",
    "PanelsDocument",
    "MAX_FORM_FIELDS",
    "substitute_env_placeholders",
    "parse_panels_document",
    "load_panels_document",
]
