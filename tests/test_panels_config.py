"""
TicketBot - Panel Document Tests
================================

Validation and ENV_ substitution of config.json.
"""

import json
from pathlib import Path

import pytest

from ticketbot.core.config import ConfigValidationError
from ticketbot.core.panels import (
    load_panels_document,
    parse_panels_document,
    substitute_env_placeholders,
)

from tests.conftest import APP_ROLE_ID, PANEL_CHANNEL_ID, STAFF_ROLE_ID


class TestEnvSubstitution:

    def test_nested_values_replaced(self):
        raw = {"a": "ENV_ROLE", "b": ["ENV_ROLE", 5], "c": {"d": "plain"}}
        result = substitute_env_placeholders(raw, {"ROLE": "42"})
        assert result == {"a": "42", "b": ["42", 5], "c": {"d": "plain"}}

    def test_missing_variable_raises(self):
        with pytest.raises(ConfigValidationError, match="MISSING"):
            substitute_env_placeholders({"a": "ENV_MISSING"}, {})

    def test_bare_prefix_left_alone(self):
        assert substitute_env_placeholders("ENV_", {}) == "ENV_"


class TestParseDocument:

    def test_parses_fixture(self, panel_document):
        panel = panel_document.find_panel("support")
        assert panel.channel_id == PANEL_CHANNEL_ID
        staff_app = panel.categories[1]
        assert staff_app.roles == [STAFF_ROLE_ID, APP_ROLE_ID]
        assert [f.id for f in staff_app.form] == ["reason", "age"]
        assert staff_app.form[0].required is True
        assert staff_app.form[1].required is False
        assert staff_app.role_givers[0].disable_after_use is True

    def test_env_ids_become_ints(self):
        raw = {
            "panels": [{
                "name": "main",
                "channel_id": "ENV_PANEL",
                "title": "Help",
                "categories": [{"name": "Support", "roles": ["ENV_STAFF"]}],
            }]
        }
        document = parse_panels_document(raw, {"PANEL": "100", "STAFF": "200"})
        assert document.panels[0].channel_id == 100
        assert document.panels[0].categories[0].roles == [200]

    def test_duplicate_category_names_rejected(self):
        raw = {
            "panels": [{
                "name": "main",
                "channel_id": 1,
                "title": "Help",
                "categories": [{"name": "Support"}, {"name": "support"}],
            }]
        }
        with pytest.raises(ConfigValidationError, match="duplicate category"):
            parse_panels_document(raw, {})

    def test_duplicate_role_giver_ids_rejected(self):
        giver = {"id": "vip", "name": "VIP", "role_id": 1}
        raw = {
            "panels": [{
                "name": "main",
                "channel_id": 1,
                "title": "Help",
                "categories": [
                    {"name": "A", "role_givers": [giver]},
                    {"name": "B", "role_givers": [giver]},
                ],
            }]
        }
        with pytest.raises(ConfigValidationError, match="duplicate role giver"):
            parse_panels_document(raw, {})

    def test_duplicate_form_field_ids_rejected(self):
        raw = {
            "panels": [{
                "name": "main",
                "channel_id": 1,
                "title": "Help",
                "categories": [{
                    "name": "A",
                    "form": [{"id": "x", "label": "X"}, {"id": "x", "label": "Y"}],
                }],
            }]
        }
        with pytest.raises(ConfigValidationError):
            parse_panels_document(raw, {})

    def test_panel_without_categories_rejected(self):
        raw = {"panels": [{"name": "main", "channel_id": 1, "title": "Help", "categories": []}]}
        with pytest.raises(ConfigValidationError):
            parse_panels_document(raw, {})

    def test_non_object_rejected(self):
        with pytest.raises(ConfigValidationError):
            parse_panels_document([], {})


class TestLoadDocument:

    def test_missing_file_is_empty_document(self, tmp_path):
        document = load_panels_document(tmp_path / "absent.json")
        assert document.panels == []

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="not valid JSON"):
            load_panels_document(path)

    def test_loads_file(self, tmp_path, panel_document_raw):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(panel_document_raw), encoding="utf-8")
        document = load_panels_document(path, environ={})
        assert [p.name for p in document.panels] == ["support"]

    def test_example_config_loads(self):
        path = Path(__file__).resolve().parent.parent / "config.example.json"
        environ = {"PANEL_CHANNEL_ID": "111", "STAFF_ROLE_ID": "222", "VERIFIED_ROLE_ID": "333"}

        document = load_panels_document(path, environ=environ)

        panel = document.find_panel("support")
        assert panel.channel_id == 111
        staff_app = panel.categories[1]
        assert staff_app.roles == [222]
        assert staff_app.role_givers[0].role_id == 333
