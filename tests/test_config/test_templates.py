"""
Tests for prompt templates and named validators.
"""

import pytest

from brainprep.config.templates import PromptTemplate, TemplateValues, template_placeholders
from brainprep.config.validators import ValidatorRegistry, age_in_range, iso_date_if_present, positive_integer
from brainprep.core.exceptions import InvalidConfigError, TemplateError


class TestPromptTemplate:
    """Tests for PromptTemplate."""

    def test_render_declared_variables(self):
        template = PromptTemplate("greeting", "Analyze {entity_name} for {project_name}.",
                                  ["entity_name", "project_name"])

        rendered = template.render(TemplateValues(entity_name="Aladdin", project_name="Film"))

        assert rendered == "Analyze Aladdin for Film."

    def test_literal_braces_survive(self):
        template = PromptTemplate("json", 'Return {{"name": "{entity_name}"}}', ["entity_name"])

        assert template.render(TemplateValues(entity_name="Genie")) == 'Return {"name": "Genie"}'

    def test_undeclared_variable_rejected(self):
        with pytest.raises(TemplateError) as exc_info:
            PromptTemplate("bad", "Hello {entity_name}", [])
        assert exc_info.value.details["template"] == "bad"

    def test_unused_declaration_rejected(self):
        with pytest.raises(TemplateError):
            PromptTemplate("bad", "Hello", ["entity_name"])

    def test_unknown_variable_rejected(self):
        with pytest.raises(TemplateError):
            PromptTemplate("bad", "Hello {favourite_colour}", ["favourite_colour"])

    def test_format_spec_rejected(self):
        with pytest.raises(TemplateError):
            template_placeholders("{entity_name:>10}")

    def test_template_error_is_config_error(self):
        with pytest.raises(InvalidConfigError):
            PromptTemplate("bad", "{", [])


class TestValidators:
    """Tests for named validation predicates."""

    def test_positive_integer(self):
        assert positive_integer(3, {}) is True
        assert positive_integer("4", {}) is True
        assert positive_integer(0, {}) is False
        assert positive_integer(2.5, {}) is False
        assert positive_integer(None, {}) is False
        assert positive_integer(True, {}) is False

    def test_age_in_range(self):
        assert age_in_range(None, {}) is True
        assert age_in_range(42, {}) is True
        assert age_in_range(200, {}) is False

    def test_iso_date(self):
        assert iso_date_if_present("2024-05-01T10:00:00Z", {}) is True
        assert iso_date_if_present("yesterday", {}) is False

    def test_registry_lookup(self):
        registry = ValidatorRegistry()
        registry.register("always", lambda value, record: True)

        assert "always" in registry
        assert registry.get("always")(None, {}) is True

    def test_duplicate_registration_rejected(self):
        registry = ValidatorRegistry()

        with pytest.raises(InvalidConfigError):
            registry.register("positive_integer", lambda v, r: True)

    def test_unknown_validator(self):
        with pytest.raises(InvalidConfigError):
            ValidatorRegistry(include_builtins=False).get("positive_integer")
