"""
Brainprep Prompt Templates

Typed prompt templates with `{variable}` placeholders. A template declares the
variables it uses; the declaration is checked against the template text when the
template is created, and rendering substitutes only declared variables taken
from a TemplateValues structure.
"""

import string
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Set

from brainprep.core.exceptions import TemplateError


@dataclass
class TemplateValues:
    """Values available to prompt templates."""
    entity_type: str = ""
    entity_name: str = ""
    entity_text: str = ""
    entity_data: str = ""
    project_name: str = ""
    project_type: str = ""
    project_genre: str = ""
    project_themes: str = ""
    project_tone: str = ""
    context_summary: str = ""
    field_specs: str = ""
    relationship_types: str = ""
    candidates: str = ""
    similar_content: str = ""

    @classmethod
    def names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def as_mapping(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def template_placeholders(template: str) -> Set[str]:
    """Names of the `{placeholders}` used in a template; `{{` and `}}` are literals."""
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise TemplateError("<inline>", f"malformed placeholder: {e}")

    names = set()
    for _, field_name, format_spec, _ in parsed:
        if field_name is None:
            continue
        if not field_name.isidentifier():
            raise TemplateError("<inline>", f"placeholder '{{{field_name}}}' is not a plain name")
        if format_spec:
            raise TemplateError("<inline>", f"placeholder '{{{field_name}}}' has a format spec")
        names.add(field_name)
    return names


@dataclass
class PromptTemplate:
    """A named prompt template with its declared variables."""
    name: str
    template: str
    variables: List[str]

    def __post_init__(self):
        self.check()

    def check(self) -> None:
        """Raise TemplateError unless the declared variables match the template exactly."""
        try:
            used = template_placeholders(self.template)
        except TemplateError as e:
            raise TemplateError(self.name, e.details["reason"])

        declared = set(self.variables)
        unknown = declared - TemplateValues.names()
        if unknown:
            raise TemplateError(self.name, f"unknown variables declared: {sorted(unknown)}")

        undeclared = used - declared
        if undeclared:
            raise TemplateError(self.name, f"undeclared variables used: {sorted(undeclared)}")

        unused = declared - used
        if unused:
            raise TemplateError(self.name, f"declared variables not used: {sorted(unused)}")

    def render(self, values: TemplateValues) -> str:
        """Render with the declared variables only."""
        mapping = values.as_mapping()
        return self.template.format(**{name: mapping[name] for name in self.variables})

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'template': self.template, 'variables': list(self.variables)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PromptTemplate':
        return cls(
            name=data['name'],
            template=data['template'],
            variables=list(data.get('variables', [])),
        )
