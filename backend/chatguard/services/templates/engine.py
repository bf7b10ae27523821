"""
Template engine: {{variable}} substitution with validation.
"""
import re
from typing import Any, Dict, List, Optional

from chatguard.core.exceptions import ValidationError
from chatguard.services.templates.template_models import PromptTemplate, TemplateResult, TemplateVariable


PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


class TemplateRenderError(ValidationError):
    """Missing required variable or type mismatch."""


def _validate_variable_type(variable: TemplateVariable, value: Any) -> bool:
    if variable.type == "string":
        return isinstance(value, str)
    if variable.type == "number":
        # bool is an int subclass
        return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value
    if variable.type == "boolean":
        return isinstance(value, bool)
    if variable.type == "array":
        return isinstance(value, (list, tuple))
    return False


def _stringify(value: Any) -> str:
    """Render a variable value as it appears in the prompt."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def get_missing_variables(template: PromptTemplate, variables: Dict[str, Any]) -> List[str]:
    return [
        variable.name for variable in template.variables
        if variable.required and variables.get(variable.name) is None
    ]


def validate(template: PromptTemplate, variables: Dict[str, Any]) -> bool:
    """
    Check required variables and declared types.

    Raises:
        TemplateRenderError: On the first problem found
    """
    missing = get_missing_variables(template, variables)
    if missing:
        raise TemplateRenderError(f"Missing required variables: {', '.join(missing)}")

    for variable in template.variables:
        value = variables.get(variable.name)
        if value is not None and not _validate_variable_type(variable, value):
            raise TemplateRenderError(
                f"Invalid type for variable {variable.name}. Expected {variable.type}"
            )

    return True


def extract_variables(template: PromptTemplate) -> List[str]:
    """Placeholder names in order of first appearance."""
    names: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template.content):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def get_default_variables(template: PromptTemplate) -> Dict[str, Any]:
    return {
        variable.name: variable.default_value
        for variable in template.variables
        if variable.default_value is not None
    }


def merge_with_defaults(template: PromptTemplate, variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    merged = get_default_variables(template)
    merged.update(variables or {})
    return merged


def render(template: PromptTemplate, variables: Dict[str, Any]) -> TemplateResult:
    """
    Substitute placeholders in template content.

    Callers wanting defaults applied pass merge_with_defaults(...) output.

    Raises:
        TemplateRenderError: Missing variable or type mismatch
    """
    validate(template, variables)
    used: Dict[str, Any] = {}

    def _replace(match) -> str:
        name = match.group(1).strip()
        value = variables.get(name)
        if value is None:
            raise TemplateRenderError(f"Missing required variable: {name}")
        used[name] = value
        return _stringify(value)

    content = PLACEHOLDER_PATTERN.sub(_replace, template.content)
    return TemplateResult(content=content, variables=used, template_id=template.id)
