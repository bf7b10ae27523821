"""
Prompt template model classes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


TEMPLATE_CATEGORIES = ("role", "task", "format", "context", "custom")
VARIABLE_TYPES = ("string", "number", "boolean", "array")


@dataclass
class TemplateVariable:
    """Placeholder definition for a template."""
    name: str
    type: str  # string, number, boolean, array
    description: str
    required: bool = True
    default_value: Any = None
    options: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "required": self.required,
            "defaultValue": self.default_value,
            "options": self.options,
        }


@dataclass
class PromptTemplate:
    """Predefined system prompt with {{variable}} placeholders."""
    id: str
    name: str
    description: str
    category: str
    content: str
    variables: List[TemplateVariable] = field(default_factory=list)
    version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "content": self.content,
            "variables": [variable.to_dict() for variable in self.variables],
            "version": self.version,
        }


@dataclass
class TemplateResult:
    """Rendered template."""
    content: str
    variables: Dict[str, Any]
    template_id: str
