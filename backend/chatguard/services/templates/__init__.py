"""
Prompt template catalog and renderer.
"""
from chatguard.services.templates.template_models import (
    PromptTemplate,
    TemplateVariable,
    TemplateResult,
    TEMPLATE_CATEGORIES,
)
from chatguard.services.templates.catalog import (
    PREDEFINED_TEMPLATES,
    get_template_by_id,
    get_templates_by_category,
    get_template_categories,
    search_templates,
)
from chatguard.services.templates.engine import (
    TemplateRenderError,
    render,
    validate,
    get_missing_variables,
    extract_variables,
    get_default_variables,
    merge_with_defaults,
)

__all__ = [
    "PromptTemplate",
    "TemplateVariable",
    "TemplateResult",
    "TEMPLATE_CATEGORIES",
    "PREDEFINED_TEMPLATES",
    "get_template_by_id",
    "get_templates_by_category",
    "get_template_categories",
    "search_templates",
    "TemplateRenderError",
    "render",
    "validate",
    "get_missing_variables",
    "extract_variables",
    "get_default_variables",
    "merge_with_defaults",
]
