"""
Prompt template catalog endpoints.
"""
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from typing import Any, List, Optional
from chatguard.services.templates import (
    PREDEFINED_TEMPLATES,
    get_template_by_id,
    get_template_categories,
    get_templates_by_category,
    search_templates,
)

router = APIRouter()


class TemplateVariableResponse(BaseModel):
    name: str
    type: str
    description: str
    required: bool
    defaultValue: Optional[Any] = None
    options: Optional[List[str]] = None


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    content: str
    variables: List[TemplateVariableResponse]
    version: str


class TemplateListResponse(BaseModel):
    templates: List[TemplateResponse]
    categories: List[str]


@router.get("", response_model=TemplateListResponse)
def list_templates(
    category: Optional[str] = Query(None, description="Filter by category"),
    q: Optional[str] = Query(None, description="Search name and description"),
):
    """List predefined templates, optionally filtered."""
    templates = PREDEFINED_TEMPLATES
    if category:
        templates = get_templates_by_category(category)
    if q:
        matches = {template.id for template in search_templates(q)}
        templates = [template for template in templates if template.id in matches]

    return TemplateListResponse(
        templates=[TemplateResponse(**template.to_dict()) for template in templates],
        categories=get_template_categories(),
    )


@router.get("/{template_id}", response_model=TemplateResponse)
def get_template(template_id: str):
    """Get a template by id."""
    template = get_template_by_id(template_id)
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Template '{template_id}' not found"
        )
    return TemplateResponse(**template.to_dict())
