"""
Predefined prompt template catalog.
"""
from typing import List, Optional

from chatguard.services.templates.template_models import PromptTemplate, TemplateVariable


PREDEFINED_TEMPLATES: List[PromptTemplate] = [
    # Role-based templates
    PromptTemplate(
        id="helpful-assistant",
        name="Helpful Assistant",
        description="A friendly and helpful AI assistant",
        category="role",
        content=(
            "You are a helpful, friendly, and knowledgeable AI assistant. "
            "You provide accurate information and helpful responses to user questions."
        ),
    ),
    PromptTemplate(
        id="code-reviewer",
        name="Code Reviewer",
        description="An expert code reviewer focused on best practices",
        category="role",
        content="""You are an expert code reviewer with {{experience_years}} years of experience in {{programming_language}}.

Your role is to:
- Review code for bugs, performance issues, and best practices
- Suggest improvements and optimizations
- Explain your reasoning clearly
- Be constructive and educational

Please review the following code and provide detailed feedback:""",
        variables=[
            TemplateVariable("experience_years", "number", "Years of programming experience",
                             required=True, default_value=10),
            TemplateVariable("programming_language", "string", "Primary programming language",
                             required=True, default_value="JavaScript",
                             options=["JavaScript", "TypeScript", "Python", "Java", "C++", "Go", "Rust"]),
        ],
    ),
    PromptTemplate(
        id="creative-writer",
        name="Creative Writer",
        description="A creative writing assistant for various genres",
        category="role",
        content="""You are a creative writing assistant specializing in {{genre}} writing.

Your writing style is:
- Tone: {{tone}}
- Target audience: {{audience}}
- Writing level: {{writing_level}}

Please help me with the following writing task:""",
        variables=[
            TemplateVariable("genre", "string", "Writing genre", required=True, default_value="fiction",
                             options=["fiction", "non-fiction", "poetry", "screenplay", "technical writing"]),
            TemplateVariable("tone", "string", "Writing tone", required=True, default_value="professional",
                             options=["professional", "casual", "formal", "humorous", "dramatic"]),
            TemplateVariable("audience", "string", "Target audience", required=True, default_value="general",
                             options=["general", "children", "teenagers", "adults", "professionals"]),
            TemplateVariable("writing_level", "string", "Writing complexity level", required=True,
                             default_value="intermediate", options=["beginner", "intermediate", "advanced"]),
        ],
    ),

    # Task-based templates
    PromptTemplate(
        id="data-extraction",
        name="Data Extraction",
        description="Extract structured data from unstructured text",
        category="task",
        content="""You are a data extraction specialist. Extract the following information from the provided text:

Required fields:
{{required_fields}}

Optional fields:
{{optional_fields}}

Output format: {{output_format}}

Please extract the data and format it as requested:""",
        variables=[
            TemplateVariable("required_fields", "string", "Comma-separated list of required fields to extract",
                             required=True, default_value="name, email, phone"),
            TemplateVariable("optional_fields", "string", "Comma-separated list of optional fields to extract",
                             required=False, default_value="address, company"),
            TemplateVariable("output_format", "string", "Desired output format", required=True,
                             default_value="JSON", options=["JSON", "CSV", "XML", "YAML"]),
        ],
    ),
    PromptTemplate(
        id="summarization",
        name="Text Summarization",
        description="Summarize long texts into concise summaries",
        category="task",
        content="""You are a text summarization expert. Create a {{summary_type}} summary of the following text.

Summary requirements:
- Length: {{summary_length}}
- Focus: {{focus_area}}
- Include key points: {{include_key_points}}
- Include examples: {{include_examples}}

Please provide a well-structured summary:""",
        variables=[
            TemplateVariable("summary_type", "string", "Type of summary", required=True, default_value="executive",
                             options=["executive", "detailed", "bullet-points", "paragraph"]),
            TemplateVariable("summary_length", "string", "Desired summary length", required=True,
                             default_value="medium", options=["short", "medium", "long"]),
            TemplateVariable("focus_area", "string", "Main focus area", required=False, default_value="all"),
            TemplateVariable("include_key_points", "boolean", "Include key points", required=True,
                             default_value=True),
            TemplateVariable("include_examples", "boolean", "Include examples", required=True,
                             default_value=False),
        ],
    ),

    # Format-based templates
    PromptTemplate(
        id="markdown-formatter",
        name="Markdown Formatter",
        description="Format responses in clean Markdown",
        category="format",
        content="""You are a Markdown formatting specialist. Format your response using clean, well-structured Markdown.

Formatting guidelines:
- Use proper headings (##, ###)
- Include code blocks with syntax highlighting
- Use lists and tables when appropriate
- Include emojis: {{include_emojis}}
- Add table of contents: {{add_toc}}

Please format your response accordingly:""",
        variables=[
            TemplateVariable("include_emojis", "boolean", "Include emojis in the response", required=True,
                             default_value=True),
            TemplateVariable("add_toc", "boolean", "Add table of contents", required=True, default_value=False),
        ],
    ),
    PromptTemplate(
        id="conversation-context",
        name="Conversation Context",
        description="Maintain context across conversation turns",
        category="context",
        content="""You are continuing a conversation with the following context:

Previous conversation:
{{conversation_history}}

Current topic: {{current_topic}}
User's expertise level: {{user_expertise}}
Conversation goal: {{conversation_goal}}

Please respond appropriately to the user's message while maintaining context:""",
        variables=[
            TemplateVariable("conversation_history", "string", "Previous conversation messages",
                             required=False, default_value=""),
            TemplateVariable("current_topic", "string", "Current discussion topic", required=False,
                             default_value="general"),
            TemplateVariable("user_expertise", "string", "User's expertise level", required=True,
                             default_value="intermediate",
                             options=["beginner", "intermediate", "advanced", "expert"]),
            TemplateVariable("conversation_goal", "string", "Goal of the conversation", required=False,
                             default_value="information sharing"),
        ],
    ),
]


def get_template_by_id(template_id: str) -> Optional[PromptTemplate]:
    for template in PREDEFINED_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def get_templates_by_category(category: str) -> List[PromptTemplate]:
    return [template for template in PREDEFINED_TEMPLATES if template.category == category]


def get_template_categories() -> List[str]:
    """Categories in first-seen order."""
    categories: List[str] = []
    for template in PREDEFINED_TEMPLATES:
        if template.category not in categories:
            categories.append(template.category)
    return categories


def search_templates(query: str) -> List[PromptTemplate]:
    """Case-insensitive match on name or description."""
    query = query.lower()
    return [
        template for template in PREDEFINED_TEMPLATES
        if query in template.name.lower() or query in template.description.lower()
    ]
