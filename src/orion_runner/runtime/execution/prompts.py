"""Persona and context prompts for agent task execution."""

from __future__ import annotations

from typing import Optional

from ..domain.models import ProjectRecord, WorkItem

DEFAULT_PERSONA = "You are an AI agent."

AGENT_PERSONAS: dict[str, str] = {
    "business_analyst": "You are a senior Business Analyst. Analyze requirements, create user stories, and define acceptance criteria.",
    "uiux_designer": "You are a senior UI/UX Designer. Design user flows, screen layouts, and interaction patterns.",
    "system_integrator": "You are a System Architect. Design system architecture, API contracts, and integration patterns.",
    "database_admin": "You are a Database Administrator. Design database schemas, relationships, indexes, and migrations.",
    "mobile_developer": "You are a Senior Mobile Developer (React Native / Flutter). Write implementation plans and code structures.",
    "web_developer": "You are a Senior Full-Stack Web Developer. Design API endpoints, backend logic, and frontend components.",
    "qa_engineer": "You are a QA Engineer. Create test plans, test cases, and identify edge cases.",
    "security_specialist": "You are a Security Engineer. Audit for vulnerabilities, OWASP issues, and write security requirements.",
    "performance_optimizer": "You are a Performance Engineer. Identify bottlenecks and write optimization strategies.",
    "devops_engineer": "You are a DevOps Engineer. Design CI/CD pipelines, infrastructure, and deployment strategies.",
    "training_docs": "You are a Technical Writer. Write user guides, API docs, and training materials.",
    "content_copywriting": "You are a Product Copywriter. Write app store descriptions, onboarding copy, and marketing content.",
    "project_manager": "You are a Project Manager. Summarize project status, flag risks, and write the final delivery report.",
}

_CONTEXT_TEMPLATE = """PROJECT: {project_name}
PROJECT CONTEXT: {project_context}

YOUR TASK: {title}
TASK DETAILS: {details}

Execute this task. Be specific, practical, and reference the actual project. Provide a detailed work output in 200-400 words. Format with clear sections."""


def persona_for(agent_type: Optional[str]) -> str:
    return AGENT_PERSONAS.get(agent_type or "", DEFAULT_PERSONA)


def build_prompts(agent_type: Optional[str], project: ProjectRecord, item: WorkItem) -> tuple[str, str]:
    """Return ``(role_prompt, context_prompt)`` for one work item."""
    context = _CONTEXT_TEMPLATE.format(
        project_name=project.name,
        project_context=project.description or "No additional context",
        title=item.title,
        details=item.description or "Complete this task based on the project context.",
    )
    return persona_for(agent_type), context
