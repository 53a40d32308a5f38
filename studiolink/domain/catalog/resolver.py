"""
Task Template Resolver.

Expands the services chosen for a new project into its initial checklist.
Role flags and service type are decided here, once, and stored on the task.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ...errors import ValidationError

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"Submit (.+?) to (editor|client)", re.IGNORECASE)

# A site plan deliverable supersedes the client's floor plan
SUPERSEDING_MARKER = "site plan"
SUPERSEDED_MARKER = "floor plan"


@dataclass(frozen=True)
class ServiceTemplate:
    name: str
    tasks: Sequence[str]


@dataclass(frozen=True)
class TaskDraft:
    text: str
    service_type: Optional[str]
    is_editor_task: bool
    is_client_task: bool


@dataclass
class ResolvedTasks:
    tasks: list[TaskDraft]
    service_types: list[str]
    warnings: list[str]


def parse_service_type(template: str) -> Optional[str]:
    match = TEMPLATE_PATTERN.search(template)
    return match.group(1).strip() if match else None


def is_superseded(template: str) -> bool:
    lowered = template.lower()
    return SUPERSEDED_MARKER in lowered and "client" in lowered


def draft_task(template: str) -> TaskDraft:
    lowered = template.lower()
    return TaskDraft(
        text=template,
        service_type=parse_service_type(template),
        is_editor_task="editor" in lowered,
        is_client_task="client" in lowered,
    )


def resolve_templates(services: Sequence[ServiceTemplate]) -> ResolvedTasks:
    """
    Concatenate the templates of ``services`` in selection order and apply overrides.

    Raises:
        ValidationError: no services were chosen, or nothing survived filtering
    """
    if not services:
        raise ValidationError("Select at least one service")

    templates = [t for service in services for t in service.tasks if t and t.strip()]

    has_site_plan = any(SUPERSEDING_MARKER in t.lower() for t in templates)
    if has_site_plan:
        dropped = [t for t in templates if is_superseded(t)]
        if dropped:
            logger.info(f"🧭 Site plan selected, dropping client floor plan tasks: {dropped}")
        templates = [t for t in templates if not is_superseded(t)]

    if not templates:
        raise ValidationError("The selected services produce no tasks")

    warnings = []
    drafts = []
    for template in templates:
        draft = draft_task(template)
        if not draft.is_editor_task and not draft.is_client_task:
            warnings.append(f"Task '{template}' is neither an editor nor a client task")
        elif draft.service_type is None:
            warnings.append(f"Task '{template}' does not match 'Submit <Type> to editor|client'")
        drafts.append(draft)

    for warning in warnings:
        logger.warning(f"⚠️ {warning}")

    service_types = list(dict.fromkeys(d.service_type for d in drafts if d.service_type))
    return ResolvedTasks(tasks=drafts, service_types=service_types, warnings=warnings)


def revision_task_drafts(service_type: str) -> list[TaskDraft]:
    """The editor/client pair every revision spawns."""
    return [
        TaskDraft(
            text=f"Submit {service_type} Revision to editor",
            service_type=service_type,
            is_editor_task=True,
            is_client_task=False,
        ),
        TaskDraft(
            text=f"Submit {service_type} Revision to client",
            service_type=service_type,
            is_editor_task=False,
            is_client_task=True,
        ),
    ]
