"""Prompt templates for story artifact generation."""

import json
from typing import Any

from cardy.core.schemas_artifacts import ArtifactType, JiraTicket

SYSTEM_PROMPT = (
    "You are an expert software engineer specialized in translating Jira tickets into "
    "detailed technical specifications and code. You write clear, maintainable code and "
    "thorough test cases. Follow software engineering best practices and cover error "
    "handling and edge cases."
)

ARTIFACT_INSTRUCTIONS: dict[ArtifactType, str] = {
    ArtifactType.LLD: (
        "Generate a Low-Level Design document for this ticket. Cover components and their "
        "responsibilities, data structures and entities touched, interfaces and API "
        "contracts, sequence of operations, validation and error handling, and open risks."
    ),
    ArtifactType.CODE: (
        "Generate the implementation code for this ticket. Follow the low-level design when "
        "one is provided. Use fenced code blocks with a language tag, one block per file, "
        "and name each file in a heading above its block."
    ),
    ArtifactType.TESTS: (
        "Generate automated tests for this ticket. Exercise the implementation code when it "
        "is provided, covering the acceptance criteria, edge cases and error paths. Use "
        "fenced code blocks with a language tag."
    ),
    ArtifactType.TEST_CASES: (
        "Generate manual test cases for this ticket as a markdown table with columns: ID, "
        "Title, Preconditions, Steps, Expected Result, Priority. Cover every acceptance "
        "criterion plus negative and boundary cases."
    ),
}

ARTIFACT_HEADINGS: dict[ArtifactType, str] = {
    ArtifactType.LLD: "Low-Level Design Document",
    ArtifactType.CODE: "Code Implementation",
    ArtifactType.TESTS: "Test Code",
    ArtifactType.TEST_CASES: "Test Cases",
}

# Earlier artifacts fed into later ones
PREREQUISITES: dict[ArtifactType, tuple[ArtifactType, ...]] = {
    ArtifactType.LLD: (),
    ArtifactType.CODE: (ArtifactType.LLD,),
    ArtifactType.TESTS: (ArtifactType.LLD, ArtifactType.CODE),
    ArtifactType.TEST_CASES: (ArtifactType.LLD,),
}


def _ticket_json(ticket: JiraTicket) -> str:
    fields = ticket.model_dump(exclude_none=True, exclude={"project_id", "sprint_id"})
    return json.dumps(fields, indent=2)


def build_generation_prompt(
    ticket: JiraTicket,
    artifact_type: ArtifactType,
    project: dict[str, Any] | None = None,
    data_model_text: str | None = None,
    documents_context: str | None = None,
    prior_artifacts: dict[ArtifactType, str] | None = None,
    additional_context: str | None = None,
) -> str:
    """
    Assemble the user prompt for one artifact.

    Args:
        ticket: Ticket fields
        artifact_type: Artifact being generated
        project: Project row (name, type, details)
        data_model_text: Rendered data model(s) in scope
        documents_context: Assembled document context
        prior_artifacts: Previously generated artifacts for the same ticket
        additional_context: Extra requester instructions

    Returns:
        Prompt text
    """
    sections = ["# Jira Ticket Engineering Request", "", "## JIRA TICKET", _ticket_json(ticket)]

    sections.extend(["", "## REQUEST", ARTIFACT_INSTRUCTIONS[artifact_type]])

    if additional_context:
        sections.extend(["", "## ADDITIONAL CONTEXT", additional_context])

    if project:
        sections.extend(["", "## PROJECT", f"Name: {project.get('name', '')}"])
        if project.get("type"):
            sections.append(f"Domain: {project['type']}")
        if project.get("details"):
            sections.append(f"Details: {project['details']}")

    if data_model_text:
        sections.extend(["", "## DATA MODEL", data_model_text])

    if documents_context:
        sections.extend(["", "## RELATED DOCUMENTS", documents_context])

    for prior_type, content in (prior_artifacts or {}).items():
        sections.extend(["", f"## EXISTING {ARTIFACT_HEADINGS[prior_type].upper()}", content])

    return "\n".join(sections)
