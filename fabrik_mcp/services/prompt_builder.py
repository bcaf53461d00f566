"""
System prompt construction from a normalized agent configuration.
"""
from typing import List, Optional, Sequence

from fabrik_mcp.models import AgentConfiguration, RagChunk


def build_system_prompt(config: AgentConfiguration, rag_chunks: Optional[Sequence[RagChunk]] = None) -> str:
    """
    Render the system prompt for a configured agent.

    Sections appear in a fixed order and empty optional sections are left out,
    so the same configuration and chunks always produce the same prompt.

    Args:
        config: Normalized agent configuration
        rag_chunks: Snippets to embed as contextual information

    Returns:
        The prompt text
    """
    sections: List[str] = []

    identity = f"You are {config.agent.name}."
    if config.agent.description:
        identity += f"\n{config.agent.description}"
    sections.append(identity)

    if config.system_prompt_template:
        sections.append(config.system_prompt_template)

    workflow_lines = ["WORKFLOW:"]
    if config.workflow.description:
        workflow_lines.append(config.workflow.description)
    for number, step in enumerate(config.workflow.steps, start=1):
        workflow_lines.append(f"{number}. {step}")
    if len(workflow_lines) > 1:
        sections.append("\n".join(workflow_lines))

    output_lines = ["OUTPUT FORMAT:", f"Expected format: {config.output.expected_format}"]
    if config.output.natural_language_format:
        output_lines.append(config.output.natural_language_format)
    sections.append("\n".join(output_lines))

    if config.compliance_rules:
        sections.append("\n".join(["COMPLIANCE RULES:"] + [f"- {rule}" for rule in config.compliance_rules]))

    if rag_chunks:
        context_lines = ["CONTEXTUAL INFORMATION:"]
        for number, chunk in enumerate(rag_chunks, start=1):
            context_lines.append(
                f"[{number}] {chunk.file_name} (page {chunk.page_label}, relevance score {chunk.score:g})"
            )
            context_lines.append(chunk.text_preview)
        sections.append("\n".join(context_lines))

    sections.append(
        "Answer the user's query following the workflow and output format above."
        + (" Ground your answer in the contextual information where relevant." if rag_chunks else "")
    )

    return "\n\n".join(sections)
