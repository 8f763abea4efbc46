"""Scoped modification of selected document blocks.

The model sees the whole document for style and terminology but rewrites
only the selected span. The result is a Modification patch; merging it
into the document is the editor's job.
"""

from enum import Enum

from app.context.models import Destination, IntentAnalysisResult
from app.core.exceptions import ProtocolValidationError
from app.core.llm import strip_outer_fence
from app.core.logging import get_logger
from app.core.model_adapter import ModelAdapter
from app.core.schemas_generation import Modification, Turn

logger = get_logger(__name__)

MODIFICATION_TEMPERATURE = 0.3
MODIFICATION_ERROR_PREFIX = "[Error: could not generate modification:"

SYSTEM_PROMPT = """You are an editing assistant working inside a document editor.

The user has selected part of the document and asked for a change. Rules:
- Edit ONLY the selected content. Everything else in the document is context.
- Use the full document to keep style, tone, terminology and cross references consistent.
- Output the replacement markdown for the selected content and nothing else.
- Do not add commentary, explanations, or code fences around the output."""


class EditPath(str, Enum):
    SCOPED = "scoped"
    WHOLE_DOCUMENT = "whole_document"


def select_edit_path(
    intent: IntentAnalysisResult | None,
    selected_block_ids: list[str] | None,
) -> EditPath:
    """
    Choose between a scoped patch and a whole-document rewrite.

    Scoped only when the editor reports a selection and the intent is an
    EDITOR action that targets existing content (MODIFY, EXPAND, REFORMAT,
    DELETE). REPLACE and ADD always rewrite the whole document.
    """
    if not selected_block_ids or intent is None:
        return EditPath.WHOLE_DOCUMENT
    if intent.destination != Destination.EDITOR or intent.editor_action is None:
        return EditPath.WHOLE_DOCUMENT
    return EditPath.SCOPED if intent.editor_action.is_scoped else EditPath.WHOLE_DOCUMENT


def build_modification_prompt(instruction: str, full_document_markdown: str, selected_markdown: str | None) -> str:
    sections = [f"## Full Document (context)\n{full_document_markdown or '(empty document)'}"]
    if selected_markdown:
        sections.append(f"## Selected Content (edit this only)\n{selected_markdown}")
    sections.append(f"## Instruction\n{instruction}")
    sections.append("Return only the replacement markdown for the selected content.")
    return "\n\n".join(sections)


async def apply_modification(
    adapter: ModelAdapter,
    instruction: str,
    target_block_ids: list[str],
    full_document_markdown: str,
    model_id: str,
    selected_markdown: str | None = None,
) -> Modification:
    """
    Generate replacement markdown for the selected blocks.

    Args:
        adapter: Model adapter used for the call
        instruction: What the user wants done to the selection
        target_block_ids: Ids of the selected blocks, returned unchanged
        full_document_markdown: Whole document, passed as context
        model_id: Model to use
        selected_markdown: Markdown of the selection, when the editor supplies it

    Returns:
        Modification patch. On generation failure the markdown carries an
        error marker instead of raising.

    Raises:
        ProtocolValidationError: If target_block_ids is empty
    """
    if not target_block_ids:
        raise ProtocolValidationError("Scoped modification requires at least one target block id")

    prompt = build_modification_prompt(instruction, full_document_markdown, selected_markdown)

    try:
        reply = await adapter.send(
            [],
            Turn(role="user", text=prompt),
            model_id,
            system_instruction=SYSTEM_PROMPT,
            temperature=MODIFICATION_TEMPERATURE,
        )
        new_markdown = strip_outer_fence(reply.text)
        if not new_markdown:
            raise ValueError("model returned empty markdown")
    except Exception as e:
        logger.error(f"Scoped modification failed for {len(target_block_ids)} blocks: {e}", extra={"model_id": model_id})
        return Modification(
            target_block_ids=list(target_block_ids),
            new_markdown=f"{MODIFICATION_ERROR_PREFIX} {e}]",
        )

    logger.info(
        f"Generated modification for {len(target_block_ids)} blocks ({len(new_markdown)} chars)",
        extra={"model_id": model_id},
    )
    return Modification(target_block_ids=list(target_block_ids), new_markdown=new_markdown)
