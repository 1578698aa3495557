"""Prompt assembly for outline and chat completions.

Builds the ordered message list sent to the model: one combined system
message, optional title and outline context, the recent conversation, and
the user's prompt. Caller-supplied instruction blocks replace the defaults
below rather than extending them.
"""

from config.settings import CHAT_CONTEXT_LIMIT

DEFAULT_SYSTEM_INSTRUCTIONS = """You are a friendly, engaging screenwriter who loves brainstorming ideas and having creative discussions. You keep two distinct interaction styles depending on context.

CHAT INTERACTIONS:
When replying in the chat, be conversational and engaging:
- Use a warm, friendly tone and share genuine reactions
- Ask questions, explore ideas and offer alternatives
- Reference movies, books, or other works where they help
- Be encouraging and supportive

DOCUMENT CONTENT:
When writing the outline, be structured and precise:
- No academic numbering (I., A., B., ...)
- No abstract terms or meta-commentary
- No scenes that have not been discussed
- No incomplete or vague descriptions

Document content follows this format:
LOCATION - SPECIFIC TIME
- Concrete, vivid detail
- Specific character action
- Precise sensory information
- Exact dialogue or sound

Never mix the two styles: the chat is for discussion and feedback, the document is for final, structured content."""

DEFAULT_STYLE_INSTRUCTIONS = """No explicit style preferences have been set yet. Infer tone and voice from the conversation, and when it is unclear, ask the writer about:
- The tone they are drawn to (formal, casual, technical, lyrical)
- What makes writing exciting for them (metaphor, humor, twists)
- Writers or works that inspire them
- The audience they want to reach and the feelings they want to evoke"""

DEFAULT_TECHNICAL_INSTRUCTIONS = """Technical Integration Instructions:
- Always provide title suggestions on their own line with a "Title:" prefix
- Do not wrap titles in quotes
- Structure outlines with clear hierarchical bullet points
- Keep outline formatting consistent between revisions
- Preserve the existing outline structure when updating it"""

TITLE_REQUIREMENTS = """When suggesting a title:
1. Make it iconic and memorable (1-3 words unless it is a known phrase)
2. Use cultural references when relevant (songs, bands, movies)
3. Consider idioms and metaphors that fit the theme
4. Avoid literal descriptions
5. Be willing to iterate and refine based on feedback"""

DOCUMENT_REQUEST_SUFFIX = (
    "Write the result as the complete, updated outline in the structured "
    "document format. Also suggest an iconic, memorable title (1-3 words or "
    "a relevant idiom) that captures the essence of this document, on its "
    'own line starting with "Title:".'
)

INSTRUCTION_BLOCKS = ("system", "style", "technical")

DEFAULT_INSTRUCTIONS = {
    "system": DEFAULT_SYSTEM_INSTRUCTIONS,
    "style": DEFAULT_STYLE_INSTRUCTIONS,
    "technical": DEFAULT_TECHNICAL_INSTRUCTIONS,
}


def _pick(override: str | None, default: str) -> str:
    """Use the override when it has content, else the default block."""
    if override and override.strip():
        return override.strip()
    return default


def build_system_message(
    system_instructions: str | None = None,
    style_instructions: str | None = None,
    technical_instructions: str | None = None,
    custom_instructions: str | None = None,
    is_document_request: bool = False,
) -> str:
    """Combine behavioural, style, project and technical instruction blocks."""
    sections = [
        _pick(system_instructions, DEFAULT_SYSTEM_INSTRUCTIONS),
        "Writing Style Preferences:\n"
        + _pick(style_instructions, DEFAULT_STYLE_INSTRUCTIONS),
    ]
    if custom_instructions and custom_instructions.strip():
        sections.append("Project-Specific Instructions:\n" + custom_instructions.strip())
    sections.append(
        "Technical Requirements:\n"
        + _pick(technical_instructions, DEFAULT_TECHNICAL_INSTRUCTIONS)
    )
    sections.append("Title Requirements:\n" + TITLE_REQUIREMENTS)
    if is_document_request:
        sections.append("IMPORTANT: This is a document request - use structured document format.")
    else:
        sections.append("IMPORTANT: This is a chat interaction - be conversational and engaging.")
    return "\n\n".join(sections)


def recent_turns(chat_history: list[dict] | None, limit: int = CHAT_CONTEXT_LIMIT) -> list[dict]:
    """Return the most recent `limit` turns, oldest first."""
    if not chat_history or limit <= 0:
        return []
    return [
        {"role": turn["role"], "content": turn["content"]}
        for turn in chat_history[-limit:]
    ]


def build_user_message(prompt: str, is_document_request: bool) -> str:
    """Return the final user message, with the structuring suffix if needed."""
    prompt = prompt.strip()
    if not is_document_request:
        return prompt
    return f"{prompt}\n\n{DOCUMENT_REQUEST_SUFFIX}"


def build_messages(
    prompt: str,
    current_outline: str | None = None,
    current_title: str | None = None,
    chat_history: list[dict] | None = None,
    system_instructions: str | None = None,
    style_instructions: str | None = None,
    technical_instructions: str | None = None,
    custom_instructions: str | None = None,
    is_document_request: bool = False,
    context_limit: int = CHAT_CONTEXT_LIMIT,
) -> list[dict]:
    """Assemble the full message list for a completion call.

    Args:
        prompt: The user's request for this turn.
        current_outline: Outline text the model should build on.
        current_title: Working title of the document.
        chat_history: Earlier turns as role/content dicts, oldest first.
        system_instructions: Replaces the default behavioural block.
        style_instructions: Replaces the default style block.
        technical_instructions: Replaces the default technical block.
        custom_instructions: Project-specific block (no default).
        is_document_request: Ask for structured outline output.
        context_limit: How many recent chat turns to forward.

    Returns:
        List of {'role', 'content'} dicts in send order.
    """
    messages = [
        {
            "role": "system",
            "content": build_system_message(
                system_instructions=system_instructions,
                style_instructions=style_instructions,
                technical_instructions=technical_instructions,
                custom_instructions=custom_instructions,
                is_document_request=is_document_request,
            ),
        }
    ]
    if current_title and current_title.strip():
        messages.append({
            "role": "system",
            "content": f'The current document title is "{current_title.strip()}".',
        })
    if current_outline and current_outline.strip():
        messages.append({
            "role": "system",
            "content": f"The current outline is:\n\n{current_outline}",
        })
    messages.extend(recent_turns(chat_history, context_limit))
    messages.append({"role": "user", "content": build_user_message(prompt, is_document_request)})
    return messages
