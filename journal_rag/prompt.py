"""
Prompt assembly for journal_rag.

Turns an AssembledContext into the single prompt string sent to the
generation backend: system instruction, labelled context sections in tier
order, then the user's question verbatim.
"""

from journal_rag.models import AssembledContext

SYSTEM_INSTRUCTION = (
    "You are a close friend who knows this person well. "
    "Respond naturally and directly, like you would in any normal conversation. "
    "Be warm, authentic, and helpful."
)

SECTION_LABELS = {
    "profile": "Important context you should know:",
    "history": "--- Our Recent Conversation ---",
    "custom": "Specific entries you wanted me to consider:",
    "retrieved": "Related things you've written about:",
}

CONTEXT_OPEN = "--- Background Context ---"
CONTEXT_CLOSE = "--- End Context ---"


class PromptAssembler:
    """Builds the final prompt from budgeted context."""

    def __init__(self, system_instruction: str = SYSTEM_INSTRUCTION):
        self.system_instruction = system_instruction

    def assemble(self, query: str, context: AssembledContext) -> str:
        """
        Build the prompt.

        Args:
            query: The user's question, placed last and unmodified
            context: Tier texts produced by the budget allocator

        Returns:
            Prompt string; empty tiers contribute nothing
        """
        sections = [
            f"{SECTION_LABELS[name]}\n{text}"
            for name, text in context.sections()
            if text and text.strip()
        ]

        parts = [self.system_instruction]
        if sections:
            parts.append("\n\n".join([CONTEXT_OPEN] + sections + [CONTEXT_CLOSE]))
        parts.append(query)
        return "\n\n".join(parts)
