"""Token-budget allocation for query context.

Packs four tiers into a single total budget, strictly in priority order:

1. profile       small fixed cap, cut at the last sentence that fits
2. history       small fixed cap, newest whole messages only
3. custom        selected and pinned files, capped at 60% of what remains
4. retrieved     search results, whatever is left

Items are taken whole; the first item that does not fit ends its tier, even
if a later, smaller item would have fitted. A tier's usage is the running sum
of its items' own estimates, without labels or separators.
"""

from __future__ import annotations

import math
import re
from typing import Callable, List, Optional, Sequence, Tuple

from journal_rag.logging_config import get_logger
from journal_rag.models import (
    PROFILE_FILE_ID,
    AssembledContext,
    ConversationMessage,
    JournalFile,
    SimilarityResult,
    TokenBudget,
)

log = get_logger(__name__)

DEFAULT_TOTAL_BUDGET = 30000
PROFILE_CAP = 100
HISTORY_CAP = 300
CUSTOM_SHARE = 0.6
HISTORY_WINDOW = 6
DEFAULT_TOP_K = 10

EMPTY_INDEX_MESSAGE = "No relevant entries found. Import some journal files to enable AI search."
NO_MATCH_MESSAGE = "No relevant entries found for your query."

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+(?=\s|$)")
_EXCESS_BLANK_LINES = re.compile(r"\n\s*\n\s*\n+")

SearchFn = Callable[[str, int], List[SimilarityResult]]


def estimate_tokens(text: str) -> int:
    """Rough token count: 1.3 per word plus 0.1 per character, each rounded up."""
    if not text or not text.strip():
        return 0
    words = len(text.split())
    return math.ceil(words * 1.3) + math.ceil(len(text) * 0.1)


def clean_content(text: str) -> str:
    """Collapse runs of blank lines and trim."""
    if not text or not text.strip():
        return ""
    return _EXCESS_BLANK_LINES.sub("\n\n", text).strip()


def truncate_to_token_budget(text: str, token_budget: int) -> str:
    """Return the longest whole-sentence prefix of text within the budget.

    Text that already fits is returned unchanged. If not even the first
    sentence fits, the result is empty.
    """
    if estimate_tokens(text) <= token_budget:
        return text

    best = ""
    for match in _SENTENCE_BOUNDARY.finditer(text):
        candidate = text[: match.end()].strip()
        if estimate_tokens(candidate) > token_budget:
            break
        best = candidate
    return best


def format_message(message: ConversationMessage) -> str:
    speaker = "User" if message.role == "user" else "Assistant"
    return f"{speaker}: {message.content}"


class ContextBudgetAllocator:
    """Deterministic waterfall that splits one token budget across four tiers."""

    def __init__(
        self,
        profile_cap: int = PROFILE_CAP,
        history_cap: int = HISTORY_CAP,
        custom_share: float = CUSTOM_SHARE,
        history_window: int = HISTORY_WINDOW,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.profile_cap = profile_cap
        self.history_cap = history_cap
        self.custom_share = custom_share
        self.history_window = history_window
        self.top_k = top_k

    def allocate(
        self,
        query: str,
        profile_text: Optional[str],
        history: Sequence[ConversationMessage],
        custom_files: Sequence[JournalFile],
        total_budget: int,
        search: SearchFn,
        index_size: Optional[int] = None,
    ) -> AssembledContext:
        """
        Pack the four tiers for one query.

        Args:
            query: Text handed to `search` for the retrieved tier
            profile_text: The user's profile, already stripped of the template
            history: Conversation so far, oldest first
            custom_files: Selected then pinned files, in packing order
            total_budget: Token budget shared by all tiers
            search: Callable `(query, top_k) -> [SimilarityResult]`
            index_size: Number of stored chunk vectors; 0 skips the search.
                When omitted, an empty result list stands for an empty index

        Returns:
            AssembledContext with the tier texts, caps and tokens used
        """
        total = max(0, int(total_budget))
        budget = TokenBudget(total=total)

        budget.profile = min(self.profile_cap, total)
        profile = self.pack_profile(profile_text or "", budget.profile)
        profile_used = estimate_tokens(profile)

        budget.conversation = min(self.history_cap, total - profile_used)
        history_text, history_used = self.pack_history(history, budget.conversation)

        # The custom cap is fixed before any file is added.
        budget.custom = int((total - profile_used - history_used) * self.custom_share)
        custom, custom_used = self.pack_custom(custom_files, budget.custom)

        budget.retrieved = total - profile_used - history_used - custom_used
        results = [] if index_size == 0 else search(query, self.top_k)
        if index_size == 0 or (index_size is None and not results):
            retrieved, retrieved_used = self._sentinel(EMPTY_INDEX_MESSAGE, budget.retrieved)
        else:
            retrieved, retrieved_used = self.pack_retrieved(results, budget.retrieved)

        log.debug(
            "Budget %d: profile %d/%d, history %d/%d, custom %d/%d, retrieved %d/%d",
            total,
            profile_used, budget.profile,
            history_used, budget.conversation,
            custom_used, budget.custom,
            retrieved_used, budget.retrieved,
        )

        return AssembledContext(
            profile=profile,
            history=history_text,
            custom=custom,
            retrieved=retrieved,
            budget=budget,
            used={
                "profile": profile_used,
                "history": history_used,
                "custom": custom_used,
                "retrieved": retrieved_used,
            },
        )

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------
    def pack_profile(self, profile_text: str, cap: int) -> str:
        return truncate_to_token_budget(clean_content(profile_text), cap)

    def pack_history(self, history: Sequence[ConversationMessage], cap: int) -> Tuple[str, int]:
        if not history or cap <= 0:
            return "", 0

        recent = list(history)[-self.history_window:]
        accepted: List[str] = []
        used = 0
        for message in reversed(recent):
            line = format_message(message)
            cost = estimate_tokens(line)
            if used + cost > cap:
                break
            accepted.insert(0, line)
            used += cost
        return "\n".join(accepted), used

    def pack_custom(self, files: Sequence[JournalFile], cap: int) -> Tuple[str, int]:
        entries: List[str] = []
        used = 0
        for file in files:
            if file.id == PROFILE_FILE_ID:
                continue
            content = clean_content(file.content)
            if not content:
                continue

            cost = estimate_tokens(content)
            if used + cost > cap:
                log.debug("Custom tier full at %s (%d + %d > %d)", file.id, used, cost, cap)
                break
            entries.append(f"{file.name}:\n{content}")
            used += cost
        return "\n\n".join(entries), used

    def pack_retrieved(self, results: Sequence[SimilarityResult], cap: int) -> Tuple[str, int]:
        """Whole file content per result where known, else its best chunk."""
        entries: List[str] = []
        used = 0
        for result in results:
            text = result.content if result.content is not None else result.best_chunk_text
            content = clean_content(text)
            if not content:
                continue

            cost = estimate_tokens(content)
            if used + cost > cap:
                log.debug("Retrieved tier full at %s (%d + %d > %d)", result.file_id, used, cost, cap)
                break
            name = result.file_name or result.file_id
            entries.append(f"**{name}** ({result.journal_date or 'No date'}):\n{content}")
            used += cost

        if not entries:
            return self._sentinel(NO_MATCH_MESSAGE, cap)
        return "\n\n".join(entries), used

    def _sentinel(self, message: str, cap: int) -> Tuple[str, int]:
        cost = estimate_tokens(message)
        if cost > cap:
            return "", 0
        return message, cost
