from __future__ import annotations

import logging
from typing import List, Sequence

from fastapi.concurrency import run_in_threadpool

from libs.core.exceptions import GeneratorUnavailableError, ValidationError
from libs.core.models import ChatMessage, Resource, RetrievalResult
from libs.core.users import BasicUser
from libs.db import ResourceRepo, resource_from_row
from libs.llm import LLMClient
from libs.rag import rank_resources

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Assistant unavailable. Please try again later."


class ChatReply(RetrievalResult):
    reply: str


def annotate_with_notes(
    llm: LLMClient, query: str, shortlist: Sequence[Resource]
) -> List[Resource]:
    """Attach a per-turn usage note to copies of the shortlisted resources.

    A failing generator leaves the shortlist unannotated.
    """
    if not shortlist:
        return []
    try:
        notes = llm.write_resource_notes(query, shortlist)
    except Exception:
        logger.exception("Failed to build resource notes")
        return list(shortlist)
    return [
        resource.model_copy(update={"insight": notes[idx] if idx < len(notes) else ""})
        for idx, resource in enumerate(shortlist)
    ]


class Chat:
    """Answer a message from the owner's library and annotate what was used.

    Only the latest message drives retrieval; ``history`` is forwarded to
    the generator untouched.
    """

    def __init__(self, llm: LLMClient, repo: ResourceRepo, library_limit: int = 200) -> None:
        self.llm = llm
        self.repo = repo
        self.library_limit = library_limit

    # ------------------------------------------------------------------
    async def __call__(
        self,
        owner: BasicUser,
        message: str,
        history: Sequence[ChatMessage] = (),
    ) -> ChatReply:
        if not message or not message.strip():
            raise ValidationError("Message is required.")
        if not self.llm.is_configured():
            raise GeneratorUnavailableError(
                "REPLICATE_API_TOKEN missing. Add it to your environment variables."
            )

        rows = await self.repo.list_recent(owner.username, self.library_limit)
        library = [resource_from_row(r) for r in rows]
        shortlist = rank_resources(message, library)
        logger.info(
            "chat_retrieval",
            extra={"library_size": len(library), "shortlist_size": len(shortlist)},
        )

        # generator calls block; keep them off the event loop
        reply = await run_in_threadpool(
            self.llm.answer_with_resources, message, history, shortlist
        )
        annotated = await run_in_threadpool(annotate_with_notes, self.llm, message, shortlist)
        return ChatReply(
            reply=reply,
            shortlist=annotated,
            ranking_empty=not shortlist,
        )


__all__ = ["Chat", "ChatReply", "annotate_with_notes", "FALLBACK_REPLY"]
