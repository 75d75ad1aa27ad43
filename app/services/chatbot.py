import logging
import random
from typing import Iterable, Optional

from app.core.context_builder import MedicalContext
from app.core.conversation import StoredTurn, is_alternating, normalize_history
from app.core.fallback import classify_failure
from app.core.greeting import generate_greeting_response, is_greeting
from app.core.outcome import PipelineOutcome, UpstreamError
from app.core.prompt_builder import build_system_prompt
from app.services.llm import CompletionClient
from app.services.resources import ResourceStore, find_relevant_resources

logger = logging.getLogger("uvicorn.error")


class ChatbotService:
    """Turns one chat message plus stored history into a reply that is always present.

    Greetings are answered locally. Everything else goes through resource matching,
    prompt assembly and history normalization before a single completion attempt.
    Failures of any kind come back as a softened ``PipelineOutcome`` with
    ``diagnostics["error"]`` set; nothing is raised to the caller.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        resource_store: ResourceStore,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.completion_client = completion_client
        self.resource_store = resource_store
        self.rng = rng

    def generate_response(
        self,
        message: str,
        history: Iterable[StoredTurn],
        medical_context: Optional[MedicalContext] = None,
    ) -> PipelineOutcome:
        try:
            if is_greeting(message):
                logger.info("chat_greeting_shortcircuit words=%s", len(message.split()))
                return generate_greeting_response(message, medical_context, rng=self.rng)

            resources = find_relevant_resources(message, self.resource_store)
            system_prompt = build_system_prompt(medical_context, resources)
            turns = normalize_history(history, message)
            logger.debug(
                "chat_completion_sequence roles=%s message_count=%s alternating=%s resource_count=%s",
                ["system", *(turn.role.value for turn in turns)],
                len(turns) + 1,
                is_alternating(turns),
                len(resources),
            )
            result = self.completion_client.complete(system_prompt, turns)
        except Exception as exc:
            logger.exception("chat_pipeline_error detail=%s", str(exc))
            return classify_failure(exc)

        if isinstance(result, UpstreamError):
            logger.error(
                "chat_completion_failed kind=%s status=%s detail=%s",
                result.kind.value,
                result.status_code,
                result.message,
            )
            return classify_failure(result)

        logger.info(
            "chat_completion_ok model=%s tokens=%s citation_count=%s",
            result.model,
            result.token_usage.as_dict(),
            len(result.citations),
        )
        return PipelineOutcome(
            message_text=result.message_text,
            sources=[*resources, *result.citations],
            diagnostics={
                "model": result.model,
                "tokens": result.token_usage.as_dict(),
                "has_citations": bool(result.citations),
            },
        )
