"""
Roast Generation Service.

Turns a `UserAggregate` into one or more roasts. The service talks to the chat
model through `providers.llm_provider.ChatCompletionProvider` and owns the
retry policy around it:

- No provider configured: answer immediately with a canned fallback roast.
- Up to `max_retries` attempts. A rate-limit failure backs off exponentially
  (1 s, 2 s, ...); any other failure (including an empty completion) waits a
  flat `retry_delay` before the next attempt.
- When every attempt has failed, answer with the canned fallback roast.

`generate_roast` never raises for provider failures; the HTTP layer can
therefore always answer 200 once the GitHub data has been gathered.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import openai

from core.logging_config import get_logger
from core.models import GeneratedRoast, UserAggregate
from core.validation import InputValidator
from providers.llm_provider import ChatCompletionProvider
from services.prompt_builder import SYSTEM_PROMPT, build_prompt

logger = get_logger(__name__)

FALLBACK_ROASTS = {
    "en": (
        "*adjusts mic* Well well well, look who we have here - [username]! *crowd laughs*\n\n"
        "I've seen GitHub profiles that tell a story, and yours tells the story of someone "
        'who clearly thinks "git push --force" is a lifestyle choice! *rimshot*\n\n'
        "Your coding style is so unique, it makes spaghetti code look like fine Italian "
        "cuisine! *crowd gasps* I bet your commit messages are longer than your actual code "
        'changes. "Fixed the thing that was broken because I broke it while fixing the other '
        'thing" - Shakespeare would be proud! *crickets*\n\n'
        "But hey, at least you're consistent! Consistently confusing every developer who "
        "tries to understand your repository structure! *crowd boos*\n\n"
        "Keep coding though, [username]. The world needs people like you to make the rest "
        "of us feel like coding ninjas! *applause* *drops mic*"
    ),
    "es": (
        "*adjusts mic* ¡Damas y caballeros, aquí tenemos a [username]! *crowd laughs*\n\n"
        "He visto perfiles de GitHub que cuentan una historia, ¡y el tuyo cuenta la historia "
        'de alguien que claramente piensa que "git push --force" es un estilo de vida! '
        "*rimshot*\n\n"
        "¡Tu estilo de programación es tan único que hace que el código espagueti parezca "
        "alta cocina italiana! *crowd gasps* ¡Apuesto a que tus mensajes de commit son más "
        "largos que tus cambios de código reales! *crickets*\n\n"
        "¡Pero oye, al menos eres consistente! ¡Consistentemente confundes a cada "
        "desarrollador que trata de entender la estructura de tu repositorio! *crowd boos*\n\n"
        "¡Sigue programando, [username]! ¡El mundo necesita gente como tú para hacernos "
        "sentir como ninjas de la programación al resto! *applause* *drops mic*"
    ),
    "fr": (
        "*adjusts mic* Mesdames et messieurs, voici [username]! *crowd laughs*\n\n"
        "J'ai vu des profils GitHub qui racontent une histoire, et le vôtre raconte "
        "l'histoire de quelqu'un qui pense clairement que \"git push --force\" est un mode "
        "de vie! *rimshot*\n\n"
        "Votre style de codage est si unique qu'il fait passer le code spaghetti pour de la "
        "haute cuisine italienne! *crowd gasps* Je parie que vos messages de commit sont "
        "plus longs que vos changements de code réels! *crickets*\n\n"
        "Mais au moins, vous êtes cohérent! Constamment en train de confondre chaque "
        "développeur qui essaie de comprendre la structure de votre dépôt! *crowd boos*\n\n"
        "Continuez à coder, [username]! Le monde a besoin de gens comme vous pour nous "
        "faire sentir comme des ninjas du code! *applause* *drops mic*"
    ),
}


def is_rate_limit_error(error: BaseException) -> bool:
    """True if `error` means the LLM provider is throttling us"""
    if isinstance(error, openai.RateLimitError):
        return True
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 429:
        return True
    text = str(error).lower()
    return "429" in text or "rate limit" in text


def get_fallback_roast(username: str, language: str = "en") -> GeneratedRoast:
    template = FALLBACK_ROASTS.get(language, FALLBACK_ROASTS["en"])
    return GeneratedRoast(
        roast=template.replace("[username]", username),
        fallback=True,
        model="fallback",
        language=language,
        attempts=1,
    )


class EmptyCompletionError(RuntimeError):
    pass


class RoastService:
    """Retrying roast generator with canned fallbacks"""

    def __init__(
        self,
        llm_provider: Optional[ChatCompletionProvider],
        max_retries: int = 3,
        base_delay: float = 1.0,
        retry_delay: float = 1.0,
        variant_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.llm_provider = llm_provider
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retry_delay = retry_delay
        self.variant_delay = variant_delay
        self._sleep = sleep

    @property
    def available(self) -> bool:
        return self.llm_provider is not None

    @property
    def provider_name(self) -> Optional[str]:
        return self.llm_provider.name if self.llm_provider else None

    async def close(self) -> None:
        if self.llm_provider is not None:
            await self.llm_provider.close()

    def backoff_delay(self, attempt: int, rate_limited: bool) -> float:
        """Delay before the attempt following `attempt` (1-based)"""
        if rate_limited:
            return self.base_delay * (2 ** (attempt - 1))
        return self.retry_delay

    async def generate_roast(
        self, aggregate: UserAggregate, language: str = "en"
    ) -> GeneratedRoast:
        """
        Generate one roast.

        Args:
            aggregate: Data gathered for the user.
            language: Requested language code; unsupported codes become "en".

        Returns:
            A roast; `fallback` is True when no LLM call succeeded.
        """
        language = InputValidator.normalize_language(language)
        username = aggregate.profile.login

        if self.llm_provider is None:
            logger.info(f"No LLM provider configured, using fallback roast for {username}")
            return get_fallback_roast(username, language)

        prompt = build_prompt(aggregate, language)

        for attempt in range(1, self.max_retries + 1):
            try:
                content = await self.llm_provider.complete(SYSTEM_PROMPT, prompt)
                if not content:
                    raise EmptyCompletionError("No roast generated from LLM")

                logger.info(
                    f"Generated roast for {username} on attempt {attempt}",
                    extra={"model": self.llm_provider.model, "language": language},
                )
                return GeneratedRoast(
                    roast=content,
                    fallback=False,
                    model=self.llm_provider.model,
                    language=language,
                    attempts=attempt,
                )
            except Exception as e:
                rate_limited = is_rate_limit_error(e)
                logger.warning(
                    f"LLM error on attempt {attempt}/{self.max_retries}: {e}",
                    extra={"rate_limited": rate_limited, "error_type": type(e).__name__},
                )
                if attempt >= self.max_retries:
                    break
                await self._sleep(self.backoff_delay(attempt, rate_limited))

        logger.error(f"All {self.max_retries} LLM attempts failed for {username}")
        return get_fallback_roast(username, language)

    async def generate_multiple_roasts(
        self, aggregate: UserAggregate, count: int = 1, language: str = "en"
    ) -> List[GeneratedRoast]:
        """Generate up to three roasts one after another"""
        count = InputValidator.clamp_variants(count)
        roasts: List[GeneratedRoast] = []

        for index in range(count):
            try:
                roasts.append(await self.generate_roast(aggregate, language))
            except Exception as e:
                logger.error(f"Failed to generate roast {index + 1}: {e}", exc_info=True)
            if index < count - 1:
                await self._sleep(self.variant_delay)

        return roasts
