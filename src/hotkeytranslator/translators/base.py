"""Translator interface and the failure guard shared by every provider."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

import aiohttp

from hotkeytranslator.cancel import CancelScope, SessionCancelled

logger = logging.getLogger(__name__)

# Performs the provider-specific request and returns the raw text (or None).
ProviderCall = Callable[[], Awaitable["str | None"]]
# Turns the raw provider text into the final translation (or None).
PostProcess = Callable[[str], "str | None"]


class Translator(Protocol):
    """A translation provider.

    Implementations are stateless and may be invoked concurrently. They never
    raise for provider-level problems: any failure, including cancellation,
    is reported as None.
    """

    name: str

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        cancel: CancelScope,
    ) -> str | None:
        ...


def strip_text(text: str) -> str:
    return text.strip()


async def guarded_translate(
    name: str,
    text: str,
    cancel: CancelScope,
    call: ProviderCall,
    post_process: PostProcess = strip_text,
) -> str | None:
    """Run a provider call and turn every failure into None.

    The call is raced against *cancel* so that a superseded session aborts the
    underlying network request right away.
    """
    if not text or not text.strip():
        return None

    try:
        raw = await cancel.run(call())
    except SessionCancelled:
        logger.info("%s translation request canceled.", name)
        return None
    except asyncio.TimeoutError:
        logger.error("%s request timed out.", name)
        return None
    except aiohttp.ClientError as e:
        logger.error("%s HTTP error: %s", name, e)
        return None
    except Exception as e:
        logger.error("%s translation error: %s", name, e)
        return None

    if raw is None:
        return None
    return post_process(raw)
