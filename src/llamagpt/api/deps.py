"""API dependency wiring."""

from functools import lru_cache

from ..config import get_settings
from ..service import ConversationService, create_conversation_service


@lru_cache(maxsize=1)
def get_conversation_service() -> ConversationService:
    """
    Create the conversation service (cached singleton).

    One service per process means one ResponseCache shared by every chat.
    Service factory handles all construction logic - deps.py is just thin DI glue.
    """
    return create_conversation_service(get_settings())


async def close_conversation_service() -> None:
    """Close the cached service, if one was built, and forget it."""
    if get_conversation_service.cache_info().currsize:
        await get_conversation_service().aclose()
        get_conversation_service.cache_clear()
