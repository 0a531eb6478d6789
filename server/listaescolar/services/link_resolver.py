import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.errors import InvalidState, NotFound
from listaescolar.db import crud
from listaescolar.schemas.schemas import ResolvedLink
from listaescolar.services.text import build_store_url, normalize_search_query

logger = logging.getLogger(__name__)


def item_store_url(item, store) -> str:
    """Purchase URL for an item at a store; explicit search_query wins over name."""
    raw_query = item.search_query or item.name
    return build_store_url(
        store.search_template,
        store.base_url,
        normalize_search_query(raw_query),
        store.affiliate_tag,
    )


async def resolve_link(
    db: AsyncSession,
    item_id: str,
    store_id: str,
    *,
    school_id: Optional[str] = None,
    list_id: Optional[str] = None,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
) -> ResolvedLink:
    """
    Resolve one (item, store) pair to an outbound purchase URL and log the click.
    The click is best-effort: a failed insert still returns the URL.
    """
    item = await crud.get_item(db, item_id)
    if item is None:
        logger.warning("[resolve-link] Item not found: %s", item_id)
        raise NotFound("Item not found")

    store = await crud.get_store(db, store_id)
    if store is None:
        logger.warning("[resolve-link] Store not found: %s", store_id)
        raise NotFound("Store not found")
    if not store.is_active:
        logger.warning("[resolve-link] Store is inactive: %s", store_id)
        raise InvalidState("Store is not available")

    # built before the click insert: a failed insert rolls back and expires item and store
    resolved = ResolvedLink(url=item_store_url(item, store), store_name=store.name, item_name=item.name)
    logger.info("[resolve-link] %s @ %s -> %s", resolved.item_name, resolved.store_name, resolved.url)

    tracked = await crud.record_click_event(
        db,
        item_id=item_id,
        store_id=store_id,
        school_id=school_id,
        list_id=list_id,
        session_id=session_id,
        user_agent=user_agent,
        referrer=referrer,
    )
    if not tracked:
        logger.warning("[resolve-link] Click not tracked for item=%s store=%s", item_id, store_id)

    return resolved
