"""Per-store virtual carts for a material list."""
import asyncio
import enum
import logging
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.config import settings
from listaescolar.core.errors import NotFound
from listaescolar.db import crud
from listaescolar.schemas.schemas import StoreCart, StoreCartItem, StoreCartsOut, StoreRecommendation
from listaescolar.services.link_resolver import item_store_url

logger = logging.getLogger(__name__)


class CartStrategy(str, enum.Enum):
    # each item opens as its own store search
    SEARCH = "SEARCH"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CartStrategy":
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.SEARCH


def build_cart(store, items) -> StoreCart:
    total = Decimal("0")
    with_price = 0
    without_price = 0
    cart_items: List[StoreCartItem] = []

    for item in items:
        quantity = item.quantity or 1
        price = item.price_estimate
        # zero is treated as "no estimate", same as missing
        if price:
            total += Decimal(str(price)) * quantity
            with_price += 1
        else:
            without_price += 1

        cart_items.append(StoreCartItem(
            item_id=item.id,
            name=item.name,
            quantity=quantity,
            unit=item.unit,
            price_estimate=crud.to_float(price),
            url=item_store_url(item, store),
        ))

    return StoreCart(
        store_id=store.id,
        store_name=store.name,
        logo_url=store.logo_url,
        cart_strategy=CartStrategy.parse(store.cart_strategy).value,
        items=cart_items,
        total_estimate=float(total) if with_price else None,
        items_with_price=with_price,
        items_without_price=without_price,
    )


async def build_store_carts(
    db: AsyncSession,
    list_id: str,
    *,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
) -> StoreCartsOut:
    material_list = await crud.get_list(db, list_id)
    if material_list is None:
        logger.warning("[store-carts] List not found: %s", list_id)
        raise NotFound("List not found")
    school_id = material_list.school_id

    items = await crud.get_list_items(db, list_id)
    if not items:
        return StoreCartsOut(store_carts=[], message="No items in this list")

    stores = await crud.get_active_stores(db)
    if not stores:
        return StoreCartsOut(store_carts=[], message="No partner stores available")

    carts = [build_cart(store, items) for store in stores]

    if session_id:
        await crud.record_click_event(
            db,
            school_id=school_id,
            list_id=list_id,
            session_id=session_id,
            user_agent=user_agent,
            referrer=referrer,
        )

    logger.info("[store-carts] Generated %d store carts with %d items each", len(carts), len(items))
    return StoreCartsOut(
        store_carts=carts,
        total_items=len(items),
        school_id=school_id,
    )


async def recommend_store(
    db: AsyncSession, list_id: str, school_id: Optional[str] = None
) -> Optional[StoreRecommendation]:
    """Pick the store shoppers of this list used most; cart opens weigh double."""
    best = None
    for row in await crud.get_store_click_counts(db, list_id, school_id):
        cart_clicks = int(row["cart_clicks"] or 0)
        item_clicks = int(row["item_clicks"] or 0)
        score = 2 * cart_clicks + item_clicks
        if best is None or score > best.score:
            best = StoreRecommendation(
                store_id=row["store_id"],
                store_name=row["store_name"],
                score=score,
                reason=f"{cart_clicks} cart opens and {item_clicks} item clicks for this list",
                cart_clicks=cart_clicks,
                item_clicks=item_clicks,
            )
    if best is None or best.score == 0:
        return None
    return best


Opener = Callable[[str], Union[None, Awaitable[None]]]


async def open_store_cart(cart: StoreCart, opener: Opener, stagger_ms: Optional[int] = None) -> int:
    """
    Open every item of a SEARCH cart through ``opener``.

    The first URL opens immediately and each following one after a fixed
    delay, one at a time, so popup blockers see a paced sequence. Returns the
    number of URLs opened.
    """
    if CartStrategy.parse(cart.cart_strategy) is not CartStrategy.SEARCH:
        return 0

    delay = (settings.CART_OPEN_STAGGER_MS if stagger_ms is None else stagger_ms) / 1000
    opened = 0
    for index, item in enumerate(cart.items):
        if index:
            await asyncio.sleep(delay)
        result = opener(item.url)
        if asyncio.iscoroutine(result):
            await result
        opened += 1
    return opened
