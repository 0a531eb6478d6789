import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from listaescolar.core.config import settings
from listaescolar.db import crud
from listaescolar.schemas.schemas import CepSuggestion
from listaescolar.services.text import format_cep, normalize_cep

logger = logging.getLogger(__name__)

MIN_PREFIX_LENGTH = 2
MAX_RESULTS_LIMIT = 20


async def get_cep_suggestions(
    db: AsyncSession, prefix: Optional[str], max_results: Optional[int] = None
) -> List[CepSuggestion]:
    clean = normalize_cep(prefix)
    if len(clean) < MIN_PREFIX_LENGTH:
        return []

    limit = max_results or settings.CEP_SUGGESTIONS_MAX_RESULTS
    limit = max(1, min(limit, MAX_RESULTS_LIMIT))

    rows = await crud.get_cep_suggestions(db, clean, limit)
    return [CepSuggestion(formatted_cep=format_cep(row["cep"]), **row) for row in rows]


Fetcher = Callable[[str, int], Awaitable[List[CepSuggestion]]]


class CepAutocomplete:
    """
    Input/keyboard state for the CEP autocomplete box.

    Typing schedules a debounced fetch of the normalized prefix; each new
    keystroke cancels the pending one, so only the value that stays put for
    the whole window is fetched. A prefix is fetched at most once.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        max_results: Optional[int] = None,
        debounce_ms: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.max_results = max_results or settings.CEP_SUGGESTIONS_MAX_RESULTS
        self.debounce = (debounce_ms if debounce_ms is not None else settings.CEP_SUGGESTIONS_DEBOUNCE_MS) / 1000
        self.value = ""
        self.suggestions: List[CepSuggestion] = []
        self.highlighted = -1
        self.is_open = False
        self.selected: Optional[str] = None
        self.error: Optional[Exception] = None
        self._cache: dict[str, List[CepSuggestion]] = {}
        self._pending: Optional[asyncio.Task] = None

    def on_input(self, value: str) -> None:
        self.value = value
        self.is_open = len(value) >= MIN_PREFIX_LENGTH
        if self._pending and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self._debounced_fetch(value))

    async def settle(self) -> None:
        """Wait for the pending debounced fetch, if any."""
        if self._pending:
            try:
                await self._pending
            except asyncio.CancelledError:
                pass

    async def _debounced_fetch(self, value: str) -> None:
        await asyncio.sleep(self.debounce)
        prefix = normalize_cep(value)
        if len(prefix) < MIN_PREFIX_LENGTH:
            self._set_suggestions([])
            return
        if prefix not in self._cache:
            try:
                self._cache[prefix] = await self.fetcher(prefix, self.max_results)
            except Exception as exc:
                logger.exception("Error fetching CEP suggestions for %s", prefix)
                self.error = exc
                self._set_suggestions([])
                return
        self.error = None
        self._set_suggestions(self._cache[prefix])

    def _set_suggestions(self, suggestions: List[CepSuggestion]) -> None:
        self.suggestions = suggestions
        self.highlighted = -1

    def on_key(self, key: str) -> Optional[str]:
        """Apply a key press; returns the committed CEP on Enter, else None."""
        if not self.is_open or not self.suggestions:
            if key == "ArrowDown" and len(self.value) >= MIN_PREFIX_LENGTH:
                self.is_open = True
            return None

        if key == "ArrowDown":
            self.highlighted = min(self.highlighted + 1, len(self.suggestions) - 1)
        elif key == "ArrowUp":
            self.highlighted = self.highlighted - 1 if self.highlighted > 0 else -1
        elif key == "Enter":
            if 0 <= self.highlighted < len(self.suggestions):
                return self.select(self.suggestions[self.highlighted].cep)
        elif key == "Escape":
            self.close()
        return None

    def select(self, cep: str) -> str:
        self.selected = cep
        self.value = format_cep(cep)
        self.close()
        return cep

    def close(self) -> None:
        self.is_open = False
        self.highlighted = -1

    def on_click_outside(self) -> None:
        self.is_open = False
