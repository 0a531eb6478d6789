"""Tests for CEP prefix suggestions and the autocomplete input state."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from listaescolar.models import CepSearchEvent, School
from listaescolar.schemas.schemas import CepSuggestion
from listaescolar.services.cep_suggestions import CepAutocomplete


@pytest.fixture()
async def ceps(seeded):
    seeded.add_all([
        School(id="sc2", name="Colégio Paulista", slug="colegio-paulista", cep="01310100",
               city="São Paulo", state="SP"),
        School(id="sc3", name="Escola Consolação", slug="escola-consolacao", cep="01311000",
               city="São Paulo", state="SP"),
        School(id="sc4", name="Escola Fechada", slug="escola-fechada", cep="01319000",
               city="São Paulo", state="SP", is_active=False),
        School(id="sc5", name="Escola do Rio", slug="escola-rio", cep="20040020",
               city="Rio de Janeiro", state="RJ"),
        CepSearchEvent(cep="01311000", city="São Paulo", state="SP"),
        *[CepSearchEvent(cep="01310200", city="São Paulo", state="SP") for _ in range(3)],
    ])
    await seeded.commit()
    return seeded


class TestSuggestionsEndpoint:
    async def test_ranked_by_schools_then_searches(self, client, ceps):
        resp = await client.get("/api/v1/ceps/suggestions", params={"prefix": "0131"})

        assert resp.status_code == 200
        body = resp.json()
        assert [s["cep"] for s in body] == ["01310100", "01311000", "01310200"]
        assert body[0] == {
            "cep": "01310100",
            "formatted_cep": "01310-100",
            "city": "São Paulo",
            "state": "SP",
            "school_count": 2,
            "search_count": 0,
        }
        assert (body[1]["school_count"], body[1]["search_count"]) == (1, 1)
        assert (body[2]["school_count"], body[2]["search_count"]) == (0, 3)

    async def test_inactive_schools_ignored(self, client, ceps):
        resp = await client.get("/api/v1/ceps/suggestions", params={"prefix": "01319"})
        assert resp.json() == []

    async def test_max_results(self, client, ceps):
        resp = await client.get("/api/v1/ceps/suggestions", params={"prefix": "01", "max_results": 2})
        assert len(resp.json()) == 2

    async def test_prefix_is_normalized(self, client, ceps):
        resp = await client.get("/api/v1/ceps/suggestions", params={"prefix": "20.04"})
        assert [s["cep"] for s in resp.json()] == ["20040020"]

    @pytest.mark.parametrize("prefix", ["", "0", "a-"])
    async def test_short_prefix_is_empty(self, client, ceps, prefix):
        resp = await client.get("/api/v1/ceps/suggestions", params={"prefix": prefix})
        assert resp.status_code == 200
        assert resp.json() == []


def _suggestion(cep: str) -> CepSuggestion:
    return CepSuggestion(cep=cep, formatted_cep=f"{cep[:5]}-{cep[5:]}", city="São Paulo",
                         state="SP", school_count=1, search_count=0)


SUGGESTIONS = [_suggestion("01310100"), _suggestion("01311000")]


class TestCepAutocomplete:
    async def test_debounce_fetches_last_value_once(self):
        fetcher = AsyncMock(return_value=SUGGESTIONS)
        box = CepAutocomplete(fetcher, debounce_ms=10)

        for value in ("01", "013", "0131"):
            box.on_input(value)
        await box.settle()

        fetcher.assert_awaited_once_with("0131", 5)
        assert box.suggestions == SUGGESTIONS
        assert box.is_open
        assert box.highlighted == -1

    async def test_short_input_does_not_fetch(self):
        fetcher = AsyncMock(return_value=SUGGESTIONS)
        box = CepAutocomplete(fetcher, debounce_ms=0)

        box.on_input("0")
        await box.settle()

        fetcher.assert_not_awaited()
        assert box.suggestions == []
        assert not box.is_open

    async def test_prefix_fetched_once(self):
        fetcher = AsyncMock(return_value=SUGGESTIONS)
        box = CepAutocomplete(fetcher, max_results=3, debounce_ms=0)

        for value in ("0131", "01310", "0131-"):
            box.on_input(value)
            await box.settle()

        assert [c.args for c in fetcher.await_args_list] == [("0131", 3), ("01310", 3)]

    async def test_fetch_error_clears_suggestions(self):
        fetcher = AsyncMock(side_effect=RuntimeError("offline"))
        box = CepAutocomplete(fetcher, debounce_ms=0)

        box.on_input("0131")
        await box.settle()

        assert box.suggestions == []
        assert isinstance(box.error, RuntimeError)

    async def test_keyboard_navigation_clamps(self):
        box = CepAutocomplete(AsyncMock(return_value=SUGGESTIONS), debounce_ms=0)
        box.on_input("0131")
        await box.settle()

        moves = []
        for key in ("ArrowDown", "ArrowDown", "ArrowDown", "ArrowUp", "ArrowUp", "ArrowUp"):
            box.on_key(key)
            moves.append(box.highlighted)

        assert moves == [0, 1, 1, 0, -1, -1]

    async def test_enter_selects_highlighted(self):
        box = CepAutocomplete(AsyncMock(return_value=SUGGESTIONS), debounce_ms=0)
        box.on_input("0131")
        await box.settle()

        assert box.on_key("Enter") is None
        box.on_key("ArrowDown")
        box.on_key("ArrowDown")

        assert box.on_key("Enter") == "01311000"
        assert box.selected == "01311000"
        assert box.value == "01311-000"
        assert not box.is_open
        assert box.highlighted == -1

    async def test_escape_and_reopen(self):
        box = CepAutocomplete(AsyncMock(return_value=SUGGESTIONS), debounce_ms=0)
        box.on_input("0131")
        await box.settle()
        box.on_key("ArrowDown")

        box.on_key("Escape")
        assert not box.is_open
        assert box.highlighted == -1

        box.on_key("ArrowDown")
        assert box.is_open
        assert box.highlighted == -1

    async def test_click_outside_closes(self):
        box = CepAutocomplete(AsyncMock(return_value=SUGGESTIONS), debounce_ms=0)
        box.on_input("0131")
        await box.settle()

        box.on_click_outside()
        assert not box.is_open
        assert box.suggestions == SUGGESTIONS
