import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from lead_scout.config import GOOGLE_MAPS, YELLOW_PAGES
from lead_scout.enrichment import DetailEnricher, EmailResolver, resolve_detail_url, run_bounded

from fixtures import MAPS_DETAIL_HTML, WEBSITE_HTML, YP_DETAIL_HTML


def _page(html="", goto=None):
    page = MagicMock()
    page.goto = goto or AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.close = AsyncMock()
    page.is_closed = MagicMock(return_value=False)
    return page


def _session(*pages):
    session = MagicMock()
    session.new_page = AsyncMock(side_effect=list(pages))
    return session


class TestRunBounded:

    @pytest.mark.asyncio
    async def test_never_exceeds_pool_size(self):
        state = {"active": 0, "peak": 0}

        async def worker(item):
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return item * 2

        results = await run_bounded(list(range(7)), worker, concurrency=2)
        assert results == [0, 2, 4, 6, 8, 10, 12]
        assert state["peak"] == 2

    @pytest.mark.asyncio
    async def test_failures_are_returned_not_raised(self):
        async def worker(item):
            if item == 1:
                raise ValueError("bad item")
            return item

        results = await run_bounded([0, 1, 2], worker, concurrency=3)
        assert results[0] == 0 and results[2] == 2
        assert isinstance(results[1], ValueError)


def test_resolve_detail_url():
    assert resolve_detail_url("/maps/place/x", "https://www.google.com") == "https://www.google.com/maps/place/x"
    assert resolve_detail_url("https://a.com/b", "https://www.google.com") == "https://a.com/b"
    assert resolve_detail_url("", "https://www.google.com") == ""


class TestDetailEnricher:

    @pytest.mark.asyncio
    async def test_fills_only_empty_fields(self, config, make_record):
        page = _page(MAPS_DETAIL_HTML)
        record = make_record(phone="555-1111", detail_url="/maps/place/Joes+Cafe")
        await DetailEnricher(config, _session(page)).enrich(record)
        assert record.phone == "555-1111"
        assert record.website == "https://joescafe.com"
        assert record.address == "12 Main St, Austin, TX"
        assert record.description.startswith("Cozy neighborhood cafe")
        assert record.detail_url == "https://www.google.com/maps/place/Joes+Cafe"
        assert record.details_needed is False
        page.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_retries_navigation_once(self, config, make_record):
        goto = AsyncMock(side_effect=[RuntimeError("Timeout 45000ms exceeded"), None])
        page = _page(MAPS_DETAIL_HTML, goto=goto)
        record = make_record(detail_url="https://www.google.com/maps/place/x")
        await DetailEnricher(config, _session(page)).enrich(record)
        assert goto.await_count == 2
        assert record.website == "https://joescafe.com"

    @pytest.mark.asyncio
    async def test_gives_up_after_two_attempts(self, config, make_record):
        goto = AsyncMock(side_effect=RuntimeError("net::ERR_CONNECTION_RESET"))
        page = _page(goto=goto)
        record = make_record(address="kept", detail_url="https://www.google.com/maps/place/x")
        await DetailEnricher(config, _session(page)).enrich(record)
        assert goto.await_count == 2
        assert record.address == "kept"
        assert record.details_needed is True
        page.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_records_without_detail_url_pass_through(self, config, make_record):
        session = _session()
        record = make_record()
        assert await DetailEnricher(config, session).enrich(record) is record
        session.new_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_yellow_pages_detail_adds_email(self, config, make_record):
        page = _page(YP_DETAIL_HTML)
        record = make_record("Bob's Plumbing", source=YELLOW_PAGES, detail_url="/austin-tx/mip/bobs-plumbing-123")
        await DetailEnricher(config, _session(page)).enrich(record)
        assert record.email == "office@bobsplumbing.com"
        assert record.detail_url == "https://www.yellowpages.com/austin-tx/mip/bobs-plumbing-123"

    @pytest.mark.asyncio
    async def test_enrich_all_skips_complete_records(self, config, make_record):
        pages = [_page(MAPS_DETAIL_HTML), _page(MAPS_DETAIL_HTML)]
        session = _session(*pages)
        done = make_record("Done Co", detail_url="https://x", details_needed=False)
        todo = [make_record(f"Shop {i}", source=GOOGLE_MAPS, detail_url="https://x") for i in range(2)]
        await DetailEnricher(config, session).enrich_all([done] + todo)
        assert session.new_page.await_count == 2
        assert all(not r.details_needed for r in todo)


class TestEmailResolver:

    @pytest.mark.asyncio
    async def test_takes_first_acceptable_address(self, config, make_record):
        record = make_record(website="https://joescafe.com")
        await EmailResolver(config, _session(_page(WEBSITE_HTML))).resolve(record)
        assert record.email == "hello@joescafe.com"

    @pytest.mark.asyncio
    async def test_existing_email_is_kept(self, config, make_record):
        session = _session()
        record = make_record(website="https://joescafe.com", email="owner@joescafe.com")
        await EmailResolver(config, session).resolve_all([record])
        session.new_page.assert_not_awaited()
        assert record.email == "owner@joescafe.com"

    @pytest.mark.asyncio
    async def test_failed_site_leaves_record_unchanged(self, config, make_record):
        page = _page(goto=AsyncMock(side_effect=RuntimeError("net::ERR_NAME_NOT_RESOLVED")))
        record = make_record(website="https://gone.example")
        await EmailResolver(config, _session(page)).resolve(record)
        assert record.email == ""
        page.close.assert_awaited()
