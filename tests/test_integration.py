"""Integration tests: the in-page scripts running in a real Chromium.

Skipped when no Chromium build is installed (``playwright install chromium``).
"""

import asyncio

import pytest
import pytest_asyncio
from playwright.async_api import async_playwright

from pagelens.browser.inspector import PageInspector
from pagelens.browser.types import ErrorCode, ObserverOptions, SelectionCriterion


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def page():
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=True)
        except Exception as exc:
            pytest.skip(f"Chromium is not available: {exc}")
        context = await browser.new_context(viewport={"width": 1280, "height": 720})
        page = await context.new_page()
        try:
            yield page
        finally:
            await browser.close()


@pytest.fixture
def inspector(page, settings):
    return PageInspector(page, settings)


async def _wait_for(events, count, timeout=2.0):
    """Poll until ``events`` holds ``count`` items or the timeout passes."""
    deadline = asyncio.get_running_loop().time() + timeout
    while len(events) < count and asyncio.get_running_loop().time() < deadline:
        await asyncio.sleep(0.05)


# ── Tests ────────────────────────────────────────────────────────────────────


class TestLiveStructure:
    @pytest.mark.asyncio
    async def test_significant_section_expanded_plain_div_elided(self, page, inspector):
        await page.set_content(
            '<div><p>A</p><section class="x"><p>B</p></section><div><p>C</p></div></div>'
        )

        result = await inspector.get_structure(max_depth=1, selector="body > div")

        assert result.success is True
        assert result.structure == (
            "[\n"
            "    <div>\n"
            "        <p>A</p>\n"
            '        <section class="x">\n'
            "            <p>B</p>\n"
            "        </section>\n"
            "        <div>...</div>\n"
            "    </div>\n"
            "]"
        )

    @pytest.mark.asyncio
    async def test_whole_document_depth_zero(self, page, inspector):
        await page.set_content("<div><p>A</p></div>")
        result = await inspector.get_structure(max_depth=0)
        assert result.structure == "<html>\n    <head></head>\n    <body>...</body>\n</html>"

    @pytest.mark.asyncio
    async def test_deep_document(self, page, inspector):
        await page.set_content("<div>" * 400 + "<p>deep</p>" + "</div>" * 400)
        result = await inspector.get_structure(max_depth=1000, selector="body > div")
        assert result.success is True
        assert "<p>deep</p>" in result.structure

    @pytest.mark.asyncio
    async def test_missing_selector(self, page, inspector):
        await page.set_content("<p>x</p>")
        result = await inspector.get_structure(selector=".missing")
        assert result.success is False
        assert result.code is ErrorCode.ELEMENT_NOT_FOUND


class TestLiveQuery:
    @pytest.mark.asyncio
    async def test_checkbox_snapshot(self, page, inspector):
        await page.set_content('<input type="checkbox" checked disabled>')

        result = await inspector.query_all(
            SelectionCriterion(selector="input[type=checkbox]", visible=True)
        )

        assert result.success is True
        (snapshot,) = result.elements
        assert snapshot.is_visible is True
        assert "checked" in snapshot.attributes
        assert "disabled" in snapshot.attributes
        assert snapshot.position.width > 0

    @pytest.mark.asyncio
    async def test_hidden_ancestor_hides_element(self, page, inspector):
        await page.set_content(
            '<div style="display:none"><button id="go" style="display:block">Go</button></div>'
        )

        info = await inspector.get_element_info("#go")
        required = await inspector.query(SelectionCriterion(selector="#go", visible=True))

        assert info.success is True
        assert info.info.is_visible is False
        assert required.success is False
        assert required.code is ErrorCode.ELEMENT_NOT_VISIBLE

    @pytest.mark.asyncio
    async def test_role_and_name(self, page, inspector):
        await page.set_content("<button>Cancel</button><button>Save</button>")
        result = await inspector.query(SelectionCriterion(role="button", name="Save"))
        assert result.success is True
        assert result.info.text == "Save"

    @pytest.mark.asyncio
    async def test_interactive_elements(self, page, inspector):
        await page.set_content(
            '<label for="terms">Accept terms</label>'
            '<input type="checkbox" id="terms" checked>'
            '<select name="size"><option>S</option><option selected>M</option></select>'
            '<button disabled>Send</button>'
            '<div role="radio" aria-checked="true" aria-label="Plan A">A</div>'
            '<input type="hidden" name="token" value="t">'
        )

        result = await inspector.get_interactive_elements()

        assert result.success is True
        by_type = {element.type: element for element in result.elements}
        assert set(by_type) == {"checkbox", "select", "button", "radio"}
        assert by_type["checkbox"].label == "Accept terms"
        assert by_type["checkbox"].state == {"checked": True}
        assert by_type["select"].state == {"value": "M", "selected": ["M"]}
        assert by_type["button"].enabled is False
        assert by_type["radio"].label == "Plan A"
        assert by_type["radio"].state == {"checked": True}


class TestLiveObserver:
    @pytest.mark.asyncio
    async def test_one_modified_event_then_none_after_teardown(self, page, inspector):
        await page.set_content('<div id="panel" data-state="closed">x</div>')
        received = []

        subscription = await inspector.observe(
            ObserverOptions(attributes=True, subtree=True), received.append
        )
        await page.evaluate(
            "() => document.getElementById('panel').setAttribute('data-state', 'open')"
        )
        await _wait_for(received, 1)

        assert len(received) == 1
        event = received[0]
        assert event.type == "modified"
        assert event.target.id == "panel"
        assert event.changes.attribute == "data-state"
        assert event.changes.old_value == "closed"
        assert event.changes.new_value == "open"

        await subscription.close()
        await subscription.close()
        await page.evaluate(
            "() => document.getElementById('panel').setAttribute('data-state', 'closed')"
        )
        await asyncio.sleep(0.3)
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_child_list_events(self, page, inspector):
        await page.set_content('<ul id="list"><li>a</li></ul>')
        received = []

        async with await inspector.observe(
            ObserverOptions(child_list=True, subtree=True, root_selector="#list"), received.append
        ):
            await page.evaluate(
                "() => {"
                " const list = document.getElementById('list');"
                " list.appendChild(document.createElement('li'));"
                " list.firstElementChild.remove();"
                "}"
            )
            await _wait_for(received, 2)

        assert [event.type for event in received] == ["added", "removed"]


class TestLiveContent:
    @pytest.mark.asyncio
    async def test_visible_content_marks_content_below(self, page, inspector):
        await page.set_content(
            "<h1>Top</h1><p>First</p><div style='height:3000px'></div><p>Far away</p>"
        )
        assert await inspector.get_visible_content() == "# Top\nFirst\n..."

    @pytest.mark.asyncio
    async def test_visible_content_after_scrolling(self, page, inspector):
        await page.set_content(
            "<p>Start</p><div style='height:3000px'></div><p>End</p>"
        )
        await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        assert await inspector.get_visible_content() == "...\nEnd"

    @pytest.mark.asyncio
    async def test_page_content_markdown(self, page, inspector):
        await page.set_content(
            "<title>Doc</title><h2>Title</h2><p>Hello <a href='/x'>link</a></p>"
        )
        content = await inspector.get_page_content()
        assert content.startswith("# Doc")
        assert "## Title" in content
        assert "[link](/x)" in content
