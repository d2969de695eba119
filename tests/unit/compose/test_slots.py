"""Tests for slot capture and projection."""

from __future__ import annotations

from mosaic.compose.html import DEFAULT_SLOT, parse, render
from mosaic.compose.slots import capture_slots, find_placeholders, project_slots, slot_name


def _capture(markup: str):
    soup = parse(markup)
    return capture_slots(list(soup.contents))


def _project(target: str, caller: str) -> str:
    soup = parse(target)
    project_slots(soup, _capture(caller))
    return render(soup)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def test_slot_name_normalisation() -> None:
    assert slot_name("default") == DEFAULT_SLOT
    assert slot_name(None) == DEFAULT_SLOT
    assert slot_name(" title ") == "title"


def test_capture_named_elements_and_default() -> None:
    slots = _capture('<h2 data-slot="title">Hi</h2>\n<p>loose</p>\n')
    assert set(slots) == {"title", DEFAULT_SLOT}
    assert slots["title"].replaces is True
    assert render(slots["title"].nodes[0]) == "<h2>Hi</h2>"
    assert slots[DEFAULT_SLOT].replaces is False
    assert "".join(render(n) for n in slots[DEFAULT_SLOT].nodes) == "<p>loose</p>"


def test_capture_template_contributes_children() -> None:
    slots = _capture('<template data-slot="body"><p>a</p><p>b</p></template>')
    assert slots["body"].replaces is False
    assert "".join(render(n) for n in slots["body"].nodes) == "<p>a</p><p>b</p>"


def test_blank_text_makes_no_default_slot() -> None:
    slots = _capture('\n  <span data-slot="x">1</span>\n  ')
    assert DEFAULT_SLOT not in slots


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def test_find_placeholders_skips_templates() -> None:
    soup = parse('<slot name="a"></slot><div data-slot="b"></div><template data-slot="c"></template>')
    assert [name for _, name in find_placeholders(soup)] == ["a", "b"]


def test_caller_element_replaces_placeholder() -> None:
    html = _project('<div><h2 data-slot="title">Fallback</h2></div>', '<h1 data-slot="title">Mine</h1>')
    assert html == "<div><h1>Mine</h1></div>"


def test_template_fills_placeholder_children() -> None:
    html = _project(
        '<section class="body" data-slot="body">Fallback</section>',
        '<template data-slot="body"><p>New</p></template>',
    )
    assert html == '<section class="body"><p>New</p></section>'


def test_slot_element_is_replaced_by_content() -> None:
    html = _project('<main><slot></slot></main>', "<p>Body</p>")
    assert html == "<main><p>Body</p></main>"


def test_missing_content_keeps_fallback() -> None:
    html = _project(
        '<div><slot name="extra"><em>none</em></slot><p data-slot="note">Default note</p></div>',
        "",
    )
    assert html == "<div><em>none</em><p>Default note</p></div>"


def test_slot_completeness() -> None:
    """Caller fills title only; body keeps the component fallback; no markers remain."""
    component = (
        '<article class="card">'
        '<h2 data-slot="title">Untitled</h2>'
        '<div data-slot="body">No body yet</div>'
        "</article>"
    )
    html = _project(component, '<h2 data-slot="title">Hello</h2>')
    assert "<h2>Hello</h2>" in html
    assert "No body yet" in html
    assert "Untitled" not in html
    assert "data-slot" not in html


def test_slot_content_is_copied_into_each_placeholder() -> None:
    html = _project('<slot name="x"></slot>|<slot name="x"></slot>', '<b data-slot="x">X</b>')
    assert html == "<b>X</b>|<b>X</b>"


def test_returns_consumed_slot_names() -> None:
    soup = parse('<slot name="a"></slot><slot name="b"></slot>')
    consumed = project_slots(soup, _capture('<i data-slot="a">1</i><i data-slot="z">2</i>'))
    assert consumed == {"a"}
