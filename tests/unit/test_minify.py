"""Tests for the HTML minifier."""

from __future__ import annotations

from mosaic.minify import minify_html


def test_strips_comments_and_collapses_whitespace() -> None:
    html = "<div>\n  <!-- drop me -->\n  <p>one   two</p>\n</div>\n"
    assert minify_html(html) == "<div><p>one two</p></div>"


def test_keeps_conditional_comments() -> None:
    html = "<!--[if IE]><p>old</p><![endif]-->"
    assert minify_html(html) == html


def test_preserves_whitespace_sensitive_elements() -> None:
    html = (
        "<pre>\n  a\n    b\n</pre>\n"
        "<textarea>  x  </textarea>\n"
        "<script>var a = 1;\n\n var b = 2;</script>\n"
        "<style>p {  color: red; }</style>"
    )
    out = minify_html(html)
    assert "<pre>\n  a\n    b\n</pre>" in out
    assert "<textarea>  x  </textarea>" in out
    assert "var a = 1;\n\n var b = 2;" in out
    assert "p {  color: red; }" in out


def test_inline_spacing_is_kept_as_one_space() -> None:
    assert minify_html("<p><b>a</b>   <i>b</i></p>") == "<p><b>a</b> <i>b</i></p>"
