"""
Unit tests for markdown rendering of topic and reply bodies.
"""
from community.modules.forum.markdown import render_markdown


def test_renders_basic_markdown():
    html = render_markdown("# Title\n\nSome **bold** text")
    assert "<h1>Title</h1>" in html
    assert "<strong>bold</strong>" in html


def test_fenced_code_blocks():
    html = render_markdown("```python\nprint('hi')\n```")
    assert "<pre>" in html
    assert "<code" in html
    assert "print(" in html


def test_raw_html_is_escaped():
    html = render_markdown('<script>alert("x")</script>\n\nHello <b>world</b>')
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "<b>" not in html


def test_external_links_open_in_new_tab():
    html = render_markdown("[docs](https://docs.example.com)")
    assert 'target="_blank"' in html
    assert 'rel="noopener noreferrer"' in html


def test_relative_links_untouched():
    html = render_markdown("[profile](/users/alice)")
    assert 'href="/users/alice"' in html
    assert "target=" not in html


def test_tables_extension():
    html = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |")
    assert "<table>" in html


def test_javascript_links_are_neutralised():
    html = render_markdown("[click me](javascript:alert(document.cookie))")
    assert "javascript:" not in html
    assert "click me" in html


def test_mailto_links_kept():
    html = render_markdown("[mail](mailto:team@example.com)")
    assert 'href="mailto:team@example.com"' in html
