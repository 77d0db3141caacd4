"""
Markdown rendering for topic and reply bodies.

Raw HTML in user input is not passed through: the HTML block and inline
HTML processors are removed, so such text is escaped like any other. The
rendered HTML is then cleaned with bleach, which drops link targets that
are not http, https or mailto. External links open in a new tab.
"""

from xml.etree.ElementTree import Element

import bleach
import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

ALLOWED_TAGS = bleach.sanitizer.ALLOWED_TAGS | {
    "p", "br", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
    "pre", "code", "span", "div", "del",
    "table", "thead", "tbody", "tr", "th", "td",
}
ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "target", "rel"],
    "abbr": ["title"],
    "acronym": ["title"],
    "code": ["class"],
    "th": ["align"],
    "td": ["align"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]


class _ExternalLinks(Treeprocessor):
    def run(self, root: Element) -> None:
        for link in root.iter("a"):
            href = link.get("href", "")
            if href.startswith(("http://", "https://")):
                link.set("target", "_blank")
                link.set("rel", "noopener noreferrer")


class SafeContentExtension(Extension):
    """Strip raw HTML handling and decorate external links."""

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        md.treeprocessors.register(_ExternalLinks(md), "external_links", 5)


_EXTENSIONS = [
    "fenced_code",
    "tables",
    "sane_lists",
    SafeContentExtension(),
]


def render_markdown(text: str) -> str:
    """Render user markdown to sanitized HTML."""
    md = markdown.Markdown(extensions=_EXTENSIONS, output_format="html")
    html = md.convert(text)
    return bleach.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
    )
