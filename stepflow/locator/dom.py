from html.parser import HTMLParser
from typing import Callable, Dict, Iterator, List, Optional

from stepflow.locator.snapshot import ElementSnapshot, PathNode

VOID_ELEMENTS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}


class DomNode:
    def __init__(self, tag: str, attrs: Optional[Dict[str, str]] = None, parent: Optional["DomNode"] = None):
        self.tag = tag
        self.attrs = attrs or {}
        self.parent = parent
        self.children: List["DomNode"] = []
        self._content: List[object] = []  # DomNode or str, in document order

    def append_child(self, node: "DomNode") -> None:
        node.parent = self
        self.children.append(node)
        self._content.append(node)

    def append_text(self, data: str) -> None:
        self._content.append(data)

    @property
    def text(self) -> str:
        parts = []
        for item in self._content:
            parts.append(item.text if isinstance(item, DomNode) else item)
        return "".join(parts)

    def iter(self) -> Iterator["DomNode"]:
        for child in self.children:
            yield child
            yield from child.iter()

    def find(self, predicate: Callable[["DomNode"], bool]) -> Optional["DomNode"]:
        return next((node for node in self.iter() if predicate(node)), None)

    def find_all(self, tag: str) -> List["DomNode"]:
        tag = tag.lower()
        return [node for node in self.iter() if node.tag == tag]

    def find_by_id(self, element_id: str) -> Optional["DomNode"]:
        return self.find(lambda node: node.attrs.get("id") == element_id)

    def snapshot(self) -> ElementSnapshot:
        """Freezes this element and its ancestor chain into an ElementSnapshot."""
        path = []
        node = self
        while node is not None and node.tag != "#document":
            preceding = []
            if node.parent is not None:
                for sibling in node.parent.children:
                    if sibling is node:
                        break
                    preceding.append(sibling.tag)
            path.append(PathNode(tag=node.tag, preceding_sibling_tags=tuple(preceding)))
            node = node.parent
        path.reverse()

        return ElementSnapshot(
            tag=self.tag,
            id=self.attrs.get("id") or None,
            name=self.attrs.get("name") or None,
            text=self.text,
            attributes=dict(self.attrs),
            path=tuple(path),
        )

    def __repr__(self) -> str:
        return f"<DomNode {self.tag} {self.attrs}>"


class DomTreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.document = DomNode("#document")
        self._stack: List[DomNode] = [self.document]

    def handle_starttag(self, tag: str, attrs) -> None:
        node = DomNode(tag.lower(), {k.lower(): (v or "") for k, v in attrs})
        self._stack[-1].append_child(node)
        if node.tag not in VOID_ELEMENTS:
            self._stack.append(node)

    def handle_startendtag(self, tag: str, attrs) -> None:
        node = DomNode(tag.lower(), {k.lower(): (v or "") for k, v in attrs})
        self._stack[-1].append_child(node)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        # Close up to the matching open element; stray end tags are ignored
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag == tag:
                del self._stack[depth:]
                return

    def handle_data(self, data: str) -> None:
        self._stack[-1].append_text(data)


def parse_html(markup: str) -> DomNode:
    """
    Parses markup into a DomNode tree and returns the <html> element.
    Fragments without an <html> root are wrapped in html > body as a browser would.
    """
    builder = DomTreeBuilder()
    builder.feed(markup)
    builder.close()
    document = builder.document

    html = next((child for child in document.children if child.tag == "html"), None)
    if html is not None:
        return html

    html = DomNode("html")
    body = DomNode("body")
    html.append_child(body)
    for child in document.children:
        body.append_child(child)
    document.children = []
    document._content = []
    document.append_child(html)
    return html
