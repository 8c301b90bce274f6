import logging
from typing import List, Optional, Tuple

from stepflow.locator.snapshot import ElementSnapshot, PathNode
from stepflow.models.dsl import Selector, SelectorKind, XPathMode

LOGGER = logging.getLogger(__name__)


class LocatorInference:
    """
    Derives a Selector for a picked element.

    Css and XPath paths use same-tag sibling indexes computed from the snapshot.
    They are deterministic for one snapshot but are not re-checked against the
    page at replay time, so a DOM that changed in between may resolve to a
    different element or to none.
    """

    def infer(self, snapshot: ElementSnapshot, kind, xpath_mode=XPathMode.RELATIVE) -> Optional[Selector]:
        """Returns None when the element has nothing to offer for ``kind``."""
        kind = SelectorKind(kind)
        raw = self._raw_value(snapshot, kind, XPathMode(xpath_mode))
        if not raw:
            LOGGER.debug("No %s locator for <%s>", kind.value, snapshot.tag)
            return None
        return Selector(kind=kind, raw=raw)

    def _raw_value(self, snapshot: ElementSnapshot, kind: SelectorKind, xpath_mode: XPathMode) -> Optional[str]:
        if kind == SelectorKind.ID:
            return snapshot.id
        if kind == SelectorKind.NAME:
            return snapshot.name
        if kind == SelectorKind.LINK_TEXT:
            return self._link_text(snapshot)
        if kind == SelectorKind.PARTIAL_LINK_TEXT:
            text = self._link_text(snapshot)
            return text.split()[0] if text else None
        if kind == SelectorKind.TEXT:
            return snapshot.text.strip() or None
        if kind == SelectorKind.CSS:
            return self.css_path(snapshot)
        if xpath_mode == XPathMode.ABSOLUTE:
            return self.absolute_xpath(snapshot)
        return self.relative_xpath(snapshot)

    def _link_text(self, snapshot: ElementSnapshot) -> Optional[str]:
        if snapshot.tag != "a":
            return None
        return snapshot.text.strip() or None

    def css_path(self, snapshot: ElementSnapshot) -> str:
        if snapshot.id:
            return f"#{snapshot.id}"
        root, segments = self._below_body(snapshot.path)
        parts = [root] + [f"{node.tag}:nth-child({node.sibling_index})" for node in segments]
        return " > ".join(parts)

    def relative_xpath(self, snapshot: ElementSnapshot) -> str:
        if snapshot.id:
            return f"//*[@id='{snapshot.id}']"
        root, segments = self._below_body(snapshot.path)
        if root != "body":
            # not inside <body>; only the full path can address it
            return self.absolute_xpath(snapshot)
        return "/html/body" + "".join(f"/{node.tag}[{node.sibling_index}]" for node in segments)

    def absolute_xpath(self, snapshot: ElementSnapshot) -> str:
        return "".join(f"/{node.tag}[{node.sibling_index}]" for node in snapshot.path)

    def _below_body(self, path) -> Tuple[str, List[PathNode]]:
        """Splits the path into the anchor tag and the nodes underneath it."""
        for position, node in enumerate(path):
            if node.tag == "body":
                return "body", list(path[position + 1:])
        return path[0].tag, list(path[1:])
