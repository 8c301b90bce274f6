import json

from stepflow.models.dsl import Selector, SelectorKind


def playwright_selector(selector: Selector) -> str:
    """
    Maps a Selector onto a single Playwright selector string.
    Selectors recorded without a kind are passed through as native selectors.
    """
    raw = selector.raw
    if selector.kind is None:
        return raw
    if selector.kind == SelectorKind.ID:
        return f"id={raw}"
    if selector.kind == SelectorKind.NAME:
        return f"[name={json.dumps(raw)}]"
    if selector.kind == SelectorKind.LINK_TEXT:
        return f"a:text-is({json.dumps(raw)})"
    if selector.kind == SelectorKind.PARTIAL_LINK_TEXT:
        return f"a:has-text({json.dumps(raw)})"
    if selector.kind == SelectorKind.CSS:
        return f"css={raw}"
    if selector.kind == SelectorKind.XPATH:
        return f"xpath={raw}"
    return f"text={json.dumps(raw)}"
