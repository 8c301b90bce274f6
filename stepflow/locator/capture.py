import logging

from playwright.sync_api import ElementHandle, Page

from stepflow.locator.snapshot import ElementSnapshot
from stepflow.models.errors import TargetResolutionError

LOGGER = logging.getLogger(__name__)

# Runs in the page; returns plain data only so the snapshot never holds live handles
_SNAPSHOT_SCRIPT = """
el => {
    const path = [];
    for (let node = el; node; node = node.parentElement) {
        const preceding = [];
        for (let sib = node.parentElement ? node.parentElement.firstElementChild : null;
             sib && sib !== node; sib = sib.nextElementSibling) {
            preceding.push(sib.tagName.toLowerCase());
        }
        path.unshift({ tag: node.tagName.toLowerCase(), preceding_sibling_tags: preceding });
    }
    const attributes = {};
    for (const attr of el.attributes) {
        attributes[attr.name] = attr.value;
    }
    return {
        tag: el.tagName.toLowerCase(),
        id: el.id || null,
        name: el.getAttribute('name') || null,
        text: el.textContent || '',
        attributes,
        path,
    };
}
"""


def capture_element(handle: ElementHandle) -> ElementSnapshot:
    data = handle.evaluate(_SNAPSHOT_SCRIPT)
    return ElementSnapshot.model_validate(data)


def capture_at(page: Page, selector: str) -> ElementSnapshot:
    """Snapshots the first element matching a native Playwright selector."""
    handle = page.query_selector(selector)
    if handle is None:
        raise TargetResolutionError(f"No element matches '{selector}' on {page.url}")
    LOGGER.debug("Capturing element for '%s'", selector)
    try:
        return capture_element(handle)
    finally:
        handle.dispose()
