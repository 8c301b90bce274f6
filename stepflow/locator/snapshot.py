from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PathNode(BaseModel):
    """One element on the way from the document root down to a picked element."""

    model_config = ConfigDict(frozen=True)

    tag: str
    preceding_sibling_tags: Tuple[str, ...] = ()

    @property
    def sibling_index(self) -> int:
        # 1-based, counting only earlier siblings that share the tag name
        return 1 + sum(1 for tag in self.preceding_sibling_tags if tag == self.tag)


class ElementSnapshot(BaseModel):
    """
    Immutable copy of an element taken when the user picks it.
    Locator inference only ever reads this value, never the live DOM.
    """

    model_config = ConfigDict(frozen=True)

    tag: str
    id: Optional[str] = None
    name: Optional[str] = None
    text: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)
    path: Tuple[PathNode, ...] = Field(..., min_length=1, description="Root-to-element chain, the element itself last")
