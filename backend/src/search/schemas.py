"""Pydantic schemas for image search results"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from catalog.schemas import MediaItem, SizeItem


class EnrichedResult(BaseModel):
    """An embedding match joined with its catalog record"""
    slug: str
    name: str = ""
    image: str = ""
    text: str = ""
    description: str = ""
    short_description: str = ""
    category: str = ""
    brand: str = ""
    media: List[MediaItem] = Field(default_factory=list)
    sizes: List[SizeItem] = Field(default_factory=list)

    class Config:
        frozen = True

    def to_response(self) -> Dict[str, Any]:
        """JSON shape returned to storefront clients"""
        data = self.model_dump(exclude={"sizes"})
        data["sizes"] = [s.to_payload() for s in self.sizes]
        return data


class SearchResponse(BaseModel):
    """Ordered, de-duplicated results of one image search"""
    results: List[EnrichedResult] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "results": [r.to_response() for r in self.results],
            "metadata": self.metadata,
        }
