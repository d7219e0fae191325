"""
Pydantic schemas for remote API payloads
"""

from pydantic import BaseModel, Field, validator
from typing import List, Any, Optional


class PageEnvelope(BaseModel):
    """
    One page of a paginated collection.

    The remote answers ``GET /{collection}?page=&size=`` with
    ``{totalElements, totalPages, content: [...]}``. Both totals are required;
    a page without them cannot be walked safely.
    """

    total_elements: int = Field(..., alias="totalElements", ge=0)
    total_pages: int = Field(..., alias="totalPages", ge=0)
    content: List[Any] = Field(default_factory=list)  # entries are validated per record downstream
    number: Optional[int] = None  # page index echoed back by some endpoints

    @validator("content", pre=True)
    def ensure_content_list(cls, v):
        """A null content array means an empty page"""
        if v is None:
            return []
        return v

    class Config:
        populate_by_name = True
        extra = "ignore"

