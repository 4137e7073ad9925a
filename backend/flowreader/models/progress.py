"""
FlowReader Reading Progress Pydantic Models
"""
from pydantic import BaseModel, Field
from flowreader.models.position import Position

class PositionUpdate(BaseModel):
    """Request model for saving the reading position"""
    page_index: int = Field(..., ge=0, description="Index of the page nearest the top of the view")
    local_offset: int = Field(0, ge=0, description="Character offset within that page")

class ProgressResponse(BaseModel):
    """Response model for reading progress"""
    book_id: str
    position: Position
    page_index: int
    local_offset: int
    chapter_title: str
    completion_percentage: float
