"""
FlowReader Reading Position Pydantic Model
"""
import json
import logging
from typing import Optional
from pydantic import BaseModel, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

class Position(BaseModel):
    """
    Stable reading position that survives re-segmentation and re-layout.
    Paragraph index and offset give the precise spot, the context snippet
    relocates it by text search and the progress ratios are the coarse fallback.
    """
    chapter_index: int = 0
    paragraph_index: int = 0
    character_offset: int = 0
    context_snippet: str = ""
    chapter_progress: float = 0.0
    book_progress: float = 0.0

    class Config:
        """Pydantic config"""
        frozen = True
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"

    @field_validator("chapter_index", "paragraph_index", "character_offset")
    @classmethod
    def non_negative(cls, value: int) -> int:
        return max(0, value)

    @field_validator("chapter_progress", "book_progress")
    @classmethod
    def unit_interval(cls, value: float) -> float:
        return min(1.0, max(0.0, value))

    @classmethod
    def book_start(cls) -> "Position":
        return cls()

    @classmethod
    def chapter_start(cls, chapter_index: int, total_chapters: int) -> "Position":
        return cls(
            chapter_index=chapter_index,
            book_progress=chapter_index / max(total_chapters, 1)
        )

    def encode(self) -> str:
        """Flat JSON object suitable for a document metadata record"""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def decode(cls, raw: Optional[str]) -> Optional["Position"]:
        """
        Parse a stored position
        Args:
            raw: JSON string produced by encode, possibly from an older or newer writer
        Returns:
            Position, or None when the input is not a usable position record
        """
        if not raw: return None

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Stored position is not valid JSON: {str(e)}")
            return None

        if not isinstance(data, dict):
            logger.warning("Stored position is not a JSON object")
            return None

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored position has invalid fields: {str(e)}")
            return None
