"""
FlowReader Application Configuration
"""
from typing import Dict, Any
from pydantic import validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    APP_NAME: str = "FlowReader"
    LOG_LEVEL: str = "INFO"

    # db paths
    SQLITE_DB_FILE: str = "data/flowreader.db"

    # storage paths
    UPLOAD_DIR: str = "data/uploads"

    # chars per page segment
    MAX_SEGMENT_CHARS: int = 3000
    # look-back window for the newline break fallback
    NEWLINE_SEARCH_WINDOW: int = 500

    CONTEXT_SNIPPET_LENGTH: int = 50
    SNIPPET_PREFIX_WORDS: int = 5
    SNIPPET_PREFIX_MIN_CHARS: int = 10

    POSITION_METADATA_KEY: str = "reading_position"

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"

    @validator("MAX_SEGMENT_CHARS", "CONTEXT_SNIPPET_LENGTH")
    def must_be_positive(cls, value):
        """Segment and snippet sizes must allow progress"""
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    def get_segmentation_config(self) -> Dict[str, Any]:
        """Return segmentation configuration dictionary"""
        return {
            "max_segment_chars": self.MAX_SEGMENT_CHARS,
            "newline_search_window": self.NEWLINE_SEARCH_WINDOW,
        }

settings = Settings()
