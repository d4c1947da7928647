"""
Configuration management for RankLens
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "RankLens Keyword Aggregation"
    environment: str = "development"
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # Report cell budget (bytes of compact UTF-8 JSON)
    max_analyze_cell_bytes: int = 45000

    # Sanitizer caps, applied before any shrinking
    max_analysis_chars: int = 16000
    max_rank_rows: int = 18
    max_top_rank_rows: int = 8
    max_prev_rows: int = 10
    max_zero_rows: int = 10
    max_coverage_rows: int = 12
    max_explorer_list: int = 8
    max_explorer_table_chars: int = 2500

    # Shrink step caps (second reduction step)
    shrink_rank_rows: int = 10
    shrink_top_rank_rows: int = 6
    shrink_prev_rows: int = 6
    shrink_zero_rank_rows: int = 6
    shrink_zero_coverage_rows: int = 4
    shrink_coverage_rows: int = 8
    shrink_coverage_zero_rows: int = 6
    shrink_note_rows: int = 4

    # Keyword selection
    top_query_count: int = 3  # Queries picked for SERP / content-explorer lookups

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
