from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    PRIMENG_STRICT_MODE: bool = False
    PRIMENG_RELATIONS_ENABLED: bool = True

    PRIMENG_DEFAULT_PER_PAGE: int = 15
    PRIMENG_MAX_PER_PAGE: int = 500
    PRIMENG_MAX_ROWS: int = 1000
    PRIMENG_MAX_GLOBAL_FILTER_LENGTH: int = 255

    # Audit columns skipped when a caller asks to search "all" columns
    PRIMENG_EXCLUDED_SEARCH_COLUMNS: str = "created_at,updated_at,deleted_at"

    @property
    def excluded_search_columns_list(self) -> List[str]:
        return [c.strip() for c in self.PRIMENG_EXCLUDED_SEARCH_COLUMNS.split(",") if c.strip()]

settings = Settings()


@dataclass(frozen=True)
class QueryOptions:
    strict: bool = False
    relations_enabled: bool = True
    allowed_fields: Optional[FrozenSet[str]] = None
    default_per_page: int = 15
    max_per_page: int = 500

    @classmethod
    def from_settings(cls, **overrides) -> "QueryOptions":
        values = {
            "strict": settings.PRIMENG_STRICT_MODE,
            "relations_enabled": settings.PRIMENG_RELATIONS_ENABLED,
            "default_per_page": settings.PRIMENG_DEFAULT_PER_PAGE,
            "max_per_page": settings.PRIMENG_MAX_PER_PAGE,
        }
        values.update(overrides)
        allowed = values.get("allowed_fields")
        if allowed is not None:
            values["allowed_fields"] = frozenset(allowed)
        return cls(**values)

    def field_allowed(self, field: str) -> bool:
        return self.allowed_fields is None or field in self.allowed_fields
