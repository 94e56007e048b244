"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.attribute_mapper import (
    FAMILY_NAME_PATH,
    GIVEN_NAME_PATH,
    IDENTIFIER_PATH,
    LOCAL_DATA_PREFIX,
    AttributeMapper,
)


class LocalDataMappingEntry(BaseModel):
    """One extra ("local data") attribute exposed by this deployment."""

    local_data_attribute: str = Field(min_length=1)
    source_attribute: str = Field(min_length=1)
    is_array: bool = False
    default_value: str | list[str] | None = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Redis - distributed tier of the current person cache
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # Source attribute names of the core person attributes
    identifier_attribute: str = Field(
        default="cn", validation_alias="DIRECTORY_IDENTIFIER_ATTRIBUTE",
    )
    given_name_attribute: str = Field(
        default="givenName", validation_alias="DIRECTORY_GIVEN_NAME_ATTRIBUTE",
    )
    family_name_attribute: str = Field(
        default="sn", validation_alias="DIRECTORY_FAMILY_NAME_ATTRIBUTE",
    )

    # JSON list of LocalDataMappingEntry objects
    local_data_mapping: list[LocalDataMappingEntry] = Field(
        default_factory=list, validation_alias="LOCAL_DATA_MAPPING",
    )

    # Fallback for sessions that do not carry their own TTL
    session_ttl: int = Field(default=3600, gt=0, validation_alias="SESSION_TTL")

    # In-memory directory used by the bundled app
    directory_seed_file: str | None = Field(default=None, validation_alias="DIRECTORY_SEED_FILE")
    directory_max_sort_results: int = Field(
        default=1000, gt=0, validation_alias="DIRECTORY_MAX_SORT_RESULTS",
    )

    max_page_size: int = Field(default=100, gt=0, validation_alias="MAX_PAGE_SIZE")

    @field_validator("local_data_mapping")
    @classmethod
    def validate_unique_local_data_names(
        cls, v: list[LocalDataMappingEntry],
    ) -> list[LocalDataMappingEntry]:
        """Reject mappings that declare the same local data attribute twice."""
        seen: set[str] = set()
        for entry in v:
            if entry.local_data_attribute in seen:
                raise ValueError(
                    f"Duplicate local data attribute: {entry.local_data_attribute}",
                )
            seen.add(entry.local_data_attribute)
        return v

    @property
    def local_data_attributes(self) -> dict[str, LocalDataMappingEntry]:
        """Local data mapping entries keyed by local data attribute name."""
        return {entry.local_data_attribute: entry for entry in self.local_data_mapping}

    def build_attribute_mapper(self) -> AttributeMapper:
        """Build the logical -> source attribute mapping for this deployment."""
        mapper = AttributeMapper()
        mapper.add_mapping(IDENTIFIER_PATH, self.identifier_attribute)
        mapper.add_mapping(GIVEN_NAME_PATH, self.given_name_attribute)
        mapper.add_mapping(FAMILY_NAME_PATH, self.family_name_attribute)
        for entry in self.local_data_mapping:
            mapper.add_mapping(
                LOCAL_DATA_PREFIX + entry.local_data_attribute,
                entry.source_attribute,
            )
        return mapper


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
