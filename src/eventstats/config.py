"""Runtime settings for the statistics cache.

Settings are validated at construction. ``StatisticsSettings.from_env()``
reads ``EVENTSTATS_*`` environment variables, falling back to defaults for
anything unset.
"""

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cache_keys import DEFAULT_NAMESPACE
from .errors import ConfigurationError

DEFAULT_CACHE_TTL_SECONDS = 12 * 60 * 60
DEFAULT_REGENERATION_DELAY_SECONDS = 60
DEFAULT_ACTIVATION_DELAY_SECONDS = 5
DEFAULT_CROSS_CATEGORY_TERM_LIMIT = 10
DEFAULT_EXCLUDED_CATEGORIES = ("_venue",)

# Environment variable -> settings field
ENV_VARS = {
    "EVENTSTATS_CACHE_TTL": "cache_ttl_seconds",
    "EVENTSTATS_REGENERATION_DELAY": "regeneration_delay_seconds",
    "EVENTSTATS_ACTIVATION_DELAY": "activation_delay_seconds",
    "EVENTSTATS_CROSS_CATEGORY_LIMIT": "cross_category_term_limit",
    "EVENTSTATS_EXCLUDED_CATEGORIES": "excluded_categories",
    "EVENTSTATS_EDITOR_EXCLUDED_CATEGORIES": "editor_excluded_categories",
    "EVENTSTATS_NAMESPACE": "namespace",
    "EVENTSTATS_PRIMARY_ITEM_TYPE": "primary_item_type",
    "EVENTSTATS_NUMERIC_FIELD": "numeric_field_name",
    "EVENTSTATS_CACHE_DIR": "cache_dir",
    "EVENTSTATS_MEMORY_CACHE_SIZE": "memory_cache_size",
}


class StatisticsSettings(BaseModel):
    """Settings shared by the accessor, coordinator, planner and runner."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_ttl_seconds: int = Field(DEFAULT_CACHE_TTL_SECONDS, description="Lifetime of cached statistics")
    regeneration_delay_seconds: float = Field(
        DEFAULT_REGENERATION_DELAY_SECONDS, ge=0, description="Debounce window before regenerating"
    )
    activation_delay_seconds: float = Field(
        DEFAULT_ACTIVATION_DELAY_SECONDS, ge=0, description="Delay of the first warm-up after activation"
    )
    cross_category_term_limit: int = Field(
        DEFAULT_CROSS_CATEGORY_TERM_LIMIT, ge=0, description="Filter terms pre-warmed per category pair"
    )
    excluded_categories: tuple[str, ...] = Field(
        DEFAULT_EXCLUDED_CATEGORIES, description="Categories left out of pre-warming and term invalidation"
    )
    editor_excluded_categories: tuple[str, ...] | None = Field(
        None, description="Categories hidden from editor selection; excluded_categories when unset"
    )
    namespace: str = Field(DEFAULT_NAMESPACE, min_length=1, pattern=r"^[A-Za-z0-9_\-]+$")
    primary_item_type: str = Field("event", min_length=1, description="Item type whose support config gates types")
    numeric_field_name: str = Field("attendee_count", min_length=1, description="Summed per-item field")
    cache_dir: str | None = Field(None, description="Directory for the disk store; memory store when unset")
    memory_cache_size: int = Field(10000, ge=1)

    @field_validator("cache_ttl_seconds", mode="before")
    @classmethod
    def validate_ttl(cls, v):
        """Non-numeric or non-positive TTLs fall back to the default."""
        try:
            ttl = int(v)
        except (TypeError, ValueError):
            return DEFAULT_CACHE_TTL_SECONDS
        return ttl if ttl >= 1 else DEFAULT_CACHE_TTL_SECONDS

    @field_validator("excluded_categories", "editor_excluded_categories", mode="before")
    @classmethod
    def validate_excluded_categories(cls, v, info):
        if v is None:
            return None if info.field_name == "editor_excluded_categories" else ()
        if isinstance(v, str):
            v = v.split(",")
        return tuple(name.strip() for name in v if name and name.strip())

    def excluded_for(self, for_editor: bool = False) -> tuple[str, ...]:
        """Exclusion list for editor selection or for statistics generation."""
        if for_editor and self.editor_excluded_categories is not None:
            return self.editor_excluded_categories
        return self.excluded_categories

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "StatisticsSettings":
        """Build settings from EVENTSTATS_* environment variables.

        Raises:
            ConfigurationError: If a value cannot be validated.
        """
        environ = os.environ if environ is None else environ
        values = {field_name: environ[var] for var, field_name in ENV_VARS.items() if environ.get(var)}
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            setting = ".".join(str(p) for p in first.get("loc", ()))
            raise ConfigurationError(f"Invalid setting {setting}: {first.get('msg')}", setting=setting) from e
