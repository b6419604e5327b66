"""Per item-type support configuration for statistic types.

An item type opts into statistics by registering a support config: a mapping
of statistic type to enabled flag. Types that are disabled are never computed
or pre-warmed; requests for them resolve to ``0``.
"""

from collections.abc import Callable, Mapping

from .errors import ConfigurationError
from .logging_config import get_logger
from .models import StatisticType

logger = get_logger(__name__)

SupportConfig = dict[StatisticType, bool]

DEFAULT_SUPPORT_CONFIG: Mapping[StatisticType, bool] = {
    StatisticType.TOTAL_ITEMS: True,
    StatisticType.ITEMS_IN_CATEGORY: True,
    StatisticType.ITEMS_IN_MULTIPLE_CATEGORIES: False,
    StatisticType.TOTAL_TERMS_IN_CATEGORY: False,
    StatisticType.TERMS_BY_CATEGORY: False,
    StatisticType.NUMERIC_FIELD_SUM: True,
}


def _normalize_config(config: Mapping) -> SupportConfig:
    normalized: SupportConfig = {}
    for key, enabled in config.items():
        statistic_type = StatisticType.parse(key)
        if statistic_type is None:
            raise ConfigurationError(f"Unknown statistic type in support config: {key!r}", setting=str(key))
        normalized[statistic_type] = bool(enabled)
    return normalized


class SupportRegistry:
    """Registry of item types that support statistics.

    Usage:
        support = SupportRegistry(primary_item_type="event")
        support.register_item_type("event")

        def enable_cross_category(config):
            config[StatisticType.TERMS_BY_CATEGORY] = True
            return config

        support.register_item_type("event", customize=enable_cross_category)
    """

    def __init__(self, primary_item_type: str = "event"):
        self.primary_item_type = primary_item_type
        self._configs: dict[str, SupportConfig] = {}

    def register_item_type(
        self,
        item_type: str,
        config: Mapping | None = None,
        *,
        customize: Callable[[SupportConfig], SupportConfig | None] | None = None,
    ) -> SupportConfig:
        """Register or replace the support config of ``item_type``.

        Args:
            item_type: Item type slug
            config: Explicit config; defaults to DEFAULT_SUPPORT_CONFIG
            customize: Optional callable that adjusts the config before it is
                stored. It may mutate and/or return the mapping.

        Returns:
            The stored config.
        """
        resolved = _normalize_config(DEFAULT_SUPPORT_CONFIG if config is None else config)
        if customize is not None:
            customized = customize(resolved)
            if customized is not None:
                resolved = _normalize_config(customized)

        self._configs[item_type] = resolved
        logger.debug(
            "Registered statistics support for %s: %s",
            item_type,
            [t.value for t, enabled in resolved.items() if enabled],
        )
        return dict(resolved)

    def unregister_item_type(self, item_type: str) -> bool:
        """Remove statistics support from ``item_type``."""
        return self._configs.pop(item_type, None) is not None

    def get_support_config(self, item_type: str | None = None) -> SupportConfig:
        """Return the config of ``item_type``, or an empty dict if unsupported."""
        return dict(self._configs.get(item_type or self.primary_item_type, {}))

    def is_supported(self, statistic_type: StatisticType | str, item_type: str | None = None) -> bool:
        statistic_type = StatisticType.parse(statistic_type)
        if statistic_type is None:
            return False
        return self.get_support_config(item_type).get(statistic_type, False)

    def supported_statistic_types(self, item_type: str | None = None) -> list[StatisticType]:
        """Enabled statistic types of ``item_type``, in declaration order."""
        config = self.get_support_config(item_type)
        return [statistic_type for statistic_type in StatisticType if config.get(statistic_type, False)]

    def supported_item_types(self) -> list[str]:
        return list(self._configs)

    def has_supported_item_types(self) -> bool:
        return bool(self._configs)

    def __contains__(self, item_type: str) -> bool:
        return item_type in self._configs
