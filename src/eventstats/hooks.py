"""Post-processing hooks applied to computed statistics.

Hooks let embedders adjust a value per statistic type (rounding policies,
multipliers) before it is cached. The calculator applies them, so freshly
computed and pre-warmed values always go through the same chain.
"""

from collections.abc import Callable
from dataclasses import dataclass

from .models import FilterSet, StatisticType

PostProcessor = Callable[[int, FilterSet], int]


@dataclass
class HookInfo:
    """Information about a registered post-processor."""

    name: str
    statistic_type: StatisticType
    func: PostProcessor


class PostProcessorRegistry:
    """Registry of post-processors keyed by statistic type.

    Usage:
        registry = PostProcessorRegistry()

        @registry.register(StatisticType.TOTAL_ITEMS)
        def round_to_ten(value, filters):
            return round(value / 10) * 10 if value > 50 else value

        value = registry.apply(StatisticType.TOTAL_ITEMS, 57, filters)  # 60
    """

    def __init__(self):
        self._hooks: dict[StatisticType, list[HookInfo]] = {}

    def register(self, statistic_type: StatisticType | str):
        """Decorator registering a post-processor for ``statistic_type``."""

        def decorator(func: PostProcessor) -> PostProcessor:
            self.add(statistic_type, func)
            return func

        return decorator

    def add(self, statistic_type: StatisticType | str, func: PostProcessor) -> None:
        statistic_type = StatisticType(statistic_type)
        self._hooks.setdefault(statistic_type, []).append(
            HookInfo(name=getattr(func, "__name__", repr(func)), statistic_type=statistic_type, func=func)
        )

    def remove(self, statistic_type: StatisticType | str, func: PostProcessor) -> bool:
        hooks = self._hooks.get(StatisticType(statistic_type), [])
        for hook in hooks:
            if hook.func is func:
                hooks.remove(hook)
                return True
        return False

    def apply(self, statistic_type: StatisticType, value: int, filters: FilterSet) -> int:
        """Run the chain for ``statistic_type`` in registration order."""
        for hook in self._hooks.get(statistic_type, []):
            value = hook.func(value, filters)
        return value

    def get_hooks(self, statistic_type: StatisticType | str) -> list[HookInfo]:
        return list(self._hooks.get(StatisticType(statistic_type), []))

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())
