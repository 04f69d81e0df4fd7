"""
Factory for creating slug generation strategies.
Uses caching to avoid creating multiple instances.
"""

from enum import Enum
from shortlink_app.services.slug_strategies import (
    SlugStrategy,
    RandomSlugStrategy,
    Base62SlugStrategy
)
from shortlink_app.config import settings


class SlugStrategyType(Enum):
    """Available slug generation strategies"""
    RANDOM = "random"
    BASE62 = "base62"


class SlugFactory:
    """Factory for creating slug generation strategies with caching"""

    _instances = {}

    @classmethod
    def create_strategy(
        cls,
        strategy_type: SlugStrategyType = None
    ) -> SlugStrategy:
        """
        Create or return cached slug generation strategy.

        Args:
            strategy_type: Type of strategy to create.
                          If None, uses value from settings.

        Raises:
            ValueError: If strategy_type is unknown
        """
        if strategy_type is None:
            strategy_type = SlugStrategyType(settings.slug_strategy)

        if strategy_type in cls._instances:
            return cls._instances[strategy_type]

        if strategy_type == SlugStrategyType.RANDOM:
            instance = RandomSlugStrategy(
                length=settings.slug_length,
                max_retries=settings.max_retries
            )
        elif strategy_type == SlugStrategyType.BASE62:
            instance = Base62SlugStrategy(
                salt=settings.slug_salt,
                max_length=settings.slug_max_length
            )
        else:
            raise ValueError(f"Unknown strategy type: {strategy_type}")

        cls._instances[strategy_type] = instance
        return instance

    @classmethod
    def clear_instances(cls):
        """Clear cached strategies (for testing)"""
        cls._instances = {}
