"""Discovery package: interchangeable strategies for listing a space's pages."""

from .base_discovery import BaseDiscovery
from .api_discovery import ApiDiscovery
from .scroll_discovery import ScrollDiscovery


class DiscoveryFactory:
    """Factory for creating discovery strategies based on settings."""

    @staticmethod
    def create_discovery(settings, page, logger=None) -> BaseDiscovery:
        """Create the discovery strategy selected by configuration.

        Args:
            settings: ExportSettings instance
            page: Playwright Page from the session provider
            logger: Logger instance

        Returns:
            BaseDiscovery instance (ApiDiscovery or ScrollDiscovery)

        Raises:
            ValueError: If the strategy is unknown
        """
        strategy = settings.discovery_strategy

        if strategy == 'api':
            return ApiDiscovery(settings, page, logger=logger)
        elif strategy == 'scroll':
            return ScrollDiscovery(settings, page, logger=logger)
        else:
            raise ValueError(f"Invalid discovery strategy: {strategy}. Must be 'api' or 'scroll'.")


__all__ = [
    'BaseDiscovery',
    'ApiDiscovery',
    'ScrollDiscovery',
    'DiscoveryFactory'
]
