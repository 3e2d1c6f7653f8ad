"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

DISCOVERY_STRATEGIES = ('api', 'scroll')
EXPORT_FLOWS = ('ui', 'direct')
HISTORY_FILENAME = 'export-history.json'
REPORT_FILENAME = 'export-report.json'


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'confluence.space')
        space = get_nested(config, 'confluence.space')

        if is_space_url(space):
            cls._validate_url(space, 'confluence.space')
        else:
            # Bare space key needs a base URL to build page links from
            cls._validate_required_field(config, 'confluence.base_url')

        base_url = get_nested(config, 'confluence.base_url')
        if base_url:
            cls._validate_url(base_url, 'confluence.base_url')

        strategy = get_nested(config, 'discovery.strategy', 'api')
        if strategy not in DISCOVERY_STRATEGIES:
            raise ValueError(f"discovery.strategy must be one of: {list(DISCOVERY_STRATEGIES)}")

        flow = get_nested(config, 'export.flow', 'ui')
        if flow not in EXPORT_FLOWS:
            raise ValueError(f"export.flow must be one of: {list(EXPORT_FLOWS)}")

        output_dir = get_nested(config, 'export.output_directory', './output')
        if output_dir and os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        for key in ('export.timeout', 'export.selector_timeout',
                    'export.processing_timeout', 'advanced.request_timeout'):
            value = get_nested(config, key)
            if value is not None and (not _is_number(value) or value <= 0):
                raise ValueError(f"{key} must be a positive number")

        for key in ('export.page_delay', 'export.retry_delay', 'export.settle_delay',
                    'discovery.scroll_delay'):
            value = get_nested(config, key)
            if value is not None and (not _is_number(value) or value < 0):
                raise ValueError(f"{key} must be a non-negative number")

        max_retries = get_nested(config, 'export.max_retries', 3)
        if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
            raise ValueError("export.max_retries must be a non-negative integer")

        retry_on_error = get_nested(config, 'export.retry_on_error', True)
        if not isinstance(retry_on_error, bool):
            raise ValueError("export.retry_on_error must be a boolean")

        headless = get_nested(config, 'session.headless', False)
        if not isinstance(headless, bool):
            raise ValueError("session.headless must be a boolean")

        for key in ('discovery.page_size', 'discovery.max_scrolls'):
            value = get_nested(config, key)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
                raise ValueError(f"{key} must be a positive integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('confluence', 'session', 'export', 'discovery', 'logging'):
            if not isinstance(merged.get(section), dict):
                merged[section] = {}

        if getattr(args, 'space', None):
            merged['confluence']['space'] = args.space

        if getattr(args, 'base_url', None):
            merged['confluence']['base_url'] = args.base_url

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'session_file', None):
            merged['session']['file'] = args.session_file

        if getattr(args, 'headless', None) is not None:
            merged['session']['headless'] = args.headless

        if getattr(args, 'discovery', None):
            merged['discovery']['strategy'] = args.discovery

        if getattr(args, 'flow', None):
            merged['export']['flow'] = args.flow

        if getattr(args, 'timeout', None) is not None:
            merged['export']['timeout'] = args.timeout

        if getattr(args, 'retry', None) is not None:
            merged['export']['retry_on_error'] = args.retry

        if getattr(args, 'max_retries', None) is not None:
            merged['export']['max_retries'] = args.max_retries

        verbose = getattr(args, 'verbose', 0) or 0
        if verbose >= 2:
            merged['logging']['level'] = 'DEBUG'
        elif verbose >= 1:
            merged['logging']['level'] = 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


@dataclass(frozen=True)
class ExportSettings:
    """Immutable run settings, built once at startup and passed explicitly.

    Timeouts are in milliseconds (Playwright convention), delays in seconds.
    """

    space_reference: str
    output_dir: str = './output'
    session_file: str = 'auth.json'
    base_url: Optional[str] = None
    headless: bool = False
    verify_ssl: bool = True
    timeout: int = 60000
    selector_timeout: int = 5000
    processing_timeout: int = 60000
    settle_delay: float = 2.0
    page_delay: float = 2.0
    retry_on_error: bool = True
    max_retries: int = 3
    retry_delay: float = 5.0
    export_flow: str = 'ui'
    discovery_strategy: str = 'api'
    page_size: int = 50
    max_scrolls: int = 100
    scroll_delay: float = 2.0
    request_timeout: float = 30
    request_max_retries: int = 3
    retry_backoff_factor: float = 2.0

    @property
    def history_path(self) -> str:
        return os.path.join(self.output_dir, HISTORY_FILENAME)

    @property
    def report_path(self) -> str:
        return os.path.join(self.output_dir, REPORT_FILENAME)

    @property
    def max_attempts(self) -> int:
        """Total attempts per page: one initial plus the configured retries."""
        return 1 + (self.max_retries if self.retry_on_error else 0)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportSettings':
        """Build settings from a validated configuration dictionary."""
        return cls(
            space_reference=get_nested(config, 'confluence.space'),
            base_url=get_nested(config, 'confluence.base_url') or None,
            verify_ssl=get_nested(config, 'confluence.verify_ssl', True),
            output_dir=get_nested(config, 'export.output_directory', './output'),
            session_file=get_nested(config, 'session.file', 'auth.json'),
            headless=get_nested(config, 'session.headless', False),
            timeout=int(get_nested(config, 'export.timeout', 60000)),
            selector_timeout=int(get_nested(config, 'export.selector_timeout', 5000)),
            processing_timeout=int(get_nested(config, 'export.processing_timeout', 60000)),
            settle_delay=float(get_nested(config, 'export.settle_delay', 2.0)),
            page_delay=float(get_nested(config, 'export.page_delay', 2.0)),
            retry_on_error=get_nested(config, 'export.retry_on_error', True),
            max_retries=int(get_nested(config, 'export.max_retries', 3)),
            retry_delay=float(get_nested(config, 'export.retry_delay', 5.0)),
            export_flow=get_nested(config, 'export.flow', 'ui'),
            discovery_strategy=get_nested(config, 'discovery.strategy', 'api'),
            page_size=int(get_nested(config, 'discovery.page_size', 50)),
            max_scrolls=int(get_nested(config, 'discovery.max_scrolls', 100)),
            scroll_delay=float(get_nested(config, 'discovery.scroll_delay', 2.0)),
            request_timeout=float(get_nested(config, 'advanced.request_timeout', 30)),
            request_max_retries=int(get_nested(config, 'advanced.max_retries', 3)),
            retry_backoff_factor=float(get_nested(config, 'advanced.retry_backoff_factor', 2.0))
        )


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "confluence.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def is_space_url(space_reference: Optional[str]) -> bool:
    """True when the space reference is a URL rather than a bare space key."""
    if not space_reference:
        return False
    return bool(urlparse(space_reference).scheme)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


__all__ = ['ConfigLoader', 'ExportSettings', 'get_nested', 'is_space_url']
