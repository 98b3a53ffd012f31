"""Configuration system for store analysis.

This module provides configuration management for browser and pipeline
settings, including YAML loading, validation, and environment-specific
overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .browser_factory import DEFAULT_LAUNCH_ARGS, BrowserConfig, BrowserEngineType
from .page_analyzer import PageAnalyzerConfig
from .pipeline import DEFAULT_PRODUCT_LINK_SELECTOR, PipelineConfig


ENVIRONMENT_VARIABLE = 'STORELENS_ENV'
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent.parent / "config" / "analysis.yaml"
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


class BrowserSettings(BaseModel):
    """Browser launch and context settings."""

    engine: str = Field(default=BrowserEngineType.CHROMIUM, description="Browser engine")
    headless: bool = Field(default=True, description="Run without a visible window")
    launch_args: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LAUNCH_ARGS),
        description="Command line flags passed to the browser"
    )
    launch_timeout_ms: int = Field(default=30000, gt=0)
    window_width: int = Field(default=1920, gt=0)
    window_height: int = Field(default=1080, gt=0)
    user_agent: Optional[str] = None
    locale: Optional[str] = None
    ignore_https_errors: bool = True
    forward_console: bool = True

    @field_validator('engine')
    @classmethod
    def validate_engine(cls, v):
        valid_engines = {
            BrowserEngineType.CHROMIUM,
            BrowserEngineType.FIREFOX,
            BrowserEngineType.WEBKIT,
        }
        if v not in valid_engines:
            raise ValueError(f"Engine must be one of: {valid_engines}")
        return v


class PipelineSettings(BaseModel):
    """Timeouts, retry policy and heuristics for the analysis pipeline."""

    homepage_timeout_ms: int = Field(default=25000, gt=0)
    product_page_timeout_ms: int = Field(default=20000, gt=0)
    navigation_timeout_ms: int = Field(default=15000, gt=0)
    settle_delay_ms: int = Field(default=3000, ge=0)
    consent_attempts: int = Field(default=3, ge=1)
    consent_retry_delay_ms: int = Field(default=1000, ge=0)
    elevar_attempts: int = Field(default=5, ge=1)
    elevar_retry_delay_ms: int = Field(default=1000, ge=0)
    elevar_fetch_timeout_ms: int = Field(default=10000, gt=0)
    product_link_selector: str = Field(default=DEFAULT_PRODUCT_LINK_SELECTOR, min_length=1)
    analyze_product_page: bool = True


class ApiSettings(BaseModel):
    """HTTP API settings."""

    cors_origins: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
        description="Origins allowed to call the API from a browser"
    )


class AnalysisSettings(BaseModel):
    """Root configuration for store analysis."""

    environment: str = Field(default="production", description="Environment name")
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {'production', 'staging', 'development', 'test'}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    def effective_browser(self) -> BrowserSettings:
        """Browser settings with environment overrides applied."""
        overrides = self.environments.get(self.environment, {}).get('browser', {})
        if not overrides:
            return self.browser
        return BrowserSettings(**{**self.browser.model_dump(), **overrides})

    def effective_pipeline(self) -> PipelineSettings:
        """Pipeline settings with environment overrides applied."""
        overrides = self.environments.get(self.environment, {}).get('pipeline', {})
        if not overrides:
            return self.pipeline
        return PipelineSettings(**{**self.pipeline.model_dump(), **overrides})

    def get_browser_config(self) -> BrowserConfig:
        """Get browser configuration with environment overrides applied."""
        browser = self.effective_browser()

        return BrowserConfig(
            engine=browser.engine,
            headless=browser.headless,
            launch_args=browser.launch_args,
            launch_timeout_ms=browser.launch_timeout_ms,
            viewport={'width': browser.window_width, 'height': browser.window_height},
            user_agent=browser.user_agent,
            ignore_https_errors=browser.ignore_https_errors,
            locale=browser.locale,
            forward_console=browser.forward_console,
        )

    def get_pipeline_config(self, handle_signals: bool = False) -> PipelineConfig:
        """Get pipeline configuration with environment overrides applied."""
        pipeline = self.effective_pipeline()

        page_config = PageAnalyzerConfig(
            navigation_timeout_ms=pipeline.navigation_timeout_ms,
            settle_delay_ms=pipeline.settle_delay_ms,
            consent_attempts=pipeline.consent_attempts,
            consent_retry_delay_ms=pipeline.consent_retry_delay_ms,
            elevar_attempts=pipeline.elevar_attempts,
            elevar_retry_delay_ms=pipeline.elevar_retry_delay_ms,
            elevar_fetch_timeout_ms=pipeline.elevar_fetch_timeout_ms,
        )

        return PipelineConfig(
            browser_config=self.get_browser_config(),
            page_config=page_config,
            homepage_timeout_ms=pipeline.homepage_timeout_ms,
            product_page_timeout_ms=pipeline.product_page_timeout_ms,
            product_link_selector=pipeline.product_link_selector,
            analyze_product_page=pipeline.analyze_product_page,
            handle_signals=handle_signals,
        )


class AnalysisConfigManager:
    """Manager for analysis configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to a YAML config file. Defaults to
                config/analysis.yaml, which may be absent.
        """
        self._explicit_path = config_path is not None
        self.config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
        self._config: Optional[AnalysisSettings] = None
        self._loaded_env = None

    def load_config(self, force_reload: bool = False) -> AnalysisSettings:
        """Load configuration from YAML file.

        Args:
            force_reload: Force reload even if already cached

        Returns:
            Loaded and validated configuration

        Raises:
            FileNotFoundError: If an explicitly given config file doesn't exist
            ValueError: If the YAML is invalid or validation fails
        """
        current_env = os.environ.get(ENVIRONMENT_VARIABLE)

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        config_data: Dict[str, Any] = {}

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}")
        elif self._explicit_path:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration in {self.config_path} must be a mapping")

        if current_env:
            config_data['environment'] = current_env

        try:
            self._config = AnalysisSettings(**config_data)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}")

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> AnalysisSettings:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self.config.environment


def load_settings(config_path: Optional[Union[str, Path]] = None) -> AnalysisSettings:
    """Load analysis settings from YAML.

    Args:
        config_path: Path to config file; the default path is optional

    Returns:
        Validated settings
    """
    return AnalysisConfigManager(config_path).load_config()
