"""
Configuration management for coursepay.

Loads settings from a YAML config file and provides typed access. Values
from the environment (or a .env file) override the YAML file.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of coursepay package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class CheckoutConfig:
    """Configuration for the checkout pricing engine."""

    # Backend
    api_base_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    request_timeout: float = 15.0       # seconds, applied by the HTTP transport

    # Coupon input
    debounce_ms: int = 500              # quiet period before a typed code is validated
    min_code_length: int = 4            # shorter typed codes are never sent
    max_code_length: int = 20

    # Presentation
    currency: str = "INR"
    currency_symbol: str = "₹"

    # Re-check wallet and coupon right before creating the order
    revalidate_at_payment: bool = True

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "CheckoutConfig":
        """Load configuration from YAML file, then apply environment overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        api_config = data.get('api', {})
        coupon_config = data.get('coupons', {})
        display_config = data.get('display', {})
        checkout_config = data.get('checkout', {})

        config = cls(
            api_base_url=api_config.get('base_url', cls.api_base_url),
            api_token=api_config.get('token'),
            request_timeout=float(api_config.get('timeout', cls.request_timeout)),
            debounce_ms=int(coupon_config.get('debounce_ms', cls.debounce_ms)),
            min_code_length=int(coupon_config.get('min_code_length', cls.min_code_length)),
            max_code_length=int(coupon_config.get('max_code_length', cls.max_code_length)),
            currency=display_config.get('currency', cls.currency),
            currency_symbol=display_config.get('currency_symbol', cls.currency_symbol),
            revalidate_at_payment=bool(checkout_config.get('revalidate_at_payment', cls.revalidate_at_payment)),
        )
        return config.with_env_overrides()

    def with_env_overrides(self) -> "CheckoutConfig":
        """Apply COURSEPAY_* environment variables on top of this config."""
        base_url = os.getenv("COURSEPAY_API_BASE_URL")
        if base_url:
            self.api_base_url = base_url
        token = os.getenv("COURSEPAY_API_TOKEN")
        if token:
            self.api_token = token
        timeout = os.getenv("COURSEPAY_REQUEST_TIMEOUT")
        if timeout:
            self.request_timeout = float(timeout)
        self.api_base_url = self.api_base_url.rstrip("/")
        return self


# Global config instance
_config: Optional[CheckoutConfig] = None


def get_config() -> CheckoutConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = CheckoutConfig.from_yaml()
    return _config


def set_config(config: CheckoutConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
