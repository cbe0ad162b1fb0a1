"""HookRelay configuration."""

from hookrelay.config.loader import ConfigLoadError, YAMLConfigLoader, load_config
from hookrelay.config.models import HookRelayConfig

__all__ = ["ConfigLoadError", "HookRelayConfig", "YAMLConfigLoader", "load_config"]
