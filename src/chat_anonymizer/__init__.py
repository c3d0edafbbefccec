"""Chat Anonymizer — reversible anonymization of chat text sent to remote models."""

from .anonymizer import Anonymizer, PrivacyConfig
from .vault import Vault
from .middleware import AnonymizeMiddleware
from .streaming import StreamingDeanonymizer
from .config import create_anonymizer, create_middleware, load_config, load_from_yaml
from .patterns import DEFAULT_RULES, InvalidPatternError
from .types import AnonymizationRule

__all__ = [
    "Anonymizer", "PrivacyConfig",
    "Vault",
    "AnonymizeMiddleware",
    "StreamingDeanonymizer",
    "create_anonymizer", "create_middleware", "load_config", "load_from_yaml",
    "DEFAULT_RULES", "InvalidPatternError",
    "AnonymizationRule",
]
__version__ = "0.1.0"
