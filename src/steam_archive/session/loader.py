import importlib
import logging
from typing import Callable

from ..errors import ConfigurationError
from ..storage.records import AccountRecord
from .steam_session import SteamSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[AccountRecord], SteamSession]


def load_session_factory(spec: str) -> SessionFactory:
    """Resolve "package.module:attribute" to a callable that builds a session for an account."""
    module_name, _, attribute = spec.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Session factory {spec!r} must look like 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import session module {module_name!r}: {e}") from e
    factory = module
    for part in attribute.split("."):
        factory = getattr(factory, part, None)
        if factory is None:
            raise ConfigurationError(f"{module_name!r} has no attribute {attribute!r}")
    if not callable(factory):
        raise ConfigurationError(f"Session factory {spec!r} is not callable")
    logger.info("Using session factory %s", spec)
    return factory
