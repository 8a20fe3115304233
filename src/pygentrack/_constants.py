"""Internal constants shared across the library."""

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_NAMESPACE = "heartbeat::generatorChanges"
KEY_SEPARATOR = "::"
DEFAULT_SOCKET_TIMEOUT: float = 2.0
