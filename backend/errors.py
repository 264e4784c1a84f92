"""Error types shared by the publisher and ingest sides."""


class ConfigPipelineError(Exception):
    """Base class for pipeline errors."""


class MalformedPath(ConfigPipelineError, ValueError):
    """A gNMI path string could not be parsed."""


class MissingIdentity(ConfigPipelineError):
    """Neither hostname nor router_id could be recovered from a payload."""


class MissingASN(ConfigPipelineError):
    """BGP marker present but no usable ASN."""


class ConfigError(ConfigPipelineError, ValueError):
    """Publisher configuration is invalid."""


class PublishError(ConfigPipelineError):
    """A collection message could not be handed to the bus."""
