from .models import (
    COMPOSE_CONFIG_FILES_LABEL,
    Container,
    Image,
    iter_json_rows,
    parse_containers,
    parse_images,
)
from .runtime import (
    DockerCli,
    DockerRuntimeError,
    DockerUnavailableError,
)

__all__ = [
    "COMPOSE_CONFIG_FILES_LABEL",
    "Container",
    "DockerCli",
    "DockerRuntimeError",
    "DockerUnavailableError",
    "Image",
    "iter_json_rows",
    "parse_containers",
    "parse_images",
]
