"""Configuration loading and Pydantic models for the Object Lambda transformer."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

CONFIG_ENV_VAR = "OBJECTLAMBDA_CONFIG"


class BackingStoreConfig(BaseModel):
    """Backing store (origin bucket) connection configuration."""

    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str = ""
    use_path_style: bool = False
    access_key_id: str = ""
    secret_access_key: str = ""
    presign_expires: int = Field(default=300, ge=1, le=300)
    max_attempts: int = Field(default=3, ge=1)


class AccessPointConfig(BaseModel):
    """Object Lambda access point client configuration.

    WriteGetObjectResponse calls go to AWS S3 in this region with the
    function's own credentials, whatever the backing store is.
    """

    region: str = "us-east-1"


class TransformConfig(BaseModel):
    """Request transformation settings."""

    bypass_prefix: str = "verify_"
    part_size: int = Field(default=5 * 1024 * 1024, ge=1)
    fetch_timeout: float = Field(default=60.0, gt=0)


class LoggingConfig(BaseModel):
    """Log level and output format."""

    level: str = "INFO"
    format: str = "text"


class MetricsConfig(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = False


class ObjectLambdaConfig(BaseModel):
    """Top-level Object Lambda configuration."""

    backing_store: BackingStoreConfig = Field(default_factory=BackingStoreConfig)
    access_point: AccessPointConfig = Field(default_factory=AccessPointConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def _parse_backing_store(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the backing_store section from YAML data.

    Handles nested structure: backing_store.credentials.access_key_id ->
    access_key_id, etc.
    """
    if data is None:
        return {}
    result: dict[str, Any] = {
        "bucket": data.get("bucket", ""),
        "region": data.get("region", "us-east-1"),
        "endpoint_url": data.get("endpoint_url", ""),
        "use_path_style": data.get("use_path_style", False),
        "presign_expires": data.get("presign_expires", 300),
        "max_attempts": data.get("max_attempts", 3),
    }
    credentials = data.get("credentials")
    if isinstance(credentials, dict):
        result["access_key_id"] = credentials.get("access_key_id", "")
        result["secret_access_key"] = credentials.get("secret_access_key", "")
    return result


def _parse_access_point(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the access_point section from YAML data."""
    if data is None:
        return {}
    return {"region": data.get("region", "us-east-1")}


def _parse_transform(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the transform section from YAML data."""
    if data is None:
        return {}
    return {
        "bypass_prefix": data.get("bypass_prefix", "verify_"),
        "part_size": data.get("part_size", 5 * 1024 * 1024),
        "fetch_timeout": data.get("fetch_timeout", 60.0),
    }


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_metrics(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the metrics section from YAML data."""
    if data is None:
        return {}
    return {"enabled": data.get("enabled", False)}


def load_config(path: Path) -> ObjectLambdaConfig:
    """Load an ObjectLambdaConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated ObjectLambdaConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If a value is out of range.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return ObjectLambdaConfig(
        backing_store=BackingStoreConfig(**_parse_backing_store(raw.get("backing_store"))),
        access_point=AccessPointConfig(**_parse_access_point(raw.get("access_point"))),
        transform=TransformConfig(**_parse_transform(raw.get("transform"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        metrics=MetricsConfig(**_parse_metrics(raw.get("metrics"))),
    )


def config_from_env(environ: dict[str, str] | None = None) -> ObjectLambdaConfig:
    """Build the configuration for a Lambda execution environment.

    Loads the YAML file named by ``OBJECTLAMBDA_CONFIG`` when set, then
    applies the ``OBJECTLAMBDA_BUCKET``, ``OBJECTLAMBDA_ENDPOINT_URL``,
    ``OBJECTLAMBDA_LOG_LEVEL`` and ``OBJECTLAMBDA_LOG_FORMAT`` overrides.
    Without a file, the Lambda runtime's ``AWS_REGION`` selects the access
    point region.
    Credentials are left to the standard AWS credential chain.

    Args:
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        The resolved configuration.
    """
    env = os.environ if environ is None else environ

    config_path = env.get(CONFIG_ENV_VAR)
    config = load_config(Path(config_path)) if config_path else ObjectLambdaConfig()

    if env.get("OBJECTLAMBDA_BUCKET"):
        config.backing_store.bucket = env["OBJECTLAMBDA_BUCKET"]
    if env.get("OBJECTLAMBDA_ENDPOINT_URL"):
        config.backing_store.endpoint_url = env["OBJECTLAMBDA_ENDPOINT_URL"]
    if env.get("AWS_REGION") and not config_path:
        config.access_point.region = env["AWS_REGION"]
    if env.get("OBJECTLAMBDA_LOG_LEVEL"):
        config.logging.level = env["OBJECTLAMBDA_LOG_LEVEL"]
    if env.get("OBJECTLAMBDA_LOG_FORMAT"):
        config.logging.format = env["OBJECTLAMBDA_LOG_FORMAT"]
    return config
