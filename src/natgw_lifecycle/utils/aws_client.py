"""boto3 session and EC2 client construction."""

import boto3
from botocore.config import Config
from botocore.exceptions import ProfileNotFound
from typing import Optional, Dict, Any
from natgw_lifecycle.utils.errors import ConfigurationError
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class AWSClientManager:
    """Builds and caches boto3 clients for one profile and region.

    Throttling and dropped connections are retried by botocore's adaptive
    retry mode. Lifecycle mutations are never retried above this layer.
    """

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        max_attempts: int = 5,
        pool_size: int = 20
    ):
        self.profile = profile
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._boto_config = Config(
            max_pool_connections=pool_size,
            retries={'mode': 'adaptive', 'max_attempts': max_attempts},
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Lazily created session for the configured profile and region.

        Raises:
            ConfigurationError: If the profile does not exist or no region
                can be resolved from arguments, profile or environment.
        """
        if self._session is None:
            try:
                session = boto3.Session(profile_name=self.profile, region_name=self.region)
                region_name = session.region_name
            except ProfileNotFound as e:
                raise ConfigurationError(
                    f"AWS profile not found: {self.profile}",
                    cause=e,
                    suggestions=["Check the profile name in ~/.aws/config", "Pass --profile"]
                ) from e

            if not region_name:
                raise ConfigurationError(
                    "No AWS region configured",
                    suggestions=[
                        "Set project.region in natgw.yaml",
                        "Pass --region or set AWS_DEFAULT_REGION"
                    ]
                )

            logger.info(
                f"Using AWS region {region_name} "
                f"(profile: {self.profile or 'default'})"
            )
            self._session = session

        return self._session

    def get_client(self, service_name: str):
        """Return the cached client for ``service_name``, creating it once."""
        client = self._clients.get(service_name)
        if client is None:
            client = self.session.client(service_name, config=self._boto_config)
            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client in {self.session.region_name}")
        return client
