"""
AWS client stack.

This module provides the factory that all boto3 clients of the task runner are created with.
"""
import logging
import threading
from functools import lru_cache
from typing import Optional

from boto3.session import Session
from botocore.client import BaseClient
from botocore.config import Config

from cumulus_ecs_task import config as runner_config

LOG = logging.getLogger(__name__)

MAX_POOL_CONNECTIONS = 50


class ServiceLevelClientFactory:
    """
    A service level client factory, preseeded with parameters for the boto3 client creation.
    Will create any service client with parameters already provided by the ClientFactory.
    """

    def __init__(self, *, factory: "ClientFactory", client_creation_params: dict):
        self._factory = factory
        self._client_creation_params = client_creation_params

    def get_client(self, service: str):
        return self._factory.get_client(service_name=service, **self._client_creation_params)

    def __getattr__(self, service: str):
        # e.g., `connect_to().lambda_` -> "lambda"
        return self.get_client(service.rstrip("_"))


class ClientFactory:
    """
    Factory to build the AWS clients.

    Boto client creation is resource intensive. This class caches all Boto
    clients it creates and must be used instead of directly using boto lib.
    """

    def __init__(self, session: Session = None, config: Config = None):
        """
        :param session: Session to be used for client creation. Will create a new session if not provided.
            Sessions are not generally thread safe, the factory serializes client creation with a lock.
        :param config: Config used as default for client creation.
        """
        self._config: Config = config or Config(max_pool_connections=MAX_POOL_CONNECTIONS)
        self._session: Session = session or Session()
        self._create_client_lock = threading.RLock()

    def __call__(
        self,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> ServiceLevelClientFactory:
        """
        Get back an object which lets you select the typed service you want to access with the given attributes

        :param region_name: Name of the AWS region to be associated with the client.
            Defaults to ``config.AWS_DEFAULT_REGION``.
        :param endpoint_url: Full endpoint URL to be used by the client.
            Defaults to ``config.AWS_ENDPOINT_URL``, or the public AWS endpoint if unset.
        :param config: Boto config for advanced use.
        :return: Service Region Client Creator
        """
        params = {
            "region_name": region_name,
            "endpoint_url": endpoint_url,
            "config": config,
        }
        return ServiceLevelClientFactory(factory=self, client_creation_params=params)

    def get_client(
        self,
        service_name: str,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> BaseClient:
        if config is None:
            config = self._config
        else:
            config = self._config.merge(config)

        return self._get_client(
            service_name=service_name,
            region_name=region_name or runner_config.AWS_DEFAULT_REGION,
            endpoint_url=endpoint_url or runner_config.AWS_ENDPOINT_URL,
            config=config,
        )

    # the cache key includes the Config object, which compares by identity
    @lru_cache(maxsize=256)
    def _get_client(
        self,
        service_name: str,
        region_name: str,
        endpoint_url: Optional[str],
        config: Config,
    ) -> BaseClient:
        """
        Returns a boto3 client with the given configuration.
        This is a cached call, so modifications to the used client will affect others.
        Client creation is behind a lock as it is not generally thread safe.
        """
        with self._create_client_lock:
            LOG.debug("Creating %s client for region %s", service_name, region_name)
            return self._session.client(
                service_name=service_name,
                region_name=region_name,
                endpoint_url=endpoint_url,
                config=config,
            )


connect_to = ClientFactory()
