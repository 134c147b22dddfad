"""AWS client factories with dependency injection.

A single boto3 session backs every client. Clients are created per region
and cached, so the target-region client used by volume relocation is a
separate object from the home-region one and shares no mutable state with it.
"""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig
from injector import Module, provider, singleton

from devbox.config import DevboxConfig

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client
    from mypy_boto3_route53 import Route53Client

_RETRY_CONFIG = BotoConfig(retries={"max_attempts": 5, "mode": "standard"})


class AWSClients:
    """Region-aware factory for EC2 and Route53 clients."""

    def __init__(
        self,
        region: str,
        *,
        endpoint_url: str | None = None,
        session: boto3.Session | None = None,
    ) -> None:
        self.region = region
        self._endpoint_url = endpoint_url
        self._session = session or boto3.Session()
        self._ec2: dict[str, Any] = {}

    def _client(self, service: str, region: str) -> Any:
        kwargs: dict[str, Any] = {"region_name": region, "config": _RETRY_CONFIG}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        return self._session.client(service, **kwargs)

    def ec2(self, region: str | None = None) -> EC2Client:
        region = region or self.region
        if region not in self._ec2:
            self._ec2[region] = self._client("ec2", region)
        return self._ec2[region]

    @cached_property
    def route53(self) -> Route53Client:
        return self._client("route53", self.region)


class AWSModule(Module):
    """DI module that provides AWS clients.

    Usage:
        >>> from injector import Injector
        >>> from devbox.aws import AWSModule
        >>> from devbox.config import DevboxConfig
        >>>
        >>> injector = Injector([AWSModule()])
        >>> injector.binder.bind(DevboxConfig, to=DevboxConfig(region="us-east-1"))
        >>> clients = injector.get(AWSClients)
    """

    @singleton
    @provider
    def provide_session(self) -> boto3.Session:
        """Provide singleton boto3 session."""
        return boto3.Session()

    @singleton
    @provider
    def provide_clients(self, session: boto3.Session, config: DevboxConfig) -> AWSClients:
        """Provide the region-aware client factory."""
        return AWSClients(config.region, endpoint_url=config.endpoint_url, session=session)
