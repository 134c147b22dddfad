"""Composition root.

Wires configuration, AWS clients and the orchestrators together with
injector. One Injector is built per invocation, so nothing is shared
between runs.
"""

from __future__ import annotations

from injector import Binder, Injector, Module, provider, singleton

from devbox.aws.clients import AWSClients, AWSModule
from devbox.aws.dns import DnsUpdater
from devbox.config import DevboxConfig, Timings
from devbox.discovery import CapacityDiscoveryEngine
from devbox.recover import RecoveryPlanner
from devbox.resize import InstanceResizeOrchestrator
from devbox.volumes import VolumeRelocationOrchestrator


class DevboxModule(Module):
    """DI module that provides the orchestrators for one configuration."""

    def __init__(self, config: DevboxConfig) -> None:
        self._config = config

    def configure(self, binder: Binder) -> None:
        binder.bind(DevboxConfig, to=self._config)
        binder.bind(Timings, to=self._config.timings)

    @singleton
    @provider
    def provide_discovery(self, clients: AWSClients) -> CapacityDiscoveryEngine:
        return CapacityDiscoveryEngine(clients.ec2())

    @singleton
    @provider
    def provide_dns(self, clients: AWSClients, config: DevboxConfig) -> DnsUpdater:
        return DnsUpdater(
            clients.ec2(),
            clients.route53,
            dns_name=config.dns_name,
            dns_zone=config.dns_zone,
        )

    @singleton
    @provider
    def provide_resizer(
        self,
        clients: AWSClients,
        config: DevboxConfig,
        dns: DnsUpdater,
    ) -> InstanceResizeOrchestrator:
        return InstanceResizeOrchestrator(
            clients.ec2(),
            timings=config.timings,
            default_max_price=config.default_max_price,
            dns=dns if config.dns_zone and config.dns_name else None,
        )

    @singleton
    @provider
    def provide_recovery(
        self,
        clients: AWSClients,
        discovery: CapacityDiscoveryEngine,
        resizer: InstanceResizeOrchestrator,
        config: DevboxConfig,
    ) -> RecoveryPlanner:
        return RecoveryPlanner(
            clients.ec2(),
            discovery,
            resizer,
            default_max_price=config.default_max_price_value,
        )

    @singleton
    @provider
    def provide_relocator(
        self,
        clients: AWSClients,
        config: DevboxConfig,
    ) -> VolumeRelocationOrchestrator:
        return VolumeRelocationOrchestrator(clients, timings=config.timings)


def build_injector(config: DevboxConfig, *overrides: Module) -> Injector:
    """Build the object graph. Later modules override earlier bindings."""
    return Injector([AWSModule(), DevboxModule(config), *overrides])
