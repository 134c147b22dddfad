"""AWS control-plane access: clients, error classification and describe helpers."""

from devbox.aws.clients import AWSClients, AWSModule

__all__ = ["AWSClients", "AWSModule"]
