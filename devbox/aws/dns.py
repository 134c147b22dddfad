"""Route53 record for the workstation's public address."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from devbox.aws.ec2 import describe_instance
from devbox.constants import DNS_RECORD_TTL
from devbox.exceptions import NotFoundError

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client
    from mypy_boto3_route53 import Route53Client

log = logger.bind(component="dns")


def find_hosted_zone(route53: Route53Client, domain: str) -> str:
    """Return the id of the hosted zone named exactly domain."""
    resp = route53.list_hosted_zones_by_name(DNSName=domain, MaxItems="1")
    for zone in resp.get("HostedZones", []):
        if zone["Name"] == domain:
            return zone["Id"]
    raise NotFoundError("hosted zone", domain)


class DnsUpdater:
    """Points the workstation's A record at an instance."""

    def __init__(
        self,
        ec2: EC2Client,
        route53: Route53Client,
        *,
        dns_name: str,
        dns_zone: str,
    ) -> None:
        self._ec2 = ec2
        self._route53 = route53
        self.dns_name = dns_name
        self.dns_zone = dns_zone

    def update(self, instance_id: str) -> str:
        """Upsert the record and return the address it now points at."""
        inst = describe_instance(self._ec2, instance_id)
        if inst.public_ip is None:
            raise NotFoundError("public IP of instance", instance_id)

        zone_id = find_hosted_zone(self._route53, self.dns_zone)
        self._route53.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={
                "Comment": f"devbox: point {self.dns_name} at {instance_id} ({inst.public_ip})",
                "Changes": [
                    {
                        "Action": "UPSERT",
                        "ResourceRecordSet": {
                            "Name": self.dns_name,
                            "Type": "A",
                            "TTL": DNS_RECORD_TTL,
                            "ResourceRecords": [{"Value": inst.public_ip}],
                        },
                    }
                ],
            },
        )
        log.info("{name} -> {ip} ({id})", name=self.dns_name, ip=inst.public_ip, id=instance_id)
        return inst.public_ip
