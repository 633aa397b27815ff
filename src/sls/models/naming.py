"""
Resource naming for serverless services.

Every provisioned resource carries a prefix that encodes where it lives:
``<region_code>-<env>``, e.g. ``use1-prod`` for ``us-east-1`` in ``prod``.
A service name adds the service label: ``use1-prod-orders``.
"""

from dataclasses import dataclass
from enum import Enum

from sls.handlers.utils.failures import InvalidParamError, ValidationError, wrap


class Region(str, Enum):
    """AWS regions a service can be deployed to."""
    US_EAST_1 = "us-east-1"
    US_EAST_2 = "us-east-2"
    US_WEST_1 = "us-west-1"
    US_WEST_2 = "us-west-2"
    AF_SOUTH_1 = "af-south-1"
    AP_EAST_1 = "ap-east-1"
    AP_SOUTH_1 = "ap-south-1"
    AP_NORTHEAST_1 = "ap-northeast-1"
    AP_NORTHEAST_2 = "ap-northeast-2"
    AP_NORTHEAST_3 = "ap-northeast-3"
    AP_SOUTHEAST_1 = "ap-southeast-1"
    AP_SOUTHEAST_2 = "ap-southeast-2"
    CA_CENTRAL_1 = "ca-central-1"
    EU_CENTRAL_1 = "eu-central-1"
    EU_WEST_1 = "eu-west-1"
    EU_WEST_2 = "eu-west-2"
    EU_WEST_3 = "eu-west-3"
    EU_SOUTH_1 = "eu-south-1"
    EU_NORTH_1 = "eu-north-1"
    ME_SOUTH_1 = "me-south-1"
    SA_EAST_1 = "sa-east-1"
    US_GOV_EAST_1 = "us-gov-east-1"
    US_GOV_WEST_1 = "us-gov-west-1"

    def __str__(self) -> str:
        return self.value

    @property
    def code(self) -> str:
        return region_code(self.value)


DEFAULT_REGION = Region.US_EAST_1


def region_code(region: str) -> str:
    """
    Compress an AWS region into the short code used in resource names.

    ``us-east-1`` becomes ``use1``. Anything not shaped like
    ``<area>-<direction>-<number>`` has no code and gives ``""``.
    """
    parts = region.split("-")
    if len(parts) != 3 or not parts[1]:
        return ""
    return f"{parts[0]}{parts[1][0]}{parts[2]}"


def to_region(value: str) -> Region:
    """Resolve a region from its name (``us-east-1``) or its code (``use1``)."""
    for region in Region:
        if value == region.value or (region.code and value == region.code):
            return region
    raise ValidationError(f"aws region ({value}) is not mapped")


@dataclass(frozen=True)
class Prefix:
    """Naming prefix ``<region_code>-<env>`` shared by a deployment's resources."""

    region: Region
    env: str

    @classmethod
    def new(cls, region: str, env: str) -> "Prefix":
        if not region:
            raise InvalidParamError("[region] aws region is empty should be in the form of (us-east-1)")
        if not env:
            raise InvalidParamError("[env] application environment is empty")

        try:
            resolved = to_region(region)
        except ValidationError as e:
            raise wrap(e, "[region] to_region failed")

        return cls(region=resolved, env=env)

    @classmethod
    def default(cls, env: str) -> "Prefix":
        return cls.new(DEFAULT_REGION.value, env)

    @property
    def region_code(self) -> str:
        return self.region.code

    @property
    def aws_region(self) -> str:
        return self.region.value

    def is_valid(self) -> bool:
        return bool(self.env)

    def __str__(self) -> str:
        return f"{self.region.code}-{self.env}"


@dataclass(frozen=True)
class ServiceName:
    """
    Name of a microservice.

    A microservice is not a physical AWS resource but a collection of them
    (lambdas, queues, tables...), and its qualified name prefixes all of them.
    """

    prefix: Prefix
    label: str

    @classmethod
    def new(cls, region: str, env: str, label: str) -> "ServiceName":
        if not label:
            raise InvalidParamError("[label] service label is empty")
        return cls(prefix=Prefix.new(region, env), label=label)

    @property
    def app_title(self) -> str:
        """Unqualified service label, also the root of its parameter store path."""
        return self.label

    @property
    def qualified_name(self) -> str:
        return f"{self.prefix}-{self.label}"

    def __str__(self) -> str:
        return self.qualified_name
