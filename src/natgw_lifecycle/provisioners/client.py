"""Remote client contract and its boto3 EC2 implementation."""

import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from natgw_lifecycle.provisioners.models import ConnectivityType, NatGateway
from natgw_lifecycle.utils.errors import ErrorContext, MalformedResponseError, error_handler
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)

# TagSpecifications resource type for NAT gateways
NAT_GATEWAY_RESOURCE_TYPE = 'natgateway'


@dataclass
class CreateRequest:
    """Mutation request for a new NAT gateway."""
    subnet_id: str
    allocation_id: Optional[str] = None
    connectivity_type: Optional[ConnectivityType] = None
    tags: Dict[str, str] = field(default_factory=dict)
    client_token: str = field(default_factory=lambda: str(uuid.uuid4()))


class RemoteClient(Protocol):
    """Atomic calls against the control plane.

    Implementations raise ``NotFoundError`` when the target does not exist,
    ``TransportError`` for network, credential and throttling failures, and
    ``RemoteError`` for any other error code. ``describe_objects`` returns an
    empty list, not an error, when nothing matches.
    """

    def create_object(self, request: CreateRequest) -> str:
        ...

    def describe_objects(self, ids: List[str]) -> List[NatGateway]:
        ...

    def tag_object(self, object_id: str, tags: Dict[str, str]) -> None:
        ...

    def untag_object(self, object_id: str, keys: Iterable[str]) -> None:
        ...

    def delete_object(self, object_id: str) -> None:
        ...


class EC2NatGatewayClient:
    """RemoteClient backed by a boto3 EC2 client."""

    def __init__(self, ec2_client):
        """Initialize with a boto3 EC2 client.

        Args:
            ec2_client: boto3 ``ec2`` client, typically from AWSClientManager
        """
        self.ec2_client = ec2_client

    def create_object(self, request: CreateRequest) -> str:
        params = {
            'SubnetId': request.subnet_id,
            'ClientToken': request.client_token,
        }
        if request.allocation_id:
            params['AllocationId'] = request.allocation_id
        if request.connectivity_type:
            params['ConnectivityType'] = ConnectivityType(request.connectivity_type).value
        if request.tags:
            params['TagSpecifications'] = [
                {
                    'ResourceType': NAT_GATEWAY_RESOURCE_TYPE,
                    'Tags': [{'Key': k, 'Value': v} for k, v in request.tags.items()]
                }
            ]

        logger.debug(f"Creating EC2 NAT Gateway: {params}")
        try:
            response = self.ec2_client.create_nat_gateway(**params)
        except (ClientError, BotoCoreError) as e:
            raise error_handler.translate(
                e, ErrorContext(operation='create', aws_operation='CreateNatGateway')
            ) from e

        nat_gateway_id = response.get('NatGateway', {}).get('NatGatewayId')
        if not nat_gateway_id:
            raise MalformedResponseError(
                "CreateNatGateway response is missing NatGatewayId",
                context=ErrorContext(operation='create', aws_operation='CreateNatGateway'),
            )
        return nat_gateway_id

    def describe_objects(self, ids: List[str]) -> List[NatGateway]:
        try:
            response = self.ec2_client.describe_nat_gateways(NatGatewayIds=list(ids))
        except (ClientError, BotoCoreError) as e:
            raise error_handler.translate(
                e,
                ErrorContext(
                    nat_gateway_id=ids[0] if len(ids) == 1 else None,
                    operation='describe',
                    aws_operation='DescribeNatGateways',
                )
            ) from e

        return [NatGateway.from_api(item) for item in response.get('NatGateways') or []]

    def tag_object(self, object_id: str, tags: Dict[str, str]) -> None:
        try:
            self.ec2_client.create_tags(
                Resources=[object_id],
                Tags=[{'Key': k, 'Value': v} for k, v in tags.items()]
            )
        except (ClientError, BotoCoreError) as e:
            raise error_handler.translate(
                e, ErrorContext(nat_gateway_id=object_id, operation='update', aws_operation='CreateTags')
            ) from e

    def untag_object(self, object_id: str, keys: Iterable[str]) -> None:
        try:
            self.ec2_client.delete_tags(
                Resources=[object_id],
                Tags=[{'Key': key} for key in sorted(keys)]
            )
        except (ClientError, BotoCoreError) as e:
            raise error_handler.translate(
                e, ErrorContext(nat_gateway_id=object_id, operation='update', aws_operation='DeleteTags')
            ) from e

    def delete_object(self, object_id: str) -> None:
        try:
            self.ec2_client.delete_nat_gateway(NatGatewayId=object_id)
        except (ClientError, BotoCoreError) as e:
            raise error_handler.translate(
                e, ErrorContext(nat_gateway_id=object_id, operation='delete', aws_operation='DeleteNatGateway')
            ) from e
