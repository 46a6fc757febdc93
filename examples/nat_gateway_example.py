"""Example usage of the NAT gateway reconciler and error handling."""

import threading

from natgw_lifecycle.provisioners import (
    ConnectivityType,
    EC2NatGatewayClient,
    NatGatewayReconciler,
    ResourceDescriptor,
)
from natgw_lifecycle.tagging import DefaultTagsConfig, IgnoreTagsConfig, TagManager
from natgw_lifecycle.utils import (
    AWSClientManager,
    NatGatewayError,
    WaitError,
    setup_logging,
)


def build_reconciler(region: str = 'us-east-1') -> NatGatewayReconciler:
    client_manager = AWSClientManager(profile='default', region=region)
    return NatGatewayReconciler(
        client=EC2NatGatewayClient(client_manager.get_client('ec2')),
        tag_manager=TagManager(
            default_tags=DefaultTagsConfig({'ManagedBy': 'natgw'}),
            ignore_tags=IgnoreTagsConfig(key_prefixes=['kubernetes.io/']),
        ),
    )


def example_create_public_gateway(reconciler: NatGatewayReconciler):
    """Example: Create a public NAT gateway and wait for it."""
    print("=== Create Public NAT Gateway ===")

    descriptor = ResourceDescriptor(
        subnet_id='subnet-0123456789abcdef0',
        allocation_id='eipalloc-0123456789abcdef0',
        tags={'Name': 'egress-a'},
    )

    try:
        state = reconciler.create(descriptor)
    except WaitError as e:
        # The gateway exists but never became available; keep the id to clean up
        print(e.to_user_message())
        print(f"  Gateway to clean up: {e.context.nat_gateway_id}")
        return None
    except NatGatewayError as e:
        print(e.to_user_message())
        return None

    print(f"✓ Created {state.id}")
    print(f"  Public IP: {state.public_ip}")
    print(f"  Private IP: {state.private_ip}")
    return state


def example_private_gateway_with_cancel(reconciler: NatGatewayReconciler):
    """Example: Create a private gateway, giving up after 60 seconds."""
    print("\n=== Create Private NAT Gateway (cancellable) ===")

    cancel_event = threading.Event()
    timer = threading.Timer(60, cancel_event.set)
    timer.start()

    try:
        state = reconciler.create(
            ResourceDescriptor(
                subnet_id='subnet-0fedcba9876543210',
                connectivity_type=ConnectivityType.PRIVATE,
            ),
            cancel_event=cancel_event,
        )
        print(f"✓ Created {state.id} ({state.private_ip})")
    except NatGatewayError as e:
        print(e.to_user_message())
    finally:
        timer.cancel()


def example_update_and_delete(reconciler: NatGatewayReconciler, nat_gateway_id: str):
    """Example: Change tags in place, then delete."""
    print("\n=== Update Tags and Delete ===")

    current = reconciler.read(nat_gateway_id)
    if current is None:
        print(f"{nat_gateway_id} is gone")
        return

    desired = reconciler.tag_manager.desired_tags_all({'Name': 'egress-a', 'CostCenter': '4410'})
    diff = reconciler.update(nat_gateway_id, current.tags_all, desired)
    print(f"✓ Tags set: {sorted(diff.to_set)}, removed: {sorted(diff.to_remove)}")

    reconciler.delete(nat_gateway_id)
    print(f"✓ Deleted {nat_gateway_id}")

    # Deleting again is a no-op
    reconciler.delete(nat_gateway_id)


if __name__ == '__main__':
    setup_logging('info', log_dir=None)
    reconciler = build_reconciler()

    state = example_create_public_gateway(reconciler)
    example_private_gateway_with_cancel(reconciler)
    if state is not None:
        example_update_and_delete(reconciler, state.id)
