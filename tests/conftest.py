"""Pytest configuration and fixtures."""

import pytest

from fakes import FakeClock, FakeRemoteClient

from natgw_lifecycle.provisioners import NatGatewayReconciler, PollPolicy, Waiter
from natgw_lifecycle.provisioners.nat_gateway import CREATED_CLASSIFIER, DELETED_CLASSIFIER
from natgw_lifecycle.tagging import DefaultTagsConfig, IgnoreTagsConfig, TagManager


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(clock: FakeClock) -> Waiter:
    return Waiter(clock=clock, sleep=clock.sleep)


@pytest.fixture
def remote() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def tag_manager() -> TagManager:
    return TagManager(
        default_tags=DefaultTagsConfig({"Project": "network", "Owner": "platform"}),
        ignore_tags=IgnoreTagsConfig(keys=["LastScanned"], key_prefixes=["kubernetes.io/"]),
    )


@pytest.fixture
def reconciler(remote: FakeRemoteClient, waiter: Waiter, tag_manager: TagManager) -> NatGatewayReconciler:
    return NatGatewayReconciler(
        client=remote,
        waiter=waiter,
        tag_manager=tag_manager,
        create_policy=PollPolicy(classifier=CREATED_CLASSIFIER, timeout=600, jitter=0, not_found_checks=3),
        delete_policy=PollPolicy(classifier=DELETED_CLASSIFIER, timeout=1800, jitter=0),
    )
