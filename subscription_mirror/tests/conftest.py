"""Fixtures for the subscription tests."""
from __future__ import annotations

import pytest

from subscription_mirror.app.subscriptions import SubscriptionService
from subscription_mirror.tests.support import (
    NOW,
    WEBHOOK_SECRET,
    FakeProviderClient,
    RecordingSubscriptionRepository,
)


@pytest.fixture
def subscription_components():
    repository = RecordingSubscriptionRepository()
    provider_client = FakeProviderClient()
    service = SubscriptionService(
        repository=repository,
        provider_client=provider_client,
        webhook_secret=WEBHOOK_SECRET,
        clock=lambda: NOW,
    )
    return repository, provider_client, service
