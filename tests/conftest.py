import pytest

from subscription.plans import Plan
from tests.support import FakeStores, FakeUsage, FakeCorrelator, STORE_ID


@pytest.fixture
def stores():
    return FakeStores({STORE_ID: Plan.FREE})


@pytest.fixture
def usage():
    return FakeUsage()


@pytest.fixture
def correlator():
    return FakeCorrelator(
        customers={'cus_123': STORE_ID},
        prices={
            'price_basic': 'BASIC',
            'price_pro': 'PRO',
            'price_enterprise': 'ENTERPRISE',
        },
    )
