from decimal import Decimal

import pytest

from eventtalent.core.exceptions import ValidationException
from eventtalent.schemas.platform_config import SettlementConfig


def test_defaults_without_a_row(config_service):
    config, updated_at = config_service.get_settlement_config_with_meta()

    assert config == SettlementConfig()
    assert config.platform_fee_rate == Decimal("0.10")
    assert config.currency == "KES"
    assert config.review_disclosure_window_hours == 336
    assert updated_at is None


def test_ensure_seeds_once(config_service):
    seeded = config_service.ensure_settlement_config()
    config_service.update_settlement_config({"currency": "ngn"})

    again = config_service.ensure_settlement_config()

    assert seeded.currency == "KES"
    assert again.currency == "NGN"


def test_update_changes_next_booking_split(config_service, flow, admin):
    config, updated_at = config_service.update_settlement_config(
        {"platform_fee_rate": "0.15"}, admin.id
    )

    booking = flow.pending("10000.00")

    assert config.platform_fee_rate == Decimal("0.15")
    assert updated_at is not None
    assert booking.platform_fee_amount == Decimal("1500.00")
    assert booking.talent_amount == Decimal("8500.00")


def test_existing_bookings_keep_their_split(config_service, flow):
    booking = flow.pending("10000.00")

    config_service.update_settlement_config({"platform_fee_rate": "0.20"})

    assert booking.platform_fee_amount == Decimal("1000.00")


@pytest.mark.parametrize(
    "changes",
    [
        {"platform_fee_rate": "1.5"},
        {"platform_fee_rate": "-0.01"},
        {"currency": "K3S"},
        {"review_disclosure_window_hours": 0},
        {"unknown_setting": True},
    ],
)
def test_invalid_update_is_rejected(config_service, changes):
    with pytest.raises(ValidationException):
        config_service.update_settlement_config(changes)

    assert config_service.get_settlement_config() == SettlementConfig()
