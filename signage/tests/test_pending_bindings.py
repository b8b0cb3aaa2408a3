"""
Unit tests for device-id keyed pending bindings.

Tests cover:
- Device id validation
- One unclaimed request per device
- Immediate claim by the operator's bind-device
- Token pickup by the player until it presents the token
"""

import pytest

from signage.models import PendingDeviceBinding
from signage.services.errors import PairingError, PairingErrorKind


class TestCreate:
    """Tests for PendingBindingService.create()."""

    def test_rejects_malformed_device_id(self, pending_service, sample_screen, sample_owner):
        with pytest.raises(PairingError) as exc_info:
            pending_service.create('abc', sample_screen, sample_owner.id)

        assert exc_info.value.kind == PairingErrorKind.INVALID_DEVICE_ID

    def test_new_request_replaces_unclaimed_one(self, pending_service, db_session,
                                                sample_screen, second_screen, sample_owner):
        pending_service.create('a1b2c3d4', sample_screen, sample_owner.id)
        pending_service.create('A1B2C3D4', second_screen, sample_owner.id)
        db_session.commit()

        rows = PendingDeviceBinding.query.filter_by(device_id='A1B2C3D4').all()
        assert len(rows) == 1
        assert rows[0].screen_id == second_screen.id
        assert rows[0].device_token.startswith('dev_')


class TestClaim:
    """Tests for claim() and bind_device()."""

    def test_bind_device_materializes_live_binding(self, pending_service, credential_store,
                                                   sample_screen, sample_owner):
        binding = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)

        assert binding.revoked_at is None
        assert binding.device_info == 'device:A1B2C3D4'
        pending = PendingDeviceBinding.query.filter_by(device_id='A1B2C3D4').one()
        assert pending.claimed_at is not None
        assert pending.device_token == binding.device_token
        assert credential_store.list_by_screen(sample_screen.id) == [binding]

    def test_bind_device_supersedes_code_binding(self, pending_service, issuer, sample_screen, sample_owner):
        activation = issuer.issue(sample_screen, sample_owner.id)
        coded = issuer.redeem(activation.code)

        scanned = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)

        assert coded.revoked_at is not None
        assert scanned.revoked_at is None

    def test_claim_is_one_shot(self, pending_service, db_session, sample_screen, sample_owner):
        pending = pending_service.create('A1B2C3D4', sample_screen, sample_owner.id)
        pending_service.claim(pending)
        db_session.commit()

        with pytest.raises(PairingError) as exc_info:
            pending_service.claim(pending)

        assert exc_info.value.kind == PairingErrorKind.CODE_USED


class TestCollect:
    """Tests for the player pickup."""

    def test_token_is_redelivered_until_used(self, pending_service, sample_screen, sample_owner):
        binding = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)

        first = pending_service.collect('a1b2c3d4')
        second = pending_service.collect('A1B2C3D4')

        assert first == {
            'bound': True,
            'screenId': sample_screen.id,
            'deviceToken': binding.device_token,
            'bindingId': binding.id,
        }
        assert second == first
        assert PendingDeviceBinding.query.filter_by(device_id='A1B2C3D4').one().delivered_at is None

    def test_confirm_delivery_ends_pickup(self, pending_service, db_session, sample_screen, sample_owner):
        binding = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)
        pending_service.collect('A1B2C3D4')

        assert pending_service.confirm_delivery(binding) is True
        db_session.commit()

        assert pending_service.collect('A1B2C3D4') == {'bound': False}
        assert PendingDeviceBinding.query.filter_by(device_id='A1B2C3D4').one().delivered_at is not None

    def test_confirm_delivery_is_idempotent(self, pending_service, db_session, sample_screen, sample_owner):
        binding = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)
        pending_service.confirm_delivery(binding)
        db_session.commit()

        assert pending_service.confirm_delivery(binding) is False

    def test_confirm_delivery_for_code_binding(self, pending_service, issuer, sample_screen, sample_owner):
        """Bindings made by code redemption have no pickup to confirm."""
        binding = issuer.redeem(issuer.issue(sample_screen, sample_owner.id).code)

        assert pending_service.confirm_delivery(binding) is False

    def test_unknown_device(self, pending_service):
        assert pending_service.collect('ZZZZZZZZ') == {'bound': False}
        assert pending_service.collect('bad id') == {'bound': False}

    def test_revoked_binding_is_not_delivered(self, pending_service, credential_store,
                                              sample_screen, sample_owner):
        binding = pending_service.bind_device('A1B2C3D4', sample_screen, sample_owner.id)
        credential_store.revoke(binding.id)

        assert pending_service.collect('A1B2C3D4') == {'bound': False}
