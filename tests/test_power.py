"""Tests for the power controller."""

from __future__ import annotations

import pytest

from uhfscan.errors import DeviceCommandFailedError
from uhfscan.power import DEFAULT_POWER_DBM, PowerController


@pytest.fixture()
def controller(gateway):
    return PowerController(gateway)


@pytest.fixture()
def initialized(gateway, controller):
    gateway.init()
    return controller


class TestSetPower:
    def test_fails_before_init(self, controller, gateway):
        assert not controller.set_power(20)
        assert controller.cached_power == DEFAULT_POWER_DBM
        assert gateway.power == 0

    def test_success_updates_cache(self, initialized, gateway):
        assert initialized.set_power(20)
        assert initialized.cached_power == 20
        assert gateway.power == 20

    def test_device_rejection_keeps_cache(self, initialized, gateway):
        gateway.accept_power = False
        assert not initialized.set_power(40)
        assert initialized.cached_power == DEFAULT_POWER_DBM

    def test_device_error_is_absorbed(self, initialized, gateway):
        gateway.power_error = DeviceCommandFailedError("no ack")
        assert not initialized.set_power(20)
        assert initialized.cached_power == DEFAULT_POWER_DBM


class TestGetPower:
    def test_before_init_returns_cache(self, controller):
        assert controller.get_power() == DEFAULT_POWER_DBM

    def test_reads_device_and_refreshes_cache(self, initialized, gateway):
        gateway.power = 18
        assert initialized.get_power() == 18
        assert initialized.cached_power == 18

    def test_failed_query_returns_previous_value(self, initialized, gateway):
        initialized.set_power(22)
        gateway.power_error = DeviceCommandFailedError("timeout")
        assert initialized.get_power() == 22

    def test_missing_value_returns_cache(self, initialized, gateway):
        initialized.set_power(22)
        gateway.get_power = lambda: None
        assert initialized.get_power() == 22

    @pytest.mark.parametrize(
        "raw, expected", [(0x11A, 0x1A), (-1, 0xFF), (0xFF, 0xFF), (0, 0)]
    )
    def test_value_masked_to_byte(self, initialized, gateway, raw, expected):
        gateway.power = raw
        assert initialized.get_power() == expected
        assert initialized.cached_power == expected

    def test_state_query_error_returns_cache(self, initialized, gateway):
        def _boom():
            raise DeviceCommandFailedError("bus error")

        gateway.is_initialized = _boom
        assert initialized.get_power() == DEFAULT_POWER_DBM


class TestDefaults:
    def test_default_power(self):
        assert DEFAULT_POWER_DBM == 26

    def test_custom_default(self, gateway):
        assert PowerController(gateway, default_power=10).cached_power == 10
