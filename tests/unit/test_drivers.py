"""Tests for driver selection and the simulated server."""

import sys

import pytest

from opcda_next.core.errors import DriverError
from opcda_next.drivers import OPC_DISCONNECTED, OPC_RUNNING, create_driver
from opcda_next.drivers.simulated_driver import SimulatedDriver


class TestCreateDriver:
    def test_simulated(self):
        assert isinstance(create_driver("simulated"), SimulatedDriver)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_driver("modbus")

    def test_automation_unavailable(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "opcda_next.drivers.automation_driver", None)
        with pytest.raises(DriverError) as exc_info:
            create_driver("automation")
        assert "automation driver unavailable" in str(exc_info.value)


class TestSimulatedDriver:
    def test_state(self):
        driver = SimulatedDriver()
        assert driver.server_state() == OPC_DISCONNECTED
        driver.connect("Graybox.Simulator", "localhost")
        assert driver.server_state() == OPC_RUNNING
        driver.shutdown()
        assert driver.server_state() == OPC_DISCONNECTED
        with pytest.raises(DriverError):
            driver.connect("Graybox.Simulator", "localhost")
        driver.start()
        driver.connect("Graybox.Simulator", "localhost")
        assert driver.server_state() == OPC_RUNNING

    def test_handles_die_with_the_session(self):
        driver = SimulatedDriver()
        driver.connect("Graybox.Simulator", "localhost")
        container = driver.get_item_container(driver.add_group(driver.get_groups()))
        item = driver.add_item(container, "textual.color", 1)
        assert driver.read_cached(item)[0] == "red"
        driver.shutdown()
        driver.start()
        driver.connect("Graybox.Simulator", "localhost")
        with pytest.raises(DriverError):
            driver.read_cached(item)

    def test_unknown_item(self):
        driver = SimulatedDriver()
        driver.connect("Graybox.Simulator", "localhost")
        container = driver.get_item_container(driver.add_group(driver.get_groups()))
        with pytest.raises(DriverError):
            driver.add_item(container, "numeric", 1)
        with pytest.raises(DriverError):
            driver.add_item(container, "numeric.cos.int64", 1)
