"""Tests for the diagnostic sink."""

import io
import logging

import pytest

from opcda_next import log
from opcda_next.core.connection import new_connection
from opcda_next.drivers.simulated_driver import SimulatedDriver


@pytest.fixture(autouse=True)
def reset_sink():
    yield
    log.set_log_writer(None)


class TestLogWriter:
    def test_discard_by_default(self):
        assert any(isinstance(h, logging.NullHandler) for h in log.logger.handlers)

    def test_redirect_to_stream(self):
        out = io.StringIO()
        log.set_log_writer(out)
        with new_connection("Graybox.Simulator", ["localhost"], driver=SimulatedDriver()):
            pass
        lines = out.getvalue().splitlines()
        assert lines
        assert all(line.startswith("OPC ") for line in lines)
        assert any("Connecting to Graybox.Simulator on node localhost" in line for line in lines)

    def test_swapping_replaces_previous_writer(self):
        first, second = io.StringIO(), io.StringIO()
        log.set_log_writer(first)
        log.set_log_writer(second)
        logging.getLogger("opcda_next.core.session").info("hello")
        assert first.getvalue() == ""
        assert "hello" in second.getvalue()

    def test_debug_level(self):
        log.debug()
        assert log.logger.level == logging.DEBUG
