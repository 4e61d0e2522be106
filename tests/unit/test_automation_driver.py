"""Tests for the OPC Automation binding that run without a registered server."""

import sys
import threading

import pytest

pythoncom = pytest.importorskip("pythoncom")
pywintypes = pytest.importorskip("pywintypes")

from opcda_next.core.errors import DriverError, UnknownItem  # noqa: E402
from opcda_next.drivers import automation_driver  # noqa: E402


def _bare_driver() -> automation_driver.AutomationDriver:
    driver = automation_driver.AutomationDriver.__new__(automation_driver.AutomationDriver)
    driver._lock = threading.RLock()
    driver._com = threading.local()
    driver._opc = object()
    return driver


class _Container:
    def __init__(self, scode):
        self.scode = scode

    def AddItem(self, tag, client_handle):
        raise pywintypes.com_error(-2147352567, "Exception occurred.",
                                   (0, None, "bad item", None, 0, self.scode), None)


class TestApartment:
    def test_multithreaded_flags(self):
        assert sys.coinit_flags == pythoncom.COINIT_MULTITHREADED

    def test_each_calling_thread_joins_once(self, monkeypatch):
        joined = []
        monkeypatch.setattr(automation_driver, "ole_init", lambda: joined.append(threading.current_thread().name))
        driver = _bare_driver()

        def worker():
            driver._call(lambda: None)
            driver._call(lambda: None)

        threads = [threading.Thread(target=worker, name=f"worker-{i}") for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(joined) == ["worker-0", "worker-1"]


class TestAddItem:
    # OPC_E_INVALIDITEMID, OPC_E_UNKNOWNITEMID as signed scodes
    @pytest.mark.parametrize("scode", [-1073479672, -1073479673])
    def test_unknown_item(self, scode, monkeypatch):
        monkeypatch.setattr(automation_driver, "ole_init", lambda: None)
        with pytest.raises(UnknownItem):
            _bare_driver().add_item(_Container(scode), "no.such.tag", 1)

    def test_other_failure_stays_driver_error(self, monkeypatch):
        monkeypatch.setattr(automation_driver, "ole_init", lambda: None)
        with pytest.raises(DriverError) as exc_info:
            _bare_driver().add_item(_Container(-2147467259), "textual.color", 1)
        assert not isinstance(exc_info.value, UnknownItem)
