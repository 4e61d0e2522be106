"""Tests for the connection manager and its recovery loop."""

import threading
import time

import pytest

from opcda_next.core.connection import Connection, new_connection
from opcda_next.core.errors import AggregateFailure, DriverError, OPCError, ReadFailure, TagNotFound, WriteFailure
from opcda_next.core.items import Item
from opcda_next.drivers.simulated_driver import SimulatedDriver

SERVER = "Graybox.Simulator"
TAGS = ["numeric.sin.int64", "numeric.saw.float", "textual.color"]


def _restart_later(driver, delay=0.2) -> threading.Timer:
    timer = threading.Timer(delay, driver.start)
    timer.start()
    return timer


class TestNewConnection:
    def test_connects_and_adds_tags(self, connection):
        assert connection.is_connected()
        assert connection.tags() == TAGS

    def test_unknown_tag_closes_everything(self, driver):
        with pytest.raises(AggregateFailure):
            new_connection(SERVER, ["localhost"], ["numeric.sin.int64", "bogus"], driver=driver)
        with pytest.raises(DriverError):
            driver.server_state()

    def test_unreachable_nodes(self, driver):
        with pytest.raises(AggregateFailure) as exc_info:
            new_connection(SERVER, ["plc1"], driver=driver)
        assert "plc1" in str(exc_info.value)

    def test_context_manager(self, driver):
        with new_connection(SERVER, ["localhost"], TAGS, driver=driver) as conn:
            assert len(conn.read()) == 3
        assert not conn.is_connected()


class TestRead:
    def test_read_all(self, connection):
        result = connection.read()
        assert list(result) == TAGS
        assert result["textual.color"].value == "red"
        assert all(item.quality == 192 for item in result.values())

    def test_read_item(self, connection):
        item = connection.read_item("textual.color")
        assert item.value == "red"
        assert item.good

    def test_read_item_unknown_tag(self, connection):
        assert connection.read_item("textual.weekday") == Item()
        assert "textual.weekday" not in connection.tags()

    def test_quality_is_normalized(self, connection, driver):
        driver.set_quality("textual.color", 40000)
        assert connection.read_item("textual.color").quality == 0

    def test_concurrent_reads(self, connection):
        results = []

        def worker():
            for _ in range(20):
                results.append(connection.read())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 80
        assert all(len(r) == 3 for r in results)


class TestWrite:
    def test_write_registered_tag(self, connection, driver):
        connection.write("numeric.sin.int64", 42)
        assert driver.value("numeric.sin.int64") == 42
        assert connection.read_item("numeric.sin.int64").value == 42

    def test_write_unknown_tag_is_write_only(self, connection, driver):
        connection.write("textual.weekday", "Friday")
        assert driver.value("textual.weekday") == "Friday"
        assert "textual.weekday" in connection.tags()
        assert "textual.weekday" not in connection.read()
        assert connection.read_item("textual.weekday").value == "Friday"

    def test_write_tag_not_in_namespace(self, connection):
        with pytest.raises(TagNotFound) as exc_info:
            connection.write("no.such.tag", 1)
        assert "failed to add tag" in str(exc_info.value)

    def test_write_new_tag_while_down(self, connection, driver):
        driver.shutdown()
        with pytest.raises(DriverError) as exc_info:
            connection.write("textual.weekday", "Friday")
        assert not isinstance(exc_info.value, TagNotFound)
        assert "textual.weekday" not in connection.tags()

    def test_write_failure_surfaces(self, connection, driver):
        driver.shutdown()
        with pytest.raises(WriteFailure):
            connection.write("numeric.sin.int64", 1)


class TestAddRemove:
    def test_add(self, connection):
        connection.add("textual.weekday")
        assert "textual.weekday" in connection.read()

    def test_add_partial_failure(self, connection):
        with pytest.raises(AggregateFailure):
            connection.add("textual.weekday", "bogus")
        assert "textual.weekday" in connection.tags()
        assert "bogus" not in connection.tags()

    def test_remove(self, connection):
        connection.remove("textual.color")
        assert connection.tags() == TAGS[:2]

    def test_remove_absent_is_noop(self, connection):
        connection.remove("not.there")
        assert len(connection.tags()) == 3


class TestRecovery:
    def test_read_cut_short_then_recovered(self, connection, driver):
        driver.shutdown_after(1)
        timer = _restart_later(driver)
        result = connection.read()
        timer.join()
        assert list(result) == ["numeric.sin.int64"]
        assert connection.is_connected()
        assert sorted(connection.tags()) == sorted(TAGS)
        assert len(connection.read()) == 3
        assert driver.connect_attempts > 2

    def test_read_item_failure_recovers(self, connection, driver):
        driver.shutdown()
        timer = _restart_later(driver, 0.05)
        assert connection.read_item("textual.color") == Item()
        timer.join()
        assert connection.is_connected()
        assert connection.read_item("textual.color").value == "red"

    def test_write_only_flag_not_preserved(self, connection, driver):
        connection.write("textual.weekday", "Friday")
        driver.shutdown()
        timer = _restart_later(driver, 0.05)
        assert connection.read() == {}
        timer.join()
        assert "textual.weekday" in connection.read()

    def test_transient_failure_does_not_reconnect(self, connection, driver, monkeypatch):
        attempts = driver.connect_attempts

        def failing_read(handle):
            raise ReadFailure("transient")

        monkeypatch.setattr(connection.items, "read_from_driver", failing_read)
        assert connection.read() == {}
        assert driver.connect_attempts == attempts
        assert connection.tags() == TAGS

    def test_recovery_holds_the_lock(self, connection, driver):
        driver.shutdown()
        attempts = driver.connect_attempts
        reader = threading.Thread(target=connection.read)
        reader.start()
        while driver.connect_attempts == attempts:
            time.sleep(0.005)

        done = threading.Event()
        seen = []

        def list_tags():
            seen.append(connection.tags())
            done.set()

        lister = threading.Thread(target=list_tags)
        lister.start()
        assert not done.wait(0.1)
        driver.start()
        reader.join(5)
        lister.join(5)
        assert done.is_set()
        assert seen == [TAGS]


class TestClose:
    def test_close_is_idempotent(self, connection):
        connection.close()
        connection.close()
        assert not connection.is_connected()
        assert connection.tags() == []
        assert connection.read() == {}
        assert connection.read_item("textual.color") == Item()
        connection.remove("textual.color")

    def test_write_after_close(self, connection):
        connection.close()
        with pytest.raises(OPCError):
            connection.write("textual.color", "blue")

    def test_empty_connection(self):
        conn = Connection(None, None, SERVER, ["localhost"])
        assert not conn.is_connected()
        conn.close()

    def test_forwarded_server_queries(self, connection):
        assert connection.list_servers("localhost") == [SERVER]
        assert connection.public_group_names() == []


def test_failover_to_second_node():
    driver = SimulatedDriver(nodes=["backup"])
    with new_connection(SERVER, ["primary", "backup"], TAGS, driver=driver) as conn:
        assert conn.is_connected()
