from ..core.errors import DriverError
from .base import BaseDriver, OPC_CACHE, OPC_DEVICE, OPC_DISCONNECTED, OPC_RUNNING

DRIVERS = ("automation", "simulated")


def create_driver(name: str = "automation", **kwargs) -> BaseDriver:
    """Build a server driver by name.

    The automation driver is imported lazily, it only loads on Windows with pywin32.
    """
    if name == "automation":
        try:
            from .automation_driver import AutomationDriver
        except ImportError as e:
            raise DriverError(f"automation driver unavailable: {e}") from e
        return AutomationDriver(**kwargs)
    if name == "simulated":
        from .simulated_driver import SimulatedDriver
        return SimulatedDriver(**kwargs)
    raise ValueError(f"unknown driver {name!r}, expected one of {', '.join(DRIVERS)}")
