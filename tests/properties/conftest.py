from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings

# Each example starts an event loop, so per-example timing is noisy
settings.register_profile(
    "execd",
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile("execd")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.property)
