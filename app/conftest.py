"""
Root pytest configuration for the Django project.

pytest-django loads config.test_settings (see pyproject.toml). This module
provides project-wide fixtures; app-specific fixtures are defined in each
app's tests/conftest.py.
"""

import pytest
from channels.layers import channel_layers

from chat.realtime.gateway import get_gateway


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full user journey workflows)
    - test_views.py, test_services.py, test_consumers.py, etc. → integration
    - test_models.py, test_presence.py, test_client_session.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_consumers.py",
        "test_middleware.py",
        "test_publishers.py",
        "test_gateway.py",
        "test_rooms.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_presence.py",
        "test_client_session.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def fresh_realtime_state():
    """
    Give every test its own gateway and in-memory channel layer.

    Presence and room state are process-wide, so without this one test's
    connections would leak into the next.
    """
    get_gateway.cache_clear()
    channel_layers.backends = {}
    yield
    get_gateway.cache_clear()
    channel_layers.backends = {}
