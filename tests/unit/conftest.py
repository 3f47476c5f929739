"""
Pytest configuration for unit tests.

Disables telemetry so get_tracer() hands out the no-op tracer.
"""

import os


def pytest_configure(config):
    """Configure telemetry for unit tests."""
    # Keeps spans out of mocked clients
    os.environ["ENRICHMENT_TELEMETRY_ENABLED"] = "false"
