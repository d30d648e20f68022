"""Pytest configuration for Sandwich Ops."""


def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Add custom markers
    config.addinivalue_line("markers", "cli: mark test as exercising the command line")
