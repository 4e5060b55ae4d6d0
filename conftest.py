"""Top-level pytest configuration for fixture registration.

`pytest_plugins` must be declared in a conftest located at the rootdir.
"""

# Shared identity provider and API fixtures
pytest_plugins = [
    "tests.fixtures.identity",
]
