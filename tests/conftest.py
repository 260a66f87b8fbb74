"""
Shared pytest fixtures for all tests.
"""

from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Automatic test markers based on path
# ---------------------------------------------------------------------------
# We want to avoid sprinkling `@pytest.mark.unit` / `integration` decorators
# throughout the codebase.  Instead, assign the marker implicitly from the
# directory the test file lives in.


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Dynamically add pytest markers depending on filepath.

    Any test located in ``tests/unit`` gets the ``unit`` marker and tests in
    ``tests/integration`` get ``integration``.

    This allows developers to drop explicit decorators in test source files
    while retaining the same marker-based selection semantics (e.g.
    ``pytest -m unit``).
    """

    root_path = Path(config.rootdir)

    for item in items:
        rel_path = Path(item.fspath).resolve().relative_to(root_path).as_posix()

        if rel_path.startswith("tests/unit/"):
            item.add_marker("unit")
        elif rel_path.startswith("tests/integration/"):
            item.add_marker("integration")


# ---------------------------------------------------------------------------
# Hermetic environment for unit tests
# ---------------------------------------------------------------------------
# Unit tests must never talk to OpenAI or a real Supabase project, even when a
# developer has a populated ``.env``.  Environment variables take precedence
# over the env file, so blanking them here is enough to switch every
# ``Settings()`` instance into its offline configuration.

_OFFLINE_ENV = (
    "OPENAI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_TABLE_PREFIX",
    "API_AUTH_KEY",
)


@pytest.fixture(autouse=True)
def _offline_settings(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch):
    if request.node.get_closest_marker("unit") is None:
        yield
        return

    from umbil.core.embeddings import get_embeddings

    for name in _OFFLINE_ENV:
        monkeypatch.setenv(name, "")
    get_embeddings.cache_clear()
    try:
        yield
    finally:
        get_embeddings.cache_clear()
