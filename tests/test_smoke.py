"""Basic package import smoke tests."""


def test_package_imports() -> None:
    """Ensure the top-level package metadata is importable."""
    import lingovox  # noqa: PLC0415

    assert hasattr(lingovox, "__all__")
    assert lingovox.__version__


def test_subpackages_import() -> None:
    from lingovox import api, features, history, streaming  # noqa: F401, PLC0415

    assert streaming.StreamingSession
    assert history.HistoryStore
