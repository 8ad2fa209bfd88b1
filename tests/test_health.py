"""Smoke test for application startup."""


def test_app_imports() -> None:
    """Verify the app can be imported without errors."""
    from sparkarcanum.main import app

    assert app.title == "Spark Arcanum"


def test_routers_mounted() -> None:
    from sparkarcanum.main import app

    paths = {route.path for route in app.routes}

    assert {"/health", "/cards/search", "/rules", "/decks", "/admin/import-cards"} <= paths
