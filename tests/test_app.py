"""Tests for the Flask application factory."""

from orgchart import __version__
from orgchart.services.hierarchy_service import OrgHierarchyService


class TestAppFactory:
    """Test application factory."""

    def test_testing_flag_set(self, app):
        assert app.config["TESTING"] is True

    def test_blueprints_registered(self, app):
        assert {"positions", "departments", "health"} <= set(app.blueprints)

    def test_version_config(self, app):
        assert app.config.get("APP_VERSION") == __version__

    def test_hierarchy_service_configured(self, app):
        service = app.extensions["org_hierarchy"]

        assert isinstance(service, OrgHierarchyService)
        assert service.lock_timeout == 2
        assert service.max_import_rows == 50

    def test_org_cli_registered(self, app):
        assert "org" in app.cli.commands

    def test_log_file_created(self, app, tmp_path):
        assert (tmp_path / "logs" / "test.log").exists()
