"""
CLI command tests.
"""

from drivncook.models import User

from .conftest import PASSWORD


class TestUsersCommands:
    """flask users ..."""

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--email", "ops@drivncook.test",
            "--password", PASSWORD,
            "--role", "ADMIN",
            "--first-name", "Ops",
        ])
        assert result.exit_code == 0, result.output
        assert "Created user: ops@drivncook.test" in result.output

        user = db_session.query(User).filter_by(email="ops@drivncook.test").one()
        assert user.is_active is True

        result = runner.invoke(args=["users", "list", "--role", "ADMIN"])
        assert result.exit_code == 0
        assert "ops@drivncook.test" in result.output

    def test_weak_password_rejected(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--email", "weak@drivncook.test", "--password", "abc", "--role", "ADMIN",
        ])
        assert result.exit_code != 0
        assert "Password validation failed" in result.output


class TestMaintenanceCommands:
    """flask notifications / invoices ..."""

    def test_retry_failed_without_failures(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["notifications", "retry-failed"])
        assert result.exit_code == 0
        assert "Retried 0 deliveries" in result.output

    def test_mark_overdue_without_invoices(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["invoices", "mark-overdue"])
        assert result.exit_code == 0
        assert "Marked 0 invoices as OVERDUE." in result.output
