"""Tests for the admin bootstrap command."""
from tasknestle import crud, security
from tasknestle.cli import create_admin
from tasknestle.models import UserRole


class TestEnsureAdmin:
    def test_creates_first_admin(self, db):
        admin, created = crud.ensure_admin(db, "Root", "Root@Example.com", "Admin@123")
        assert created is True
        assert admin.role == UserRole.ADMIN
        assert admin.email == "root@example.com"
        assert admin.email_verified is True
        assert security.verify_password("Admin@123", admin.password_hash)

    def test_existing_admin_is_kept(self, db, admin):
        found, created = crud.ensure_admin(db, "Root", "root@example.com", "Admin@123")
        assert created is False
        assert found.id == admin.id
        assert crud.get_user_by_email(db, "root@example.com") is None


class TestCreateAdminCommand:
    def test_creates_admin_in_fresh_database(self, tmp_path, capsys):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        args = ["--email", "boot@example.com", "--password", "Boot1234", "--database-url", url, "--create-tables"]

        assert create_admin(args) == 0
        assert "Admin user created successfully!" in capsys.readouterr().out

        assert create_admin(args) == 0
        assert "Admin user already exists: boot@example.com" in capsys.readouterr().out
