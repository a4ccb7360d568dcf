"""Tests for the invitation flow."""
from datetime import timedelta

import pytest

from tasknestle import auth, crud, invitations
from tasknestle.errors import AlreadyRegistered, InvalidToken, ProjectGone
from tasknestle.notifications import DeliveryResult
from tasknestle.security import encode_token


def _invite(client, project, user, headers, email="newbie@example.com"):
    return client.post(f"/api/projects/{project.id}/invite", json={"email": email}, headers=headers(user))


class TestIssueInvitation:
    """Test inviting new and existing users."""

    def test_new_email_gets_token_and_mail(self, client, member, project, mailer, headers):
        response = _invite(client, project, member, headers, email="NewBie@Example.com")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["outcome"] == "invited"
        assert data["email"] == "newbie@example.com"
        assert data["email_sent"] is True

        [message] = mailer.sent_to("newbie@example.com")
        assert f"http://app.test/invite?token={data['invitation_token']}" in message["body"]
        assert "Max Member" in message["body"]

    def test_existing_user_is_added_directly(self, client, db, member, outsider, project, mailer, headers):
        response = _invite(client, project, member, headers, email=outsider.email)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["outcome"] == "added"
        assert data["user"]["id"] == str(outsider.id)
        assert mailer.sent == []

        db.expire_all()
        assert outsider.id in crud.get_project(db, project.id).member_ids

    def test_existing_member_is_rejected(self, client, owner, member, project, headers):
        response = _invite(client, project, owner, headers, email=member.email)
        assert response.status_code == 400
        assert response.json()["message"] == "User is already a project member"

    def test_outsider_cannot_invite(self, client, outsider, project, headers):
        response = _invite(client, project, outsider, headers)
        assert response.status_code == 403

    def test_failed_mail_still_returns_token(self, db, settings, member, project, mailer, monkeypatch):
        monkeypatch.setattr(mailer, "send", lambda *args, **kwargs: DeliveryResult(False, "down"))
        result = invitations.issue_invitation(db, settings, mailer, member, project.id, "late@example.com")
        assert result.outcome == invitations.OUTCOME_INVITED
        assert result.token
        assert result.delivery.delivered is False


class TestRedeemInvitation:
    """Test verifying and accepting invitations."""

    @pytest.fixture
    def token(self, client, member, project, headers):
        return _invite(client, project, member, headers).json()["data"]["invitation_token"]

    def test_verify(self, client, project, token):
        response = client.get(f"/api/invitations/verify/{token}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "newbie@example.com"
        assert data["project"] == {
            "id": str(project.id),
            "title": "Website Relaunch",
            "description": "New marketing site",
        }

    def test_round_trip(self, client, db, project, token, mailer):
        response = client.post(
            "/api/invitations/accept",
            json={"token": token, "name": "Nora Newbie", "password": "Welcome1"},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "newbie@example.com"
        assert data["user"]["email_verified"] is True
        assert data["project"]["id"] == str(project.id)

        db.expire_all()
        nora = crud.get_user_by_email(db, "newbie@example.com")
        assert nora.id in crud.get_project(db, project.id).member_ids
        assert any(m["subject"] == "Welcome to TaskNestle" for m in mailer.sent_to("newbie@example.com"))

        profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {data['token']}"})
        assert profile.status_code == 200

        again = client.post(
            "/api/invitations/accept",
            json={"token": token, "name": "Nora Again", "password": "Welcome1"},
        )
        assert again.status_code == 400
        assert again.json()["message"] == "User already exists with this email"

    def test_second_redemption_raises_already_registered(self, db, settings, mailer, token):
        invitations.redeem_invitation(db, settings, mailer, token, "Nora Newbie", "Welcome1")
        with pytest.raises(AlreadyRegistered):
            invitations.redeem_invitation(db, settings, mailer, token, "Nora Newbie", "Welcome1")

    def test_weak_password_rejected(self, client, token):
        response = client.post(
            "/api/invitations/accept",
            json={"token": token, "name": "Nora Newbie", "password": "welcome"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_tampered_token(self, client, token):
        response = client.get(f"/api/invitations/verify/{token[:-2]}xx")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired invitation token"

    def test_non_ascii_token(self, client):
        response = client.get("/api/invitations/verify/abc.%C3%A9")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired invitation token"

        response = client.post(
            "/api/invitations/accept",
            json={"token": "abc.é", "name": "Nora Newbie", "password": "Welcome1"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or expired invitation token"

    def test_expired_token(self, db, settings, project):
        token = encode_token(
            {"email": "late@example.com", "project_id": str(project.id), "type": "invitation"},
            settings.secret_key,
            timedelta(seconds=-1),
        )
        with pytest.raises(InvalidToken):
            invitations.verify_invitation(db, settings, token)

    def test_session_token_is_not_an_invitation(self, client, settings, member):
        session_token = auth.issue_session_token(settings, member)
        response = client.get(f"/api/invitations/verify/{session_token}")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid token type"

    def test_invitation_is_not_a_session(self, client, token):
        response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deleted_project(self, client, db, owner, project, token):
        crud.delete_project(db, owner, project.id)

        response = client.post(
            "/api/invitations/accept",
            json={"token": token, "name": "Nora Newbie", "password": "Welcome1"},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Project not found or has been deleted"
        assert crud.get_user_by_email(db, "newbie@example.com") is None

    def test_deleted_project_on_verify(self, db, settings, owner, project, token):
        crud.delete_project(db, owner, project.id)
        with pytest.raises(ProjectGone):
            invitations.verify_invitation(db, settings, token)
