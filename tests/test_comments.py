"""Tests for task comments."""
import pytest

from tasknestle import crud, schemas


@pytest.fixture
def task(db, owner, project):
    return crud.create_task(db, owner, project.id, schemas.TaskCreate(title="Discuss layout"))


@pytest.fixture
def comment(db, member, task):
    return crud.add_comment(db, member, task.id, "Looks good to me")


class TestAddComment:
    def test_member_comments(self, client, member, task, headers):
        response = client.post(f"/api/tasks/{task.id}/comments", json={"text": " Ship it "}, headers=headers(member))
        assert response.status_code == 201
        data = response.json()["data"]["comment"]
        assert data["text"] == "Ship it"
        assert data["task_id"] == str(task.id)
        assert data["created_by"]["email"] == member.email

    def test_outsider_cannot_comment(self, client, outsider, task, headers):
        response = client.post(f"/api/tasks/{task.id}/comments", json={"text": "Hi"}, headers=headers(outsider))
        assert response.status_code == 403

    @pytest.mark.parametrize("text", ["", "   ", "x" * 501])
    def test_text_length(self, client, member, task, headers, text):
        response = client.post(f"/api/tasks/{task.id}/comments", json={"text": text}, headers=headers(member))
        assert response.status_code == 400

    def test_list_oldest_first(self, client, db, owner, member, task, headers):
        crud.add_comment(db, member, task.id, "first")
        crud.add_comment(db, owner, task.id, "second")

        response = client.get(f"/api/tasks/{task.id}/comments", headers=headers(owner))
        assert [c["text"] for c in response.json()["data"]["comments"]] == ["first", "second"]


class TestEditComment:
    """Only the author may edit, admins included."""

    def test_author_edits(self, client, member, comment, headers):
        response = client.put(f"/api/comments/{comment.id}", json={"text": "Edited"}, headers=headers(member))
        assert response.status_code == 200
        assert response.json()["data"]["comment"]["text"] == "Edited"

    @pytest.mark.parametrize("who", ["admin", "owner"])
    def test_others_cannot_edit(self, request, client, comment, headers, who):
        user = request.getfixturevalue(who)
        response = client.put(f"/api/comments/{comment.id}", json={"text": "Edited"}, headers=headers(user))
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied - can only edit your own comments"


class TestDeleteComment:
    """Authors and admins may delete; the comment leaves the task."""

    def test_non_author_non_admin_is_forbidden(self, client, owner, comment, headers):
        response = client.delete(f"/api/comments/{comment.id}", headers=headers(owner))
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied - can only delete your own comments"

    @pytest.mark.parametrize("who", ["admin", "member"])
    def test_author_or_admin_deletes(self, request, client, db, owner, task, comment, headers, who):
        user = request.getfixturevalue(who)
        comment_id = str(comment.id)

        response = client.delete(f"/api/comments/{comment_id}", headers=headers(user))
        assert response.status_code == 200

        detail = client.get(f"/api/tasks/{task.id}", headers=headers(owner)).json()["data"]["task"]
        assert comment_id not in {c["id"] for c in detail["comments"]}
        assert detail["comment_count"] == 0

    def test_missing_comment(self, client, member, comment, headers):
        comment_id = comment.id
        client.delete(f"/api/comments/{comment_id}", headers=headers(member))

        response = client.delete(f"/api/comments/{comment_id}", headers=headers(member))
        assert response.status_code == 404
        assert response.json()["message"] == "Comment not found"
