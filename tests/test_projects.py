"""Tests for projects and project membership."""
from uuid import uuid4

import pytest

from tasknestle import crud, models, schemas
from tasknestle.errors import AlreadyMember, Conflict, Forbidden, ValidationFailed


class TestCreateProject:
    """Test project creation and member normalization."""

    def test_creator_is_always_a_member(self, client, owner, member, headers):
        response = client.post(
            "/api/projects",
            json={"title": "  Mobile App  ", "members": [str(member.id), str(member.id)]},
            headers=headers(owner),
        )
        assert response.status_code == 201
        project = response.json()["data"]["project"]
        assert project["title"] == "Mobile App"
        assert project["status"] == "active"
        assert project["created_by"]["email"] == owner.email
        assert sorted(m["email"] for m in project["members"]) == sorted([owner.email, member.email])

    def test_listing_creator_among_members_does_not_duplicate(self, db, owner):
        project = crud.create_project(db, owner, "Solo", member_ids=[owner.id])
        assert [m.id for m in project.members] == [owner.id]

    def test_unknown_member_id(self, client, owner, headers):
        response = client.post(
            "/api/projects",
            json={"title": "Mobile App", "members": [str(uuid4())]},
            headers=headers(owner),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "One or more member IDs are invalid"

    @pytest.mark.parametrize("title", ["ab", "x" * 101, "   "])
    def test_title_length(self, client, owner, headers, title):
        response = client.post("/api/projects", json={"title": title}, headers=headers(owner))
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "title"


class TestReadProjects:
    """Test project visibility."""

    def test_list_only_shows_own_projects(self, client, db, owner, member, outsider, admin, project, headers):
        crud.create_project(db, outsider, "Side Quest")

        def titles(user):
            response = client.get("/api/projects", headers=headers(user))
            return {p["title"] for p in response.json()["data"]["projects"]}

        assert titles(member) == {"Website Relaunch"}
        assert titles(outsider) == {"Side Quest"}
        assert titles(admin) == {"Website Relaunch", "Side Quest"}

    def test_list_filters_by_status(self, client, db, owner, project, headers):
        crud.update_project(db, owner, project.id, schemas.ProjectUpdate(status="completed"))

        active = client.get("/api/projects", headers=headers(owner)).json()["data"]["projects"]
        done = client.get("/api/projects?status=completed", headers=headers(owner)).json()["data"]["projects"]
        assert active == []
        assert [p["title"] for p in done] == ["Website Relaunch"]

    def test_outsider_cannot_read_project(self, client, outsider, project, headers):
        response = client.get(f"/api/projects/{project.id}", headers=headers(outsider))
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied - not a project member"

    def test_missing_project(self, client, owner, headers):
        response = client.get(f"/api/projects/{uuid4()}", headers=headers(owner))
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Project not found"}

    def test_members_endpoint(self, client, owner, member, project, headers):
        response = client.get(f"/api/projects/{project.id}/members", headers=headers(member))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["created_by"]["id"] == str(owner.id)
        assert {m["id"] for m in data["members"]} == {str(owner.id), str(member.id)}


class TestUpdateProject:
    """Test project edits and member replacement."""

    def test_member_may_edit(self, client, member, project, headers):
        response = client.put(
            f"/api/projects/{project.id}",
            json={"description": "Reworked scope", "status": "archived"},
            headers=headers(member),
        )
        assert response.status_code == 200
        data = response.json()["data"]["project"]
        assert data["description"] == "Reworked scope"
        assert data["status"] == "archived"
        assert data["title"] == "Website Relaunch"

    def test_outsider_may_not_edit(self, client, outsider, project, headers):
        response = client.put(f"/api/projects/{project.id}", json={"title": "Hijacked"}, headers=headers(outsider))
        assert response.status_code == 403

    def test_member_list_without_creator_is_rejected(self, db, admin, member, project):
        with pytest.raises(Conflict):
            crud.update_project(db, admin, project.id, schemas.ProjectUpdate(members=[member.id]))

        db.expire_all()
        assert len(crud.get_project(db, project.id).members) == 2

    def test_member_replacement_dedupes(self, db, owner, member, outsider, project):
        updated = crud.update_project(
            db, owner, project.id,
            schemas.ProjectUpdate(members=[owner.id, outsider.id, outsider.id]),
        )
        assert updated.member_ids == {owner.id, outsider.id}


class TestDeleteProject:
    """Test project deletion rules."""

    def test_member_cannot_delete(self, client, db, member, project, headers):
        response = client.delete(f"/api/projects/{project.id}", headers=headers(member))
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied - only admin or project creator can delete"

        db.expire_all()
        unchanged = crud.get_project(db, project.id)
        assert unchanged.title == "Website Relaunch"
        assert len(unchanged.members) == 2

    def test_creator_deletes_but_tasks_remain(self, client, db, owner, project, headers):
        project_id = project.id
        task = crud.create_task(db, owner, project_id, schemas.TaskCreate(title="Orphan me"))
        task_id = task.id

        response = client.delete(f"/api/projects/{project_id}", headers=headers(owner))
        assert response.status_code == 200

        db.expire_all()
        assert db.query(models.Project).filter_by(id=project_id).first() is None
        assert db.query(models.Task).filter_by(id=task_id).first() is not None

    def test_admin_may_delete(self, client, admin, project, headers):
        response = client.delete(f"/api/projects/{project.id}", headers=headers(admin))
        assert response.status_code == 200


class TestMembers:
    """Test bulk member add and remove."""

    def test_add_new_members(self, client, member, outsider, project, headers):
        response = client.post(
            f"/api/projects/{project.id}/members",
            json={"member_ids": [str(outsider.id), str(member.id)]},
            headers=headers(member),
        )
        assert response.status_code == 200
        members = response.json()["data"]["project"]["members"]
        assert len(members) == 3

    def test_adding_existing_members_changes_nothing(self, client, db, owner, member, project, headers):
        response = client.post(
            f"/api/projects/{project.id}/members",
            json={"member_ids": [str(member.id)]},
            headers=headers(owner),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "All provided members are already in the project"

        db.expire_all()
        assert crud.get_project(db, project.id).member_ids == {owner.id, member.id}

    def test_add_members_service_raises_already_member(self, db, owner, member, project):
        with pytest.raises(AlreadyMember):
            crud.add_members(db, owner, project.id, [member.id, owner.id])

    def test_add_members_requires_ids(self, db, owner, project):
        with pytest.raises(ValidationFailed):
            crud.add_members(db, owner, project.id, [])

    def test_empty_member_ids_fails_validation(self, client, owner, project, headers):
        response = client.post(f"/api/projects/{project.id}/members", json={"member_ids": []}, headers=headers(owner))
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_outsider_cannot_add_members(self, db, outsider, project):
        with pytest.raises(Forbidden):
            crud.add_members(db, outsider, project.id, [outsider.id])

    def test_remove_member(self, client, db, owner, member, project, headers):
        response = client.request(
            "DELETE",
            f"/api/projects/{project.id}/members",
            json={"member_ids": [str(member.id)]},
            headers=headers(owner),
        )
        assert response.status_code == 200

        db.expire_all()
        assert crud.get_project(db, project.id).member_ids == {owner.id}

    def test_nobody_can_remove_the_creator(self, client, db, admin, owner, member, project, headers):
        for user in (admin, owner, member):
            response = client.request(
                "DELETE",
                f"/api/projects/{project.id}/members",
                json={"member_ids": [str(owner.id)]},
                headers=headers(user),
            )
            assert response.status_code == 400
            assert response.json()["message"] == "Cannot remove project creator"

        db.expire_all()
        assert owner.id in crud.get_project(db, project.id).member_ids


class TestTaskStats:
    def test_counts_by_status_and_priority(self, client, db, owner, project, headers):
        crud.create_task(db, owner, project.id, schemas.TaskCreate(title="One", priority="high"))
        crud.create_task(db, owner, project.id, schemas.TaskCreate(title="Two", priority="high", status="review"))
        crud.create_task(db, owner, project.id, schemas.TaskCreate(title="Three"))

        response = client.get(f"/api/projects/{project.id}/tasks/stats", headers=headers(owner))
        assert response.status_code == 200
        data = response.json()["data"]
        by_status = {s["key"]: s["count"] for s in data["status_stats"]}
        by_priority = {s["key"]: s["count"] for s in data["priority_stats"]}
        assert by_status == {"todo": 2, "review": 1}
        assert by_priority == {"high": 2, "medium": 1}
