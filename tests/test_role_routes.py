from tests.conftest import CREATE_EVENTS, VIEW_TREASURY, member_headers


class TestRoleRoutesAuth:
    """Identity and membership checks on /api/associations/{id}/roles"""

    def test_missing_member_header(self, client, association):
        response = client.get(f"/api/associations/{association.id}/roles")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing X-Member-Id header"

    def test_non_member_is_forbidden(self, client, association, other_association):
        """A member of another association cannot read this one"""
        response = client.get(
            f"/api/associations/{association.id}/roles",
            headers=member_headers(other_association.admin_member_id),
        )

        assert response.status_code == 403

    def test_unknown_association(self, client, association, admin_headers):
        response = client.get("/api/associations/999/roles", headers=admin_headers)

        assert response.status_code == 404


class TestListRoles:
    """GET /api/associations/{id}/roles"""

    def test_any_member_can_list(self, client, association, members):
        response = client.get(f"/api/associations/{association.id}/roles", headers=member_headers(members["alice"]))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["version"] == 1
        assert [r["id"] for r in data["roles"]] == ["president", "tresorier", "secretaire", "animateur"]
        assert data["roles"][0]["members_count"] == 0
        assert data["roles"][0]["is_unique"] is True

    def test_role_details(self, client, association, members, admin_headers):
        client.post(
            f"/api/associations/{association.id}/members/{members['alice']}/roles",
            json={"role_ids": ["tresorier"]},
            headers=admin_headers,
        )

        response = client.get(f"/api/associations/{association.id}/roles/tresorier", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["role"]["members_count"] == 1
        assert [m["id"] for m in data["assigned_members"]] == [members["alice"]]

    def test_role_details_unknown(self, client, association, admin_headers):
        response = client.get(f"/api/associations/{association.id}/roles/ghost", headers=admin_headers)

        assert response.status_code == 404

    def test_permission_catalog(self, client, association, admin_headers):
        response = client.get(f"/api/associations/{association.id}/permissions", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 20
        assert set(data["grouped"]) == {"finances", "membres", "administration", "documents", "evenements"}
        assert VIEW_TREASURY in [p["id"] for p in data["grouped"]["finances"]]

    def test_role_templates(self, client, association, admin_headers):
        response = client.get(f"/api/associations/{association.id}/role-templates", headers=admin_headers)

        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == ["president", "tresorier", "secretaire", "coordinateur"]


class TestCreateRole:
    """POST /api/associations/{id}/roles"""

    def test_admin_creates_role(self, client, association, admin_headers):
        response = client.post(
            f"/api/associations/{association.id}/roles",
            json={"name": "Webmaster", "permissions": [CREATE_EVENTS], "color": "#123456"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["id"] == "webmaster"
        assert data["permissions"] == [CREATE_EVENTS]
        assert data["can_be_renamed"] is True

    def test_member_without_manage_roles_forbidden(self, client, association, members):
        response = client.post(
            f"/api/associations/{association.id}/roles",
            json={"name": "Webmaster", "permissions": [CREATE_EVENTS]},
            headers=member_headers(members["alice"]),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Missing permission: administration.manage_roles"

    def test_president_can_manage_roles(self, client, association, members, admin_headers):
        """manage_roles comes from the president role, not only from admin"""
        client.post(
            f"/api/associations/{association.id}/members/{members['alice']}/roles",
            json={"role_ids": ["president"]},
            headers=admin_headers,
        )

        response = client.post(
            f"/api/associations/{association.id}/roles",
            json={"name": "Webmaster", "permissions": [CREATE_EVENTS]},
            headers=member_headers(members["alice"]),
        )

        assert response.status_code == 201

    def test_violations_listed(self, client, association, admin_headers):
        response = client.post(
            f"/api/associations/{association.id}/roles",
            json={"name": "", "permissions": ["nope"], "color": "#12"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        violations = response.json()["violations"]
        assert "Role name is required" in violations
        assert "Unknown permission id: nope" in violations
        assert len(violations) == 3

    def test_stale_version(self, client, association, admin_headers):
        response = client.post(
            f"/api/associations/{association.id}/roles?expected_version=0",
            json={"name": "Webmaster", "permissions": [CREATE_EVENTS]},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["actual"] == 1

    def test_from_template(self, client, association, admin_headers):
        response = client.post(
            f"/api/associations/{association.id}/roles/from-template",
            json={"template_id": "coordinateur", "name": "Coordinatrice"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == "coordinatrice"


class TestUpdateDeleteRole:
    """PUT and DELETE /api/associations/{id}/roles/{role_id}"""

    def test_update_role(self, client, association, admin_headers):
        response = client.put(
            f"/api/associations/{association.id}/roles/animateur?expected_version=1",
            json={"description": "Anime les sorties"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["description"] == "Anime les sorties"
        assert response.json()["name"] == "Animateur"

    def test_rename_blocked(self, client, association, admin_headers):
        response = client.put(
            f"/api/associations/{association.id}/roles/president",
            json={"name": "Chef"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["violations"] == ["Role 'Président' cannot be renamed"]

    def test_delete_role_detaches(self, client, association, members, admin_headers):
        client.post(
            f"/api/associations/{association.id}/members/{members['alice']}/roles",
            json={"role_ids": ["secretaire"]},
            headers=admin_headers,
        )

        response = client.delete(f"/api/associations/{association.id}/roles/secretaire", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["detached_member_ids"] == [members["alice"]]
        assert data["version"] == 2

        roles = client.get(
            f"/api/associations/{association.id}/members/{members['alice']}/roles", headers=admin_headers
        ).json()
        assert roles["member"]["assigned_roles"] == []

    def test_delete_mandatory_role_in_use(self, client, association, members, admin_headers):
        client.post(
            f"/api/associations/{association.id}/members/{members['alice']}/roles",
            json={"role_ids": ["tresorier"]},
            headers=admin_headers,
        )

        response = client.delete(f"/api/associations/{association.id}/roles/tresorier", headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["holder_ids"] == [members["alice"]]
