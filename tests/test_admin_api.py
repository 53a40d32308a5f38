"""Tests for the admin gate and the client, editor and catalog endpoints."""

from studiolink import config


class TestAdminGate:
    """Test the shared-password gate."""

    def test_missing_credentials(self, api):
        """Test that admin routes need a bearer token."""
        response = api.get("/clients")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_wrong_password(self, api):
        """Test that a wrong password is refused."""
        response = api.get("/clients", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_not_configured(self, api, admin_headers, monkeypatch):
        """Test that admin access is closed when no password is configured."""
        monkeypatch.setattr(config, "ADMIN_PASSWORD", None)
        assert api.get("/clients", headers=admin_headers).status_code == 503

    def test_public_routes(self, api):
        """Test that health stays open and client pages carry the security headers."""
        assert api.get("/health").status_code == 200

        response = api.get("/download/bogus")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestClients:
    """Test client CRUD."""

    def test_create_and_list(self, api, admin_headers):
        """Test that clients list alphabetically with normalised emails."""
        api.post("/clients", json={"name": "Zed Homes", "email": "Office@Zed.test"}, headers=admin_headers)
        api.post("/clients", json={"name": "Acre Realty", "email": "desk@acre.test"}, headers=admin_headers)

        clients = api.get("/clients", headers=admin_headers).json()
        assert [c["name"] for c in clients] == ["Acre Realty", "Zed Homes"]
        assert clients[1]["email"] == "office@zed.test"

    def test_invalid_email(self, api, admin_headers):
        """Test that the email is validated."""
        response = api.post("/clients", json={"name": "Zed", "email": "not-an-email"}, headers=admin_headers)
        assert response.status_code == 422

    def test_blank_name(self, api, admin_headers):
        """Test that a name is required."""
        response = api.post("/clients", json={"name": "  ", "email": "a@b.test"}, headers=admin_headers)
        assert response.status_code == 422

    def test_update(self, api, admin_headers, studio_client):
        """Test a partial update."""
        response = api.patch(
            f"/clients/{studio_client.id}", json={"notes": "Keys at reception"}, headers=admin_headers
        )
        body = response.json()
        assert body["notes"] == "Keys at reception"
        assert body["email"] == "agent@harbour.test"

    def test_delete_blocked_by_projects(self, api, admin_headers, make_project, studio_client):
        """Test that a client with projects cannot be deleted."""
        make_project()
        response = api.delete(f"/clients/{studio_client.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_delete(self, api, admin_headers, studio_client):
        """Test deleting a client without projects."""
        assert api.delete(f"/clients/{studio_client.id}", headers=admin_headers).status_code == 200
        assert api.get(f"/clients/{studio_client.id}", headers=admin_headers).status_code == 404


class TestEditors:
    """Test editor CRUD."""

    def test_default_avatar(self, api, admin_headers):
        """Test that an editor without an avatar gets the default."""
        body = api.post(
            "/editors", json={"name": "Sam", "email": "sam@studio.test"}, headers=admin_headers
        ).json()
        assert body["avatar"] == "👤"

    def test_update_and_delete(self, api, admin_headers):
        """Test editing and removing an editor."""
        editor = api.post(
            "/editors", json={"name": "Sam", "email": "sam@studio.test", "avatar": "🎬"}, headers=admin_headers
        ).json()

        renamed = api.patch(f"/editors/{editor['id']}", json={"name": "Sam K"}, headers=admin_headers).json()
        assert renamed["name"] == "Sam K"
        assert renamed["avatar"] == "🎬"

        assert api.delete(f"/editors/{editor['id']}", headers=admin_headers).status_code == 200
        assert api.get("/editors", headers=admin_headers).json() == []


class TestCatalog:
    """Test service template CRUD."""

    def test_create_from_comma_list(self, api, admin_headers):
        """Test that the admin form's comma separated templates are split."""
        body = api.post(
            "/services",
            json={"name": "Drone", "tasks": "Submit Drone to editor, Submit Drone to client"},
            headers=admin_headers,
        ).json()
        assert body["tasks"] == ["Submit Drone to editor", "Submit Drone to client"]

    def test_template_shape_enforced(self, api, admin_headers):
        """Test that malformed templates are refused."""
        response = api.post(
            "/services", json={"name": "Drone", "tasks": ["Fly the drone"]}, headers=admin_headers
        )
        assert response.status_code == 422

    def test_duplicate_name(self, api, admin_headers, catalog):
        """Test that service names are unique."""
        response = api.post(
            "/services",
            json={"name": "Photography", "tasks": ["Submit Photos to client"]},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_delete_keeps_project_tasks(self, api, admin_headers, catalog, make_project):
        """Test that removing a template does not touch existing projects."""
        project = make_project()

        assert api.delete(f"/services/{catalog['Video'].id}", headers=admin_headers).status_code == 200

        body = api.get(f"/projects/{project.id}", headers=admin_headers).json()
        assert len(body["tasks"]) == 4
