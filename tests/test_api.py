"""Tests for the CSV import HTTP endpoint in betledger/api.py."""

import pytest
from fastapi.testclient import TestClient

from betledger import db
from betledger.api import app

BANKROLL_ID = "11111111-1111-1111-1111-111111111111"
HEADER = "bankroll_id,stake,odds,placed_at\n"


@pytest.fixture
def client(initialized_db):
    return TestClient(app)


def post_csv(client, content, name="bets.csv"):
    if isinstance(content, str):
        content = content.encode("utf-8")
    return client.post("/csv-import", files={"file": (name, content, "text/csv")})


@pytest.mark.integration
class TestCsvImportEndpoint:
    """Tests for POST /csv-import."""

    def test_imports_one_row(self, client):
        """Test a single valid row is imported."""
        response = post_csv(client, HEADER + f"{BANKROLL_ID},10,1.9,2024-01-01T10:00:00Z\n")

        assert response.status_code == 200
        assert response.json() == {"imported": 1}
        assert len(db.fetch_bets({"bankroll_id": BANKROLL_ID})) == 1

    def test_invalid_stake(self, client):
        """Test row diagnostics are returned and nothing is stored."""
        response = post_csv(client, HEADER + f"{BANKROLL_ID},abc,1.9,2024-01-01T10:00:00Z\n")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid CSV data",
            "details": [{"row": 2, "message": "stake must be a numeric value"}],
        }
        assert db.fetch_bets() == []

    def test_missing_file(self, client):
        response = client.post("/csv-import", data={"other": "value"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing CSV file"}

    def test_empty_file(self, client):
        response = post_csv(client, "")
        assert response.status_code == 400
        assert response.json() == {"error": "Empty CSV"}

    def test_header_only(self, client):
        response = post_csv(client, HEADER)
        assert response.status_code == 400
        assert response.json() == {"error": "CSV without data rows"}

    def test_bom_prefixed_upload(self, client):
        """Test a UTF-8 BOM from spreadsheet exports is accepted."""
        content = ("\ufeff" + HEADER + f"{BANKROLL_ID},10,1.9,2024-01-01\n").encode("utf-8")
        response = post_csv(client, content)
        assert response.json() == {"imported": 1}

    def test_non_utf8_file(self, client):
        response = post_csv(client, b"stake\n\xff\xfe10\n")
        assert response.status_code == 400
        assert "UTF-8" in response.json()["error"]

    def test_storage_failure(self, client, mocker):
        """Test storage errors surface as 500 with message, details and hint."""
        mocker.patch(
            "betledger.db.insert_bets_batch",
            side_effect=db.StorageError("database is locked", details="Batch of 1 rows was rolled back", hint="retry"),
        )
        response = post_csv(client, HEADER + f"{BANKROLL_ID},10,1.9,2024-01-01\n")

        assert response.status_code == 500
        assert response.json() == {
            "error": "database is locked",
            "details": "Batch of 1 rows was rolled back",
            "hint": "retry",
        }

    def test_unexpected_error(self, client, mocker):
        mocker.patch("betledger.api.import_csv", side_effect=RuntimeError("kaboom"))
        response = post_csv(client, HEADER)
        assert response.status_code == 500
        assert response.json() == {"error": "kaboom"}

    @pytest.mark.parametrize("method", ["get", "put", "patch", "delete"])
    def test_other_methods_not_allowed(self, client, method):
        response = getattr(client, method)("/csv-import")
        assert response.status_code == 405
        assert response.json() == {"error": "Only POST supported"}

    def test_head_not_allowed(self, client):
        """Test HEAD is answered by the JSON 405 route, not the framework default."""
        routes = [route for route in app.routes if getattr(route, "path", None) == "/csv-import"]
        assert any("HEAD" in route.methods for route in routes)

        response = client.head("/csv-import")
        assert response.status_code == 405


@pytest.mark.unit
def test_health_check():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "csv-import"}
