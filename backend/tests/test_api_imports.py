"""Tests for statement import and expense API endpoints."""

from datetime import date, timedelta

import pytest


def make_statement(days_ago=(5, 4)):
    today = date.today()
    first, second = (today - timedelta(days=d) for d in days_ago)
    return (
        "Date,Description,Amount\n"
        f"{first.isoformat()},STARBUCKS COFFEE,4.50\n"
        f"{second.isoformat()},SHELL OIL 5543,40.00\n"
    ).encode()


FORM = {"couple_id": "couple-1", "paid_by": "user-a", "partner_id": "user-b"}


def upload(client, content, filename="statement.csv", **fields):
    return client.post(
        "/api/v1/imports/preview",
        files={"file": (filename, content, "text/csv")},
        data={**FORM, **fields},
    )


class TestImportsAPI:
    """Test the preview/confirm workflow over HTTP."""

    def test_preview(self, client):
        """Should return annotated rows."""
        response = upload(client, make_statement())
        assert response.status_code == 200
        data = response.json()
        assert data["import_id"]
        assert data["file_type"] == "csv"
        assert len(data["transactions"]) == 2
        assert data["transactions"][0]["suggestion"]["category_key"] == "food"
        assert data["transactions"][0]["selected"] is True

    def test_preview_confirm_and_list(self, client):
        """Confirmed rows show up as expenses."""
        preview = upload(client, make_statement()).json()

        response = client.post(f"/api/v1/imports/{preview['import_id']}/confirm", json={})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["transactions_imported"] == 2

        expenses = client.get("/api/v1/expenses", params={"couple_id": "couple-1"}).json()
        assert expenses["total"] == 2
        assert {e["category_key"] for e in expenses["items"]} == {"food", "transport"}

        status = client.get(f"/api/v1/imports/{preview['import_id']}/status").json()
        assert status["status"] == "completed"

        history = client.get("/api/v1/imports/history", params={"couple_id": "couple-1"}).json()
        assert len(history) == 1
        assert history[0]["transactions_imported"] == 2

    def test_second_preview_flags_duplicates(self, client):
        first = upload(client, make_statement()).json()
        client.post(f"/api/v1/imports/{first['import_id']}/confirm", json={})

        second = upload(client, make_statement()).json()

        assert all(row["duplicate"]["auto_skip"] for row in second["transactions"])
        assert all(not row["selected"] for row in second["transactions"])
        assert second["duplicate_summary"]["definite"] == 2

    def test_category_override(self, client):
        preview = upload(client, make_statement()).json()

        client.post(
            f"/api/v1/imports/{preview['import_id']}/confirm",
            json={"selected_indices": [1], "category_overrides": {"1": "home"}},
        )

        expenses = client.get("/api/v1/expenses", params={"couple_id": "couple-1"}).json()
        assert [e["category_key"] for e in expenses["items"]] == ["home"]

    def test_empty_file(self, client):
        """Empty uploads return a structured error."""
        response = upload(client, b"")
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["type"] == "NO_READABLE_DATA"
        assert len(detail["suggestions"]) > 0

    def test_unsupported_extension(self, client):
        response = upload(client, b"PK\x03\x04", filename="statement.xlsx")
        assert response.status_code == 400

    def test_invalid_split(self, client):
        response = upload(client, make_statement(), split_percentage="150")
        assert response.status_code == 400

    def test_confirm_unknown(self, client):
        response = client.post("/api/v1/imports/missing/confirm", json={})
        assert response.status_code == 404

    def test_status_unknown(self, client):
        response = client.get("/api/v1/imports/missing/status")
        assert response.status_code == 404


class TestExpensesAPI:
    """Test expense listing."""

    def test_list_empty(self, client):
        response = client.get("/api/v1/expenses", params={"couple_id": "couple-1"})
        assert response.status_code == 200
        assert response.json() == {"items": [], "total": 0}

    def test_list_with_data(self, client, sample_expense):
        data = client.get("/api/v1/expenses", params={"couple_id": "couple-1"}).json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == sample_expense.id

    @pytest.mark.parametrize("params", [{}, {"couple_id": "c", "limit": 0}])
    def test_invalid_query(self, client, params):
        response = client.get("/api/v1/expenses", params=params)
        assert response.status_code == 422
