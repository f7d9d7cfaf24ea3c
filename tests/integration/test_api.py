"""
Integration Tests - HTTP API
"""
from datetime import date, timedelta


class TestHealthEndpoints:

    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"

    async def test_ready(self, client):
        response = await client.get("/api/v1/health/ready")
        assert response.json() == {"status": "ready"}

    async def test_request_id_echoed(self, client):
        response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"


class TestIngestionEndpoints:

    async def test_ingest_rows(self, client, scenario_rows):
        response = await client.post("/api/v1/ingest", json={"rows": scenario_rows})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["rows_loaded"] == 2
        assert body["products_created"] == 1

    async def test_upload_csv(self, client, sample_csv):
        response = await client.post(
            "/api/v1/ingest/upload",
            files={"file": ("sales.csv", sample_csv, "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["rows_loaded"] == 2

    async def test_upload_rejects_other_formats(self, client):
        response = await client.post(
            "/api/v1/ingest/upload",
            files={"file": ("sales.xlsx", b"PK\x03\x04", "application/octet-stream")},
        )
        assert response.status_code == 415

    async def test_unreadable_upload(self, client):
        response = await client.post(
            "/api/v1/ingest/upload",
            files={"file": ("sales.csv", b"", "text/csv")},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INGESTION_FAILED"


class TestDashboardEndpoints:

    async def test_daily_and_deep(self, client, scenario_rows):
        await client.post("/api/v1/ingest", json={"rows": scenario_rows})
        params = {"startDate": "2024-01-01", "endDate": "2024-01-02"}

        daily = (await client.get("/api/v1/dashboard/daily", params=params)).json()
        deep = (await client.get("/api/v1/dashboard/deep", params=params)).json()

        assert [d["total_sales"] for d in daily] == [3000.0, 5000.0]
        assert deep["atv"] == 2667
        assert deep["sell_through"] == 7.6

    async def test_bad_filter_is_rejected(self, client):
        response = await client.get("/api/v1/dashboard/daily", params={"brandId": "abc"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INVALID_QUERY"
        assert body["detail"]

    async def test_inverted_range_is_rejected(self, client):
        response = await client.get(
            "/api/v1/dashboard/deep",
            params={"startDate": "2024-02-01", "endDate": "2024-01-01"},
        )
        assert response.status_code == 400

    async def test_metadata(self, client, mixed_rows):
        await client.post("/api/v1/ingest", json={"rows": mixed_rows})

        body = (await client.get("/api/v1/dashboard/meta")).json()

        assert [b["name"] for b in body["brands"]] == ["Acme", "Bolt"]
        assert [s["name"] for s in body["stores"]] == ["Gangnam", "Hongdae"]


class TestAnalysisEndpoints:

    async def test_abc_and_pivot(self, client, mixed_rows):
        await client.post("/api/v1/ingest", json={"rows": mixed_rows})

        abc = (await client.get("/api/v1/analysis/abc")).json()
        pivot = (await client.get("/api/v1/analysis/pivot", params={"groupBy": "store"})).json()

        assert [p["grade"] for p in abc] == ["B", "B", "C", "C"]
        assert [p["group_name"] for p in pivot] == ["Hongdae", "Gangnam"]

    async def test_store_analysis_requires_store(self, client):
        response = await client.get("/api/v1/analysis/store")
        assert response.status_code == 422

    async def test_brand_analysis(self, client, make_sale):
        today = date.today()
        rows = [
            make_sale(today.isoformat(), "Gangnam", "Acme", "111", "Widget", 30, 3000, 10, 5),
            make_sale((today - timedelta(days=1)).isoformat(), "Gangnam", "Acme", "112", "Gadget", 1, 100, 1, 90),
        ]
        await client.post("/api/v1/ingest", json={"rows": rows})
        brand_id = (await client.get("/api/v1/dashboard/meta")).json()["brands"][0]["id"]

        body = (await client.get("/api/v1/analysis/brand", params={"brandId": brand_id})).json()

        assert body["best_weekly"][0]["name"] == "Widget"
        assert [h["status"] for h in body["inventory_health"]] == ["Low", "High"]

    async def test_insights(self, client, make_sale):
        today = date.today().isoformat()
        await client.post("/api/v1/ingest", json={"rows": [
            make_sale(today, "Gangnam", "Slow", "500", "Coat", 1, 100, 1, 200),
        ]})

        body = (await client.get("/api/v1/analysis/insights")).json()

        assert body[-1]["type"] == "warning"
        assert body[-1]["message"].startswith("[Slow]")


class TestExportEndpoints:

    async def test_export_csv(self, client, scenario_rows):
        await client.post("/api/v1/ingest", json={"rows": scenario_rows})

        response = await client.get("/api/v1/export/brand.csv")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.splitlines()
        assert lines[0] == "sale_date,store_name,brand_name,barcode,product_name,quantity,amount"
        assert "Total Sales,8000.0" in lines
        assert "Total Quantity,8" in lines

    async def test_export_json(self, client, scenario_rows):
        await client.post("/api/v1/ingest", json={"rows": scenario_rows})

        body = (await client.get("/api/v1/export/brand", params={"brandId": 1})).json()

        assert len(body["rows"]) == 2
        assert body["total_sales"] == 8000.0
