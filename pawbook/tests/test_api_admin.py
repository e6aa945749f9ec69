"""
员工管理 HTTP 接口测试
"""


class TestAdminAccess:
    def test_customer_is_denied(self, client, seeded, alice_headers):
        response = client.get("/api/v1/admin/schedule", params={"date": "2030-07-01"}, headers=alice_headers)

        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"


class TestCapacityAdmin:
    """容量规则与例外"""

    def test_upsert_and_list_rules(self, client, seeded, staff_headers):
        payload = {"service_type_id": seeded["daycare"], "max_capacity": 12, "day_of_week": 6}
        first = client.put("/api/v1/admin/capacity-rules", headers=staff_headers, json=payload)
        payload["max_capacity"] = 15
        second = client.put("/api/v1/admin/capacity-rules", headers=staff_headers, json=payload)

        assert first.status_code == 200
        assert first.json()["data"]["id"] == second.json()["data"]["id"]

        rules = client.get("/api/v1/admin/capacity-rules", headers=staff_headers,
                           params={"service_type_id": seeded["daycare"]}).json()["data"]
        assert {(r["day_of_week"], r["max_capacity"]) for r in rules} == {(None, 25), (6, 15)}

    def test_invalid_slot_rule(self, client, seeded, staff_headers):
        response = client.put("/api/v1/admin/capacity-rules", headers=staff_headers, json={
            "service_type_id": seeded["grooming"], "max_capacity": 2, "start_time": "13:00", "end_time": "12:00"})

        assert response.status_code == 400

    def test_closure_and_reopen(self, client, seeded, staff_headers):
        params = {"service_type_id": seeded["daycare"], "start_date": "2030-07-01", "end_date": "2030-07-01"}

        closed = client.put("/api/v1/admin/capacity-overrides", headers=staff_headers,
                            json={"date": "2030-07-01", "reason": "holiday"})
        assert closed.status_code == 200
        day = client.get("/api/v1/availability", params=params).json()["data"]["dates"][0]
        assert day["available"] is False

        removed = client.delete("/api/v1/admin/capacity-overrides", headers=staff_headers,
                                params={"date": "2030-07-01"})
        assert removed.status_code == 200
        day = client.get("/api/v1/availability", params=params).json()["data"]["dates"][0]
        assert day["spots_remaining"] == 25

        missing = client.delete("/api/v1/admin/capacity-overrides", headers=staff_headers,
                                params={"date": "2030-07-01"})
        assert missing.status_code == 404


class TestPricingAdmin:
    """价格规则与服务类型"""

    def test_create_and_toggle_rule(self, client, seeded, staff_headers, alice_headers):
        created = client.post("/api/v1/admin/pricing-rules", headers=staff_headers, json={
            "service_type_id": seeded["daycare"], "name": "Multi-dog 10%",
            "adjustment": {"kind": "percentage_discount", "percentage": 10}, "min_animals": 2})
        assert created.status_code == 201
        rule_id = created.json()["data"]["id"]

        toggled = client.patch(f"/api/v1/admin/pricing-rules/{rule_id}", headers=staff_headers,
                               json={"is_active": False})
        assert toggled.json()["data"]["is_active"] is False

        booking = client.post("/api/v1/bookings", headers=alice_headers, json={
            "service_type_id": seeded["daycare"], "animal_ids": [seeded["rex"], seeded["bella"]],
            "date": "2030-07-01"}).json()["data"]
        assert booking["total_cents"] == 9000

    def test_invalid_rule(self, client, seeded, staff_headers):
        response = client.post("/api/v1/admin/pricing-rules", headers=staff_headers, json={
            "service_type_id": seeded["daycare"], "name": "Broken",
            "adjustment": {"kind": "fixed_discount", "value_cents": -5}})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_update_service_type(self, client, seeded, staff_headers, alice_headers):
        updated = client.patch(f"/api/v1/admin/service-types/{seeded['grooming']}", headers=staff_headers,
                               json={"is_active": False})
        assert updated.json()["data"]["is_active"] is False

        services = client.get("/api/v1/services-and-pricing").json()["data"]["services"]
        assert "grooming" not in [s["name"] for s in services]

        response = client.post("/api/v1/bookings", headers=alice_headers, json={
            "service_type_id": seeded["grooming"], "animal_ids": [seeded["rex"]], "date": "2030-07-01",
            "start_time": "09:00"})
        assert response.status_code == 400
        assert response.json()["error_code"] == "SERVICE_INACTIVE"


class TestStaffDashboard:
    """日程与全馆看板"""

    def test_schedule_and_facility(self, client, seeded, staff_headers, alice_headers, bob_headers):
        boarding = client.post("/api/v1/bookings/multi-day", headers=bob_headers, json={
            "service_type_id": seeded["boarding"], "animal_ids": [seeded["luna"]],
            "start_date": "2030-06-30", "end_date": "2030-07-02"}).json()["data"]
        daycare = client.post("/api/v1/bookings", headers=alice_headers, json={
            "service_type_id": seeded["daycare"], "animal_ids": [seeded["rex"], seeded["bella"]],
            "date": "2030-07-01"}).json()["data"]

        pending = client.get("/api/v1/admin/facility", headers=staff_headers,
                             params={"date": "2030-07-01"}).json()["data"]
        assert pending["total_animals"] == 0

        for booking in (boarding, daycare):
            client.post(f"/api/v1/bookings/{booking['id']}/confirm", headers=staff_headers)

        schedule = client.get("/api/v1/admin/schedule", headers=staff_headers,
                              params={"date": "2030-07-01"}).json()["data"]
        facility = client.get("/api/v1/admin/facility", headers=staff_headers,
                              params={"date": "2030-07-01"}).json()["data"]

        assert len(schedule["bookings"]) == 2
        assert facility["total_animals"] == 3
        assert facility["by_service"] == {"boarding": 1, "daycare": 2}


class TestGroomingAdmin:
    """美容价格矩阵与评分"""

    def _save_tier(self, client, headers, size, rating, price):
        return client.put("/api/v1/admin/grooming/matrix", headers=headers, json={
            "size_category": size, "condition_rating": rating, "price_cents": price, "estimated_minutes": 60})

    def test_matrix_and_customer_price_range(self, client, seeded, staff_headers, alice_headers):
        self._save_tier(client, staff_headers, "small", 1, 4000)
        saved = self._save_tier(client, staff_headers, "small", 4, 6500)
        assert saved.status_code == 200

        matrix = client.get("/api/v1/admin/grooming/matrix", headers=staff_headers).json()["data"]["matrix"]
        assert [(t["size_category"], t["condition_rating"]) for t in matrix] == [("small", 1), ("small", 4)]

        updated = client.patch(f"/api/v1/admin/grooming/matrix/{saved.json()['data']['id']}",
                               headers=staff_headers, json={"price_cents": 6000})
        assert updated.json()["data"]["price_cents"] == 6000

        price_range = client.get("/api/v1/grooming/pricing/small", headers=alice_headers).json()["data"]
        assert price_range == {"size_category": "small", "min_price_cents": 4000, "max_price_cents": 6000}

    def test_customer_price_range_errors(self, client, seeded, alice_headers):
        assert client.get("/api/v1/grooming/pricing/small").status_code == 401
        assert client.get("/api/v1/grooming/pricing/giant", headers=alice_headers).status_code == 400
        assert client.get("/api/v1/grooming/pricing/xl", headers=alice_headers).status_code == 404

    def test_invalid_tier(self, client, seeded, staff_headers):
        response = self._save_tier(client, staff_headers, "small", 6, 4000)

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_customer_cannot_edit_matrix(self, client, seeded, alice_headers):
        response = self._save_tier(client, alice_headers, "small", 1, 1)

        assert response.status_code == 403

    def test_rate_condition(self, client, seeded, staff_headers, alice_headers):
        self._save_tier(client, staff_headers, "large", 2, 9000)
        booking = client.post("/api/v1/bookings", headers=alice_headers, json={
            "service_type_id": seeded["grooming"], "animal_ids": [seeded["rex"]], "date": "2030-07-01",
            "start_time": "09:00"}).json()["data"]

        response = client.post(
            f"/api/v1/admin/grooming/bookings/{booking['id']}/animals/{seeded['rex']}/rating",
            headers=staff_headers, json={"condition_rating": 2})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["quoted_price_cents"] == 9000
        assert data["booking_total_cents"] == 9000
        fetched = client.get(f"/api/v1/bookings/{booking['id']}", headers=alice_headers).json()["data"]
        assert fetched["total_cents"] == 9000
