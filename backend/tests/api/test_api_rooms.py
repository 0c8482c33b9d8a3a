"""
房间管理 API 单元测试
覆盖 /rooms 端点
"""
from decimal import Decimal
from datetime import date, timedelta
from fastapi.testclient import TestClient

from roomledger.models.ontology import RoomStatus


class TestRoomsAuth:
    """认证与权限"""

    def test_requires_token(self, client: TestClient):
        response = client.get("/rooms")
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client: TestClient):
        response = client.get("/rooms", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_attendant_cannot_create_room(self, client: TestClient, auth_headers):
        response = client.post("/rooms", headers=auth_headers, json={
            "room_number": "301", "room_type": "Suite", "price_per_day": "120.00"
        })
        assert response.status_code == 403

    def test_inactive_attendant_rejected(self, client: TestClient, db_session, attendant_user, auth_headers):
        attendant_user.is_active = False
        db_session.commit()
        response = client.get("/rooms", headers=auth_headers)
        assert response.status_code == 401


class TestRoomsCrud:
    """房间维护"""

    def test_create_room(self, client: TestClient, admin_auth_headers):
        response = client.post("/rooms", headers=admin_auth_headers, json={
            "room_number": "301", "room_type": "Suite", "price_per_day": "120.00"
        })

        assert response.status_code == 200
        data = response.json()
        assert data["room_number"] == "301"
        assert data["status"] == "available"
        assert Decimal(data["price_per_day"]) == Decimal("120")

    def test_create_duplicate(self, client: TestClient, admin_auth_headers, sample_room):
        response = client.post("/rooms", headers=admin_auth_headers, json={
            "room_number": "101", "room_type": "Single", "price_per_day": "50"
        })
        assert response.status_code == 409
        assert "已存在" in response.json()["detail"]

    def test_create_negative_price(self, client: TestClient, admin_auth_headers):
        response = client.post("/rooms", headers=admin_auth_headers, json={
            "room_number": "301", "room_type": "Suite", "price_per_day": "-1"
        })
        assert response.status_code == 422

    def test_list_and_filter(self, client: TestClient, auth_headers, sample_room, sample_room_201):
        response = client.get("/rooms", headers=auth_headers)
        assert [r["room_number"] for r in response.json()] == ["101", "201"]

        response = client.get("/rooms", headers=auth_headers, params={"room_type": "Double"})
        assert [r["room_number"] for r in response.json()] == ["201"]

    def test_get_room(self, client: TestClient, auth_headers, sample_room):
        response = client.get(f"/rooms/{sample_room.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["room_type"] == "Single"

    def test_get_missing_room(self, client: TestClient, auth_headers):
        response = client.get("/rooms/999", headers=auth_headers)
        assert response.status_code == 404

    def test_update_room(self, client: TestClient, admin_auth_headers, sample_room):
        response = client.patch(f"/rooms/{sample_room.id}", headers=admin_auth_headers, json={
            "price_per_day": "65.50"
        })
        assert response.status_code == 200
        assert Decimal(response.json()["price_per_day"]) == Decimal("65.50")

    def test_status_not_editable(self, client: TestClient, admin_auth_headers, sample_room):
        """房态字段不在更新模型中，提交后被忽略"""
        response = client.patch(f"/rooms/{sample_room.id}", headers=admin_auth_headers, json={
            "status": "occupied"
        })
        assert response.status_code == 200
        assert response.json()["status"] == "available"


class TestRoomMaintenance:

    def test_toggle(self, client: TestClient, admin_auth_headers, sample_room):
        response = client.patch(f"/rooms/{sample_room.id}/maintenance",
                                headers=admin_auth_headers, json={"enabled": True})
        assert response.status_code == 200
        assert response.json()["status"] == "maintenance"

        response = client.patch(f"/rooms/{sample_room.id}/maintenance",
                                headers=admin_auth_headers, json={"enabled": False})
        assert response.json()["status"] == "available"

    def test_occupied_room_conflict(self, client: TestClient, admin_auth_headers, db_session, sample_room):
        sample_room.status = RoomStatus.OCCUPIED
        db_session.commit()
        response = client.patch(f"/rooms/{sample_room.id}/maintenance",
                                headers=admin_auth_headers, json={"enabled": True})
        assert response.status_code == 409


class TestAvailabilityAndSummary:

    def test_summary(self, client: TestClient, auth_headers, db_session, sample_room, sample_room_102):
        sample_room_102.status = RoomStatus.RESERVED
        db_session.commit()
        response = client.get("/rooms/summary", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "total": 2, "available": 1, "occupied": 0, "reserved": 1, "maintenance": 0
        }

    def test_available_rooms(self, client: TestClient, auth_headers, sample_room, sample_room_201):
        today = date.today()
        response = client.get("/rooms/available", headers=auth_headers, params={
            "check_in_date": today.isoformat(),
            "check_out_date": (today + timedelta(days=2)).isoformat(),
            "room_type": "Single",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["room_type"] == "Single"
        assert [r["room_number"] for r in data["rooms"]] == ["101"]

    def test_available_rooms_bad_interval(self, client: TestClient, auth_headers, sample_room):
        today = date.today().isoformat()
        response = client.get("/rooms/available", headers=auth_headers, params={
            "check_in_date": today, "check_out_date": today,
        })
        assert response.status_code == 422
