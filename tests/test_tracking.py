"""Tests for the shipment tracking log."""

from datetime import datetime

from bson.objectid import ObjectId

from schemas import TrackingStepIn
from tracking import TrackingLog

STAGES = ["Cutting", "Sewing", "Finishing", "Packed", "Shipped"]


class TestTrackingLog:
    def test_timeline_is_chronological(self, store):
        log = TrackingLog(store)
        order_id = str(ObjectId())
        ids = [log.append(order_id, TrackingStepIn(stage=stage))["insertedId"] for stage in STAGES]

        timeline = log.timeline(order_id)
        assert [s["id"] for s in timeline] == ids
        assert [s["stage"] for s in timeline] == STAGES
        stamps = [s["timestamp"] for s in timeline]
        assert stamps == sorted(stamps)

    def test_caller_cannot_set_timestamp_or_order(self, store):
        log = TrackingLog(store)
        order_id = str(ObjectId())
        step = TrackingStepIn.model_validate({"stage": "Packed", "timestamp": "1999-01-01", "orderId": "elsewhere"})
        log.append(order_id, step)

        (recorded,) = log.timeline(order_id)
        assert recorded["orderId"] == order_id
        assert isinstance(recorded["timestamp"], datetime)


class TestTrackingApi:
    def test_append_and_replay(self, client):
        order_id = str(ObjectId())
        other_id = str(ObjectId())
        for stage in STAGES:
            response = client.post(f"/tracking/{order_id}", json={"stage": stage, "location": "Dhaka"})
            assert response.status_code == 200
        client.post(f"/tracking/{other_id}", json={"stage": "Cutting"})

        timeline = client.get(f"/tracking/{order_id}").json()
        assert len(timeline) == len(STAGES)
        assert [s["stage"] for s in timeline] == STAGES
        stamps = [datetime.fromisoformat(s["timestamp"]) for s in timeline]
        assert all(a <= b for a, b in zip(stamps, stamps[1:]))
        assert all(s["location"] == "Dhaka" for s in timeline)

    def test_unknown_order_has_empty_timeline(self, client):
        assert client.get(f"/tracking/{ObjectId()}").json() == []

    def test_malformed_order_id(self, client):
        assert client.post("/tracking/abc", json={"stage": "Cutting"}).status_code == 400
        assert client.get("/tracking/abc").status_code == 400

    def test_no_update_or_delete_routes(self, client):
        order_id = str(ObjectId())
        client.post(f"/tracking/{order_id}", json={"stage": "Cutting"})
        assert client.delete(f"/tracking/{order_id}").status_code == 405
        assert client.patch(f"/tracking/{order_id}", json={"stage": "x"}).status_code == 405
        assert len(client.get(f"/tracking/{order_id}").json()) == 1
