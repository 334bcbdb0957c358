"""
API tests for measurements, re-evaluations, protocol assignments and the
measure library, using the real routers with injected test services.
"""


def measurement_payload(**overrides):
    payload = {
        "patient_id": "patient-001",
        "clinic_id": "clinic-01",
        "clinician_id": "therapist-07",
        "measure_key": "vas",
        "value": 8,
        "recorded_at": "2025-01-06T09:00:00Z",
    }
    payload.update(overrides)
    return payload


def reevaluation_payload(items, **overrides):
    payload = {
        "patient_id": "patient-001",
        "clinic_id": "clinic-01",
        "clinician_id": "therapist-07",
        "items": items,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# MEASUREMENTS
# =============================================================================

def test_record_measurement(client):
    response = client.post("/api/v1/measurements", json=measurement_payload(measure_key="Pain VAS"))
    assert response.status_code == 201
    data = response.json()
    assert data["id"] >= 1
    assert data["measure_key"] == "vas"
    assert data["value"] == 8
    assert data["recorded_at"] == "2025-01-06T09:00:00Z"


def test_record_measurement_out_of_range(client):
    response = client.post("/api/v1/measurements", json=measurement_payload(value=11))
    assert response.status_code == 400
    body = response.json()
    assert "out of range" in body["detail"]
    assert body["context"]["measure_key"] == "vas"


def test_record_measurement_unknown_measure(client):
    response = client.post("/api/v1/measurements", json=measurement_payload(measure_key="nope"))
    assert response.status_code == 404
    assert "Unknown measure" in response.json()["detail"]


def test_record_measurement_missing_field(client):
    payload = measurement_payload()
    del payload["value"]
    response = client.post("/api/v1/measurements", json=payload)
    assert response.status_code == 422


def test_record_rom(client):
    payload = measurement_payload(joint="knee", side="left", movement_type="active", degree=120)
    del payload["measure_key"], payload["value"]
    response = client.post("/api/v1/measurements/rom", json=payload)
    assert response.status_code == 201
    assert response.json()["measure_key"] == "rom:knee:left:active"


def test_record_rom_above_joint_maximum(client):
    payload = measurement_payload(joint="ankle", side="right", movement_type="passive", degree=75)
    del payload["measure_key"], payload["value"]
    response = client.post("/api/v1/measurements/rom", json=payload)
    assert response.status_code == 400
    assert "ROM degree" in response.json()["detail"]


def test_record_mmt(client):
    payload = measurement_payload(muscle_group="Hip Abductors", side="left", grade=3.5)
    del payload["measure_key"], payload["value"]
    response = client.post("/api/v1/measurements/mmt", json=payload)
    assert response.status_code == 201
    assert response.json()["measure_key"] == "mmt:hip_abductors:left"


def test_record_mmt_invalid_grade(client):
    payload = measurement_payload(muscle_group="Deltoid", side="left", grade=3.2)
    del payload["measure_key"], payload["value"]
    response = client.post("/api/v1/measurements/mmt", json=payload)
    assert response.status_code == 400


def test_get_measurement(client):
    created = client.post("/api/v1/measurements", json=measurement_payload()).json()
    response = client.get(f"/api/v1/measurements/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created

    assert client.get("/api/v1/measurements/999").status_code == 404


def test_history_and_progress(client):
    client.post("/api/v1/measurements", json=measurement_payload(value=8, recorded_at="2025-01-06T09:00:00Z"))
    client.post("/api/v1/measurements", json=measurement_payload(value=5, recorded_at="2025-01-13T09:00:00Z"))
    client.post("/api/v1/measurements", json=measurement_payload(value=3, recorded_at="2025-01-20T09:00:00Z"))

    history = client.get("/api/v1/patients/patient-001/measurements/history", params={"measure_key": "vas"})
    assert history.status_code == 200
    assert [r["value"] for r in history.json()] == [8, 5, 3]

    progress = client.get("/api/v1/patients/patient-001/measurements/progress", params={"measure_key": "vas"})
    assert progress.status_code == 200
    data = progress.json()
    assert data["baseline_value"] == 8
    assert data["current_value"] == 3
    assert data["change"] == -5.0
    assert data["trend"] == "improved"
    assert data["meets_significance"] is True
    assert data["baseline_recorded_at"] == "2025-01-06T09:00:00Z"


def test_progress_until(client):
    client.post("/api/v1/measurements", json=measurement_payload(value=8, recorded_at="2025-01-06T09:00:00Z"))
    client.post("/api/v1/measurements", json=measurement_payload(value=3, recorded_at="2025-01-20T09:00:00Z"))

    response = client.get(
        "/api/v1/patients/patient-001/measurements/progress",
        params={"measure_key": "vas", "until": "2025-01-10T00:00:00Z"},
    )
    assert response.status_code == 200
    assert response.json()["trend"] == "first_record"


def test_progress_without_readings(client):
    response = client.get("/api/v1/patients/patient-001/measurements/progress", params={"measure_key": "vas"})
    assert response.status_code == 404


def test_trending(client):
    for value, day in ((40, "06"), (35, "13"), (30, "20")):
        client.post(
            "/api/v1/measurements",
            json=measurement_payload(measure_key="ndi", value=value, recorded_at=f"2025-01-{day}T09:00:00Z"),
        )

    response = client.get("/api/v1/patients/patient-001/measurements/trending", params={"measure_key": "ndi"})
    assert response.status_code == 200
    data = response.json()
    assert [p["value"] for p in data["data_points"]] == [40, 35, 30]
    assert data["previous_value"] == 35
    assert data["goal_value"] == 0
    assert data["progress_percentage"] == 25.0
    assert data["comparison"]["trend"] == "improved"
    assert data["interpretation"]["severity"] == "moderate"
    assert data["unit"] == "points"


# =============================================================================
# RE-EVALUATIONS
# =============================================================================

def test_create_and_fetch_reevaluation(client):
    client.post("/api/v1/measurements", json=measurement_payload(value=8))
    client.post(
        "/api/v1/measurements",
        json=measurement_payload(measure_key="rom:knee:left:active", value=120),
    )

    response = client.post(
        "/api/v1/reevaluations",
        json=reevaluation_payload(
            [
                {"measure_key": "vas", "current_value": 3},
                {"measure_key": "rom:knee:left:active", "current_value": 122},
                {"measure_key": "lefs", "current_value": 50},
            ],
            visit_id="visit-2025-02-10",
        ),
    )
    assert response.status_code == 201
    snapshot = response.json()
    assert snapshot["summary"] == {
        "total": 3,
        "improved": 2,
        "declined": 0,
        "stable": 0,
        "significant": 1,
        "first_record": 1,
    }
    assert [i["trend"] for i in snapshot["items"]] == ["improved", "improved", "first_record"]
    assert snapshot["baseline_mode"] == "first_recorded"

    fetched = client.get(f"/api/v1/reevaluations/{snapshot['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == snapshot

    listed = client.get("/api/v1/patients/patient-001/reevaluations")
    assert [s["id"] for s in listed.json()] == [snapshot["id"]]


def test_reevaluation_empty_items(client):
    response = client.post("/api/v1/reevaluations", json=reevaluation_payload([]))
    assert response.status_code == 400


def test_reevaluation_duplicate_items(client):
    response = client.post(
        "/api/v1/reevaluations",
        json=reevaluation_payload([
            {"measure_key": "vas", "current_value": 3},
            {"measure_key": "vas", "current_value": 4},
        ]),
    )
    assert response.status_code == 400


def test_reevaluation_pre_treatment_requires_start(client):
    response = client.post(
        "/api/v1/reevaluations",
        json=reevaluation_payload(
            [{"measure_key": "vas", "current_value": 3}],
            baseline_mode="pre_treatment",
        ),
    )
    assert response.status_code == 400
    assert "treatment_start" in response.json()["detail"]


def test_reevaluation_negative_threshold(client):
    response = client.post(
        "/api/v1/reevaluations",
        json=reevaluation_payload([{"measure_key": "vas", "current_value": 3, "threshold": -1}]),
    )
    assert response.status_code == 422


def test_reevaluation_not_found(client):
    assert client.get("/api/v1/reevaluations/77").status_code == 404


# =============================================================================
# PROTOCOL ASSIGNMENTS
# =============================================================================

def _assign(client):
    response = client.post(
        "/api/v1/protocol-assignments",
        json={
            "patient_id": "patient-001",
            "clinic_id": "clinic-01",
            "therapist_id": "therapist-07",
            "protocol_name": "ACL Reconstruction Rehab",
            "start_date": "2025-01-06",
        },
    )
    assert response.status_code == 201
    return response.json()


def test_assign_protocol(client):
    assignment = _assign(client)
    assert assignment["version"] == 1
    assert assignment["status"] == "active"
    assert assignment["start_date"] == "2025-01-06"

    fetched = client.get(f"/api/v1/protocol-assignments/{assignment['id']}")
    assert fetched.json() == assignment

    listed = client.get("/api/v1/patients/patient-001/protocol-assignments")
    assert [a["id"] for a in listed.json()] == [assignment["id"]]


def test_update_progress_and_conflict(client):
    assignment = _assign(client)
    url = f"/api/v1/protocol-assignments/{assignment['id']}/progress"

    first = client.patch(url, json={
        "version": 1,
        "therapist_id": "therapist-07",
        "sessions_completed": 4,
        "current_phase": "intermediate",
        "note": "Progressing well",
    })
    assert first.status_code == 200
    assert first.json()["version"] == 2
    assert first.json()["progress_notes"][0]["note"] == "Progressing well"

    stale = client.patch(url, json={"version": 1, "therapist_id": "therapist-08", "sessions_completed": 5})
    assert stale.status_code == 409
    body = stale.json()
    assert body["detail"] == "Record was modified by another request, please reload"
    assert body["context"]["actual_version"] == 2

    current = client.get(f"/api/v1/protocol-assignments/{assignment['id']}").json()
    assert current["sessions_completed"] == 4

    retried = client.patch(url, json={"version": current["version"], "therapist_id": "therapist-08", "sessions_completed": 5})
    assert retried.status_code == 200
    assert retried.json()["version"] == 3
    assert retried.json()["sessions_completed"] == 5
    assert client.get(f"/api/v1/protocol-assignments/{assignment['id']}").json()["sessions_completed"] == 5


def test_update_progress_invalid_status(client):
    assignment = _assign(client)
    response = client.patch(
        f"/api/v1/protocol-assignments/{assignment['id']}/progress",
        json={"version": 1, "therapist_id": "therapist-07", "status": "paused"},
    )
    assert response.status_code == 422


def test_update_progress_unknown_assignment(client):
    response = client.patch(
        "/api/v1/protocol-assignments/12345/progress",
        json={"version": 1, "therapist_id": "therapist-07", "sessions_completed": 1},
    )
    assert response.status_code == 404


# =============================================================================
# MEASURE LIBRARY
# =============================================================================

def test_list_library_measures(client):
    response = client.get("/api/v1/library/measures", params={"family": "outcome_measure"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == len(data["measures"])
    vas = next(m for m in data["measures"] if m["key"] == "vas")
    assert vas["higher_is_better"] is False
    assert vas["threshold"] == 2.0
    assert "pain vas" in vas["aliases"]


def test_list_library_unknown_family(client):
    response = client.get("/api/v1/library/measures", params={"family": "balance"})
    assert response.status_code == 400


def test_get_library_measure(client):
    response = client.get("/api/v1/library/measures/rom:knee:left:active")
    assert response.status_code == 200
    assert response.json()["max_value"] == 150

    assert client.get("/api/v1/library/measures/unknown").status_code == 404
