from datetime import timedelta

from trakly.config import settings
from trakly.services import extraction
from trakly.services.extraction import QuestionExtractor, get_extractor
from trakly.main import app

from conftest import T0, FakeAI, add_task, auth_headers, make_user

PDF_BYTES = b"%PDF-1.4\n1 0 obj <<>> endobj\ntrailer <<>>\n%%EOF\n"


def task_form(number=2, **overrides):
    form = {
        "type": "Assignment",
        "subjectCode": "CS301",
        "taskNumber": str(number),
        "semester": "1",
        "deadline": "2025-01-09T20:00:00Z",
    }
    form.update(overrides)
    return form


def stored_files(file_store):
    if not file_store.root.exists():
        return []
    return list(file_store.root.iterdir())


async def test_available_task_numbers(client, db):
    user = await make_user(db)
    await add_task(db, user, 1)
    await add_task(db, user, 3)

    response = await client.get(
        "/api/tasks/available-task-numbers",
        params={"type": "Assignment", "subjectCode": "CS301", "semester": "1"},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    assert response.json() == [2, 4, 5]

    other_group = await client.get(
        "/api/tasks/available-task-numbers",
        params={"type": "Surprise Test", "subjectCode": "CS301", "semester": "1"},
        headers=auth_headers(user),
    )
    assert other_group.json() == [1, 2, 3, 4, 5]


async def test_create_task(client, db):
    user = await make_user(db)
    response = await client.post(
        "/api/tasks",
        data=task_form(description="Trees and graphs", reminderTime="2025-01-09T19:00:00Z"),
        headers=auth_headers(user),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["taskNumber"] == 2
    assert body["title"] == "Assignment 2 - CS301"
    assert body["subject"] == {"subjectCode": "CS301", "subjectName": "Data Structures"}
    assert body["status"] == "pending"
    assert body["priority"] == "medium"
    assert body["urgency"] == 2
    assert body["reminderTime"].startswith("2025-01-09T19:00:00")
    assert body["pdfUrl"] is None


async def test_create_task_in_taken_slot(client, db):
    user = await make_user(db)
    await add_task(db, user, 2)
    response = await client.post("/api/tasks", data=task_form(2), headers=auth_headers(user))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "SlotUnavailable"
    assert body["field"] == "taskNumber"


async def test_create_task_in_full_group(client, db):
    user = await make_user(db)
    for number in range(1, 6):
        await add_task(db, user, number)
    response = await client.post("/api/tasks", data=task_form(4), headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["error"] == "QuotaExceeded"


async def test_create_task_for_unknown_subject(client, db):
    user = await make_user(db)
    response = await client.post("/api/tasks", data=task_form(1, subjectCode="PH101"), headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["error"] == "UnknownSubject"
    assert response.json()["field"] == "subjectCode"


async def test_create_task_with_invalid_form(client, db):
    user = await make_user(db)
    headers = auth_headers(user)
    assert (await client.post("/api/tasks", data=task_form(type="Quiz"), headers=headers)).status_code == 422
    assert (await client.post("/api/tasks", data=task_form(number="two"), headers=headers)).status_code == 422
    assert (await client.post("/api/tasks", data=task_form(deadline="soon"), headers=headers)).status_code == 422


async def test_create_task_with_pdf(client, db, file_store):
    user = await make_user(db)
    response = await client.post(
        "/api/tasks",
        data=task_form(),
        files={"pdf": ("Sheet 4.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers(user),
    )
    assert response.status_code == 201
    task_id = response.json()["id"]
    assert response.json()["pdfUrl"] == f"/api/tasks/{task_id}/pdf"

    [stored] = stored_files(file_store)
    assert stored.name.endswith("-Sheet_4.pdf")
    assert stored.read_bytes() == PDF_BYTES


async def test_pdf_download_is_owner_only(client, db, file_store):
    asha = await make_user(db)
    ravi = await make_user(db, email="ravi@example.edu", name="Ravi")
    created = await client.post(
        "/api/tasks",
        data=task_form(),
        files={"pdf": ("Sheet 4.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers(asha),
    )
    pdf_url = created.json()["pdfUrl"]

    response = await client.get(pdf_url, headers=auth_headers(asha))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == PDF_BYTES
    assert "Sheet_4.pdf" in response.headers["content-disposition"]

    assert (await client.get(pdf_url)).status_code == 401
    assert (await client.get(pdf_url, headers=auth_headers(ravi))).status_code == 403

    [stored] = stored_files(file_store)
    assert (await client.get(f"/uploads/{stored.name}")).status_code == 404


async def test_pdf_download_without_attachment(client, db):
    user = await make_user(db)
    task = await add_task(db, user, 1)
    response = await client.get(f"/api/tasks/{task.id}/pdf", headers=auth_headers(user))
    assert response.status_code == 404
    assert response.json()["detail"] == "No PDF attached to this task"


async def test_create_task_rejects_non_pdf(client, db, file_store):
    user = await make_user(db)
    response = await client.post(
        "/api/tasks",
        data=task_form(),
        files={"pdf": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["field"] == "pdf"
    assert stored_files(file_store) == []


async def test_refused_task_leaves_no_upload_behind(client, db, file_store):
    user = await make_user(db)
    await add_task(db, user, 2)
    response = await client.post(
        "/api/tasks",
        data=task_form(2),
        files={"pdf": ("sheet.pdf", PDF_BYTES, "application/pdf")},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert stored_files(file_store) == []


async def test_list_and_filter_tasks(client, db):
    user = await make_user(db, subjects=(("CS301", "Data Structures"), ("MA201", "Discrete Maths")))
    first = await add_task(db, user, 1)
    second = await add_task(db, user, 1, task_type="Surprise Test", priority="high")
    third = await add_task(db, user, 1, subject_code="MA201", subject_name="Discrete Maths", status="completed")
    headers = auth_headers(user)

    response = await client.get("/api/tasks", headers=headers)
    assert [t["id"] for t in response.json()] == [third.id, second.id, first.id]

    pending = await client.get("/api/tasks", params={"status": "pending"}, headers=headers)
    assert {t["id"] for t in pending.json()} == {first.id, second.id}

    tests_only = await client.get("/api/tasks", params={"type": "Surprise Test"}, headers=headers)
    assert [t["id"] for t in tests_only.json()] == [second.id]

    maths = await client.get("/api/tasks", params={"subjectCode": "MA201"}, headers=headers)
    assert [t["id"] for t in maths.json()] == [third.id]

    high = await client.get("/api/tasks", params={"priority": "high"}, headers=headers)
    assert [t["id"] for t in high.json()] == [second.id]


async def test_tasks_are_private_to_their_owner(client, db):
    asha = await make_user(db)
    ravi = await make_user(db, email="ravi@example.edu", name="Ravi")
    task = await add_task(db, asha, 1)

    assert (await client.get("/api/tasks", headers=auth_headers(ravi))).json() == []
    response = await client.get(f"/api/tasks/{task.id}", headers=auth_headers(ravi))
    assert response.status_code == 403
    assert response.json()["error"] == "NotTaskOwner"
    assert (await client.delete(f"/api/tasks/{task.id}", headers=auth_headers(ravi))).status_code == 403
    assert (await client.get("/api/tasks/9999", headers=auth_headers(asha))).status_code == 404


async def test_update_task_arms_and_disarms_reminder(client, db):
    user = await make_user(db)
    task = await add_task(db, user, 1)
    headers = auth_headers(user)

    armed = await client.put(
        f"/api/tasks/{task.id}", json={"reminderTime": "2025-01-09T18:00:00Z", "priority": "high"}, headers=headers
    )
    assert armed.status_code == 200
    assert armed.json()["reminderTime"].startswith("2025-01-09T18:00:00")
    assert armed.json()["priority"] == "high"

    disarmed = await client.put(f"/api/tasks/{task.id}", json={"reminderTime": None}, headers=headers)
    assert disarmed.json()["reminderTime"] is None
    assert disarmed.json()["priority"] == "high"


async def test_update_task_rejects_empty_and_cleared_fields(client, db):
    user = await make_user(db)
    task = await add_task(db, user, 1)
    headers = auth_headers(user)
    assert (await client.put(f"/api/tasks/{task.id}", json={}, headers=headers)).status_code == 400
    assert (await client.put(f"/api/tasks/{task.id}", json={"deadline": None}, headers=headers)).status_code == 400
    assert (await client.put(f"/api/tasks/{task.id}", json={"status": "done"}, headers=headers)).status_code == 422


async def test_complete_task(client, db):
    user = await make_user(db)
    task = await add_task(db, user, 1)
    headers = auth_headers(user)

    response = await client.patch(f"/api/tasks/{task.id}/complete", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    again = await client.patch(f"/api/tasks/{task.id}/complete", headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Task already completed"


async def test_delete_task_frees_slot_and_file(client, db, file_store):
    user = await make_user(db)
    headers = auth_headers(user)
    created = await client.post(
        "/api/tasks",
        data=task_form(3),
        files={"pdf": ("sheet.pdf", PDF_BYTES, "application/pdf")},
        headers=headers,
    )
    task_id = created.json()["id"]

    response = await client.delete(f"/api/tasks/{task_id}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Task deleted successfully"}
    assert stored_files(file_store) == []
    assert (await client.get(f"/api/tasks/{task_id}", headers=headers)).status_code == 404

    slots = await client.get(
        "/api/tasks/available-task-numbers",
        params={"type": "Assignment", "subjectCode": "CS301", "semester": "1"},
        headers=headers,
    )
    assert 3 in slots.json()


async def test_stats_and_upcoming(client, db):
    user = await make_user(db)
    await add_task(db, user, 1, status="completed")
    overdue = await add_task(db, user, 2, deadline=T0 - timedelta(hours=1))
    soon = await add_task(db, user, 3, deadline=T0 + timedelta(hours=5))
    later = await add_task(db, user, 4, deadline=T0 + timedelta(days=3))
    await add_task(db, user, 5, deadline=T0 + timedelta(days=10))
    headers = auth_headers(user)

    stats = await client.get("/api/tasks/stats", headers=headers)
    assert stats.json() == {"total": 5, "completed": 1, "pending": 4, "overdue": 1, "dueSoon": 1}

    upcoming = await client.get("/api/tasks/upcoming", headers=headers)
    assert [t["id"] for t in upcoming.json()] == [soon.id, later.id]

    everything = {t["id"]: t["urgency"] for t in (await client.get("/api/tasks", headers=headers)).json()}
    assert everything[overdue.id] == 3
    assert everything[soon.id] == 2
    assert everything[later.id] == 0


async def test_answers_for_task_pdf(client, db, file_store, monkeypatch):
    user = await make_user(db)
    file_store.ensure_root()
    (file_store.root / "sheet.pdf").write_bytes(PDF_BYTES)
    with_pdf = await add_task(db, user, 1, pdf_url="/uploads/sheet.pdf")
    without_pdf = await add_task(db, user, 2)

    monkeypatch.setattr(extraction, "extract_pdf_text", lambda data: "1. What is hashing?")
    ai = FakeAI(lambda prompt: '[{"question": "What is hashing?", "answer": "Mapping keys to buckets."}]')
    app.dependency_overrides[get_extractor] = lambda: QuestionExtractor(file_store, ai)
    headers = auth_headers(user)

    response = await client.post(f"/api/tasks/{with_pdf.id}/answers", headers=headers)
    assert response.status_code == 200
    assert response.json() == {
        "questions": [{"question": "What is hashing?", "answer": "Mapping keys to buckets."}],
        "message": None,
    }

    response = await client.post(f"/api/tasks/{without_pdf.id}/answers", headers=headers)
    assert response.json() == {"questions": [], "message": "No PDF attached"}


async def test_answers_unavailable_without_ai_key(client, db, monkeypatch):
    user = await make_user(db)
    task = await add_task(db, user, 1, pdf_url="/uploads/sheet.pdf")
    monkeypatch.setattr(settings, "GEMINI_API_KEY", None)

    response = await client.post(f"/api/tasks/{task.id}/answers", headers=auth_headers(user))
    assert response.status_code == 503
    assert response.json()["error"] == "ExtractionUnavailable"
