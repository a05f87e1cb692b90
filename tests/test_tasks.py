"""
Task endpoint tests.
Covers: create (with and without attachments), reads, file download,
developer updates, assignment and review transitions, list views,
bulk unpost, and the end-to-end lifecycle.
"""
from __future__ import annotations

import json
import uuid
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from workorders.core.config import settings
from workorders.models.user import User
from workorders.services import task_state_machine as sm

pytestmark = pytest.mark.asyncio

TASKS = "/api/v1/tasks"


def _pdf(field: str, name: str = "evidence.pdf", data: bytes = b"%PDF-1.4 ok") -> tuple:
    return (field, (name, data, "application/pdf"))


def _exe(field: str, name: str = "virus.exe") -> tuple:
    return (field, (name, b"MZ\x90\x00", "application/x-msdownload"))


async def _create_task(
    client: AsyncClient,
    form: dict[str, str],
    files: list[tuple] | None = None,
    **overrides: Any,
) -> dict:
    response = await client.post(f"{TASKS}/", data={**form, **overrides}, files=files)
    assert response.status_code == 201, response.text
    return response.json()


async def _developer_update(
    client: AsyncClient,
    task_id: str,
    files: list[tuple] | None = None,
    **fields: str,
):
    data = {"developer_status": "done", "developer_remarks": "fixed wiring", **fields}
    return await client.put(f"{TASKS}/{task_id}/developer", data=data, files=files)


async def _assign(client: AsyncClient, task_id: str, username: str = "dev1", files=None):
    return await client.put(
        f"{TASKS}/{task_id}/assign",
        data={
            "user_id": "u-dev",
            "username": username,
            "name": "Dev One",
            "role_name": "developer",
            "remarks": "please fix",
        },
        files=files,
    )


async def _unpost(client: AsyncClient, headers: dict, task_ids: Any):
    return await client.put(f"{TASKS}/unpost", json={"task_ids": task_ids}, headers=headers)


async def _review(
    client: AsyncClient,
    task_id: str,
    accepted: bool,
    files: list[tuple] | None = None,
    **fields: str,
):
    data = {"accepted": "true" if accepted else "false", **fields}
    return await client.put(f"{TASKS}/{task_id}/completion", data=data, files=files)


async def _assigned_and_done(client: AsyncClient, form: dict) -> dict:
    task = await _create_task(client, form)
    assert (await _assign(client, task["id"])).status_code == 200
    assert (await _developer_update(client, task["id"])).status_code == 200
    return task


class TestCreateTask:
    async def test_create_without_files(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        response = await client.post(f"{TASKS}/", data=task_form)
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["code"] == "T-1"
        assert data["status"] == "pending"
        assert data["approved"] is False
        assert data["assigned"] is False
        assert data["developer_status"] == "pending"
        assert data["final_status"] == "in-progress"
        assert data["unposted"] is False
        assert data["tasks_attachment"] == []
        assert data["company"]["name"] == "Acme Ltd"
        assert data["contact"] == {"name": "Sara", "phone": "0300-1234567"}

    async def test_create_with_files(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(
            client,
            task_form,
            files=[
                _pdf("tasks_attachment", "site.pdf", b"%PDF site"),
                ("tasks_attachment", ("panel.jpg", b"\xff\xd8\xff", "image/jpeg")),
            ],
        )
        assert len(task["tasks_attachment"]) == 2

        response = await client.get(f"{TASKS}/files/{task['tasks_attachment'][0]}")
        assert response.status_code == 200
        assert response.content == b"%PDF site"
        assert response.headers["content-type"].startswith("application/pdf")
        assert response.headers["content-disposition"].startswith("attachment")
        assert "site.pdf" in response.headers["content-disposition"]

    async def test_missing_required_fields(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        form = {k: v for k, v in task_form.items() if k not in ("working", "created_by")}
        response = await client.post(f"{TASKS}/", data=form)
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert {e["field"] for e in body["errors"]} == {"working", "created_by"}

    async def test_malformed_company_json(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        response = await client.post(
            f"{TASKS}/", data={**task_form, "company": "{not json"}
        )
        assert response.status_code == 422

    async def test_company_without_name(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        response = await client.post(
            f"{TASKS}/", data={**task_form, "company": json.dumps({"id": "c-1"})}
        )
        assert response.status_code == 422
        assert any(e["field"].startswith("company") for e in response.json()["errors"])

    async def test_invalid_date_time(self, client: AsyncClient, task_form: dict) -> None:
        response = await client.post(f"{TASKS}/", data={**task_form, "date_time": "soon"})
        assert response.status_code == 422

    async def test_unsupported_file_aborts_create(
        self, client: AsyncClient, task_form: dict, isolated_uploads: Path
    ) -> None:
        response = await client.post(
            f"{TASKS}/",
            data=task_form,
            files=[_pdf("tasks_attachment"), _exe("tasks_attachment")],
        )
        assert response.status_code == 415
        assert response.json()["error"] == "UNSUPPORTED_MEDIA_TYPE"

        listing = await client.get(f"{TASKS}/")
        assert listing.json()["total"] == 0
        assert not isolated_uploads.exists() or not any(isolated_uploads.iterdir())

    async def test_oversized_file_aborts_create(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        big = b"x" * (10 * 1024 * 1024 + 1)
        response = await client.post(
            f"{TASKS}/",
            data=task_form,
            files=[_pdf("tasks_attachment", "big.pdf", big)],
        )
        assert response.status_code == 413
        assert response.json()["error"] == "FILE_TOO_LARGE"

    async def test_empty_file_is_ignored(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(
            client,
            task_form,
            files=[_pdf("tasks_attachment", "empty.pdf", b""), _pdf("tasks_attachment")],
        )
        assert len(task["tasks_attachment"]) == 1


class TestReadTask:
    async def test_detail_resolves_creator(
        self, client: AsyncClient, db: AsyncSession, task_form: dict
    ) -> None:
        user = User(id=uuid.uuid4(), username="creator", full_name="Cre Ator")
        db.add(user)
        await db.flush()

        task = await _create_task(client, task_form, created_by=str(user.id))
        response = await client.get(f"{TASKS}/{task['id']}")
        assert response.status_code == 200
        assert response.json()["created_by_username"] == "creator"

    async def test_detail_with_unknown_creator(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await client.get(f"{TASKS}/{task['id']}")
        assert response.json()["created_by_username"] == "N/A"

    @pytest.mark.parametrize("task_id", [str(uuid.uuid4()), "not-a-uuid"])
    async def test_unknown_task(self, client: AsyncClient, task_id: str) -> None:
        response = await client.get(f"{TASKS}/{task_id}")
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_unknown_file(self, client: AsyncClient) -> None:
        response = await client.get(f"{TASKS}/files/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_list_is_paginated(self, client: AsyncClient, task_form: dict) -> None:
        for i in range(3):
            await _create_task(client, task_form, code=f"T-{i}")
        response = await client.get(f"{TASKS}/", params={"page": 1, "size": 2})
        body = response.json()
        assert body["total"] == 3
        assert len(body["items"]) == 2
        assert body["pages"] == 2

    async def test_list_task_attachments(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form, files=[_pdf("tasks_attachment")])
        response = await client.get(f"{TASKS}/{task['id']}/attachments")
        assert response.status_code == 200
        items = response.json()
        assert [a["id"] for a in items] == task["tasks_attachment"]
        assert items[0]["role"] == "creation"
        assert items[0]["task_id"] == task["id"]


class TestDeveloperUpdate:
    async def test_done_leaves_other_axes_alone(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await _developer_update(client, task["id"])
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["message"] == "Task status updated successfully"
        updated = body["task"]
        assert updated["developer_status"] == "done"
        assert updated["developer_remarks"] == "fixed wiring"
        assert updated["developer_done_date"] is not None
        assert updated["status"] == "pending"
        assert updated["approved"] is False
        assert updated["final_status"] == "in-progress"

    async def test_attachments_accumulate(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        first = await _developer_update(
            client, task["id"], files=[_pdf("developer_attachments", "one.pdf")]
        )
        second = await _developer_update(
            client,
            task["id"],
            files=[_pdf("developer_attachments", "two.pdf")],
            developer_status="not-done",
            developer_remarks="needs a part",
        )
        first_ids = first.json()["task"]["developer_attachment"]
        second_ids = second.json()["task"]["developer_attachment"]
        assert len(first_ids) == 1
        assert second_ids[:1] == first_ids
        assert len(second_ids) == 2

    async def test_bad_files_are_skipped(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await _developer_update(
            client,
            task["id"],
            files=[_exe("developer_attachments"), _pdf("developer_attachments")],
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["task"]["developer_attachment"]) == 1
        assert [s["filename"] for s in body["skipped_files"]] == ["virus.exe"]

    async def test_missing_remarks(self, client: AsyncClient, task_form: dict) -> None:
        task = await _create_task(client, task_form)
        response = await client.put(
            f"{TASKS}/{task['id']}/developer", data={"developer_status": "done"}
        )
        assert response.status_code == 422

    async def test_invalid_developer_status(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await _developer_update(client, task["id"], developer_status="finished")
        assert response.status_code == 422

    async def test_unknown_task(self, client: AsyncClient) -> None:
        response = await _developer_update(client, str(uuid.uuid4()))
        assert response.status_code == 404

    async def test_fix_without_rejection(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await _developer_update(
            client, task["id"], developer_status_rejection="fixed"
        )
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_TRANSITION"

    async def test_rejection_fix_cycle(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        assert (await _assign(client, task["id"])).status_code == 200
        assert (await _developer_update(client, task["id"])).status_code == 200

        rejected = await client.put(
            f"{TASKS}/{task['id']}/completion",
            data={"accepted": "false", "remarks": "still sparking"},
        )
        assert rejected.status_code == 200, rejected.text
        assert rejected.json()["task"]["final_status"] == "rejected"

        working = await client.get(f"{TASKS}/developer-working", params={"username": "dev1"})
        assert [t["id"] for t in working.json()["items"]] == [task["id"]]

        fixed = await _developer_update(
            client,
            task["id"],
            files=[_pdf("developer_rejection_solve_attachments", "fix.pdf")],
            developer_status_rejection="fixed",
            developer_rejection_remarks="replaced breaker",
        )
        assert fixed.status_code == 200, fixed.text
        body = fixed.json()["task"]
        assert body["developer_status_rejection"] == "fixed"
        assert body["final_status"] == "in-progress"
        assert body["developer_rejection_remarks"] == "replaced breaker"
        assert len(body["developer_rejection_solve_attachment"]) == 1
        assert body["rejection_remarks"] == "still sparking"


class TestWorkflowTransitions:
    async def test_assign_approve_complete(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)

        pending = await client.get(f"{TASKS}/pending")
        assert pending.json()["total"] == 1

        assigned = await _assign(client, task["id"], files=[_pdf("files", "plan.pdf")])
        assert assigned.status_code == 200, assigned.text
        body = assigned.json()["task"]
        assert body["status"] == "assigned"
        assert body["approved"] is True
        assert body["assigned_to"]["username"] == "dev1"
        assert body["assigned_to"]["role"] == {"name": "developer"}
        assert len(body["assignment_attachment"]) == 1

        assert (await client.get(f"{TASKS}/pending")).json()["total"] == 0
        assert (await client.get(f"{TASKS}/approved")).json()["total"] == 1

        approved = await client.post(f"{TASKS}/{task['id']}/approve")
        assert approved.json()["status"] == "approved"

        early = await client.put(
            f"{TASKS}/{task['id']}/completion", data={"accepted": "true"}
        )
        assert early.status_code == 409

        await _developer_update(client, task["id"])
        completed = await client.put(
            f"{TASKS}/{task['id']}/completion",
            data={"accepted": "true", "remarks": "all good", "time_taken": "90"},
        )
        assert completed.status_code == 200, completed.text
        data = completed.json()["task"]
        assert data["status"] == "completed"
        assert data["completion_approved"] is True
        assert data["final_status"] == "done"
        assert data["time_taken"] == 90

        reportable = await client.get(f"{TASKS}/completed")
        assert [t["id"] for t in reportable.json()["items"]] == [task["id"]]
        working = await client.get(f"{TASKS}/developer-working", params={"username": "dev1"})
        assert working.json()["total"] == 0

    async def test_hold_and_resume(self, client: AsyncClient, task_form: dict) -> None:
        task = await _create_task(client, task_form)
        held = await client.post(f"{TASKS}/{task['id']}/hold")
        assert held.json()["status"] == "on-hold"

        blocked = await client.post(
            f"{TASKS}/{task['id']}/resume", json={"status": "completed"}
        )
        assert blocked.status_code == 409

        resumed = await client.post(
            f"{TASKS}/{task['id']}/resume", json={"status": "pending"}
        )
        assert resumed.status_code == 200
        assert resumed.json()["status"] == "pending"

    async def test_resume_with_unknown_status(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await client.post(
            f"{TASKS}/{task['id']}/resume", json={"status": "paused"}
        )
        assert response.status_code == 422

    async def test_pending_task_cannot_be_approved(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await client.post(f"{TASKS}/{task['id']}/approve")
        assert response.status_code == 409

    async def test_developer_working_filters_by_username(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        mine = await _create_task(client, task_form, code="MINE")
        theirs = await _create_task(client, task_form, code="THEIRS")
        await _assign(client, mine["id"], username="dev1")
        await _assign(client, theirs["id"], username="dev2")

        response = await client.get(f"{TASKS}/developer-working", params={"username": "dev1"})
        assert [t["code"] for t in response.json()["items"]] == ["MINE"]

    async def test_assign_requires_username(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await client.put(
            f"{TASKS}/{task['id']}/assign", data={"user_id": "u-dev"}
        )
        assert response.status_code == 422


class TestCompletionReview:
    async def test_reject_fix_accept_cycle(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _assigned_and_done(client, task_form)

        accepted = await _review(client, task["id"], True, remarks="looks fine")
        assert accepted.json()["task"]["status"] == "completed"

        rejected = await _review(client, task["id"], False, remarks="breaker trips again")
        assert rejected.status_code == 200, rejected.text
        body = rejected.json()["task"]
        assert body["status"] == "approved"
        assert body["completion_approved"] is False
        assert body["final_status"] == "rejected"
        assert (await client.get(f"{TASKS}/completed")).json()["total"] == 0

        fixed = await _developer_update(
            client, task["id"], developer_status_rejection="fixed"
        )
        assert fixed.json()["task"]["final_status"] == "in-progress"

        reaccepted = await _review(client, task["id"], True, remarks="holds now")
        assert reaccepted.status_code == 200, reaccepted.text
        body = reaccepted.json()["task"]
        assert body["status"] == "completed"
        assert body["completion_approved"] is True
        assert body["final_status"] == "done"
        reportable = await client.get(f"{TASKS}/completed")
        assert [t["id"] for t in reportable.json()["items"]] == [task["id"]]

    async def test_pending_task_cannot_be_reviewed(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        assert (await _developer_update(client, task["id"])).status_code == 200

        response = await _review(client, task["id"], False, remarks="nope")
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_TRANSITION"
        detail = (await client.get(f"{TASKS}/{task['id']}")).json()
        assert detail["final_status"] == "in-progress"

    async def test_accepting_twice_is_rejected(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _assigned_and_done(client, task_form)
        assert (await _review(client, task["id"], True)).status_code == 200
        assert (await _review(client, task["id"], True)).status_code == 409

    async def test_evidence_accumulates_per_role(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _assigned_and_done(client, task_form)

        rejected = await _review(
            client,
            task["id"],
            False,
            files=[
                _pdf("rejection_attachment", "photo.pdf"),
                _exe("rejection_attachment"),
            ],
            remarks="see photo",
        )
        body = rejected.json()
        assert len(body["task"]["rejection_attachment"]) == 1
        assert body["task"]["completion_attachment"] == []
        assert [s["filename"] for s in body["skipped_files"]] == ["virus.exe"]

        await _developer_update(client, task["id"], developer_status_rejection="fixed")
        accepted = await _review(
            client,
            task["id"],
            True,
            files=[_pdf("completion_attachment", "signoff.pdf")],
            time_taken="45",
        )
        body = accepted.json()["task"]
        assert len(body["completion_attachment"]) == 1
        assert body["rejection_attachment"] == rejected.json()["task"]["rejection_attachment"]
        assert body["time_taken"] == 45

        listed = await client.get(f"{TASKS}/{task['id']}/attachments")
        assert sorted(a["role"] for a in listed.json()) == ["completion", "rejection"]

    async def test_negative_time_taken(
        self, client: AsyncClient, task_form: dict
    ) -> None:
        task = await _assigned_and_done(client, task_form)
        response = await _review(client, task["id"], True, time_taken="-5")
        assert response.status_code == 422

    async def test_completed_view_matches_reportable_predicate(
        self,
        client: AsyncClient,
        unpost_headers: dict,
        task_form: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "UNPOST_FORCES_STATUS", False)
        done = await _assigned_and_done(client, task_form)
        await _review(client, done["id"], True)
        retracted = await _assigned_and_done(client, task_form)
        await _review(client, retracted["id"], True)
        await _unpost(client, unpost_headers, [retracted["id"]])
        rejected = await _assigned_and_done(client, task_form)
        await _review(client, rejected["id"], False)
        await _create_task(client, task_form)

        everything = (await client.get(f"{TASKS}/", params={"size": 100})).json()["items"]
        expected = {
            t["id"] for t in everything if sm.is_reportable_completed(SimpleNamespace(**t))
        }
        reportable = (await client.get(f"{TASKS}/completed")).json()["items"]
        assert {t["id"] for t in reportable} == expected == {done["id"]}


class TestUnpost:
    async def test_requires_token(self, client: AsyncClient) -> None:
        response = await _unpost(client, {}, [str(uuid.uuid4())])
        assert response.status_code == 401

    async def test_rejects_wrong_scheme(self, client: AsyncClient) -> None:
        response = await _unpost(client, {"Authorization": "Basic abc"}, ["x"])
        assert response.status_code == 401

    async def test_rejects_bad_token(self, client: AsyncClient) -> None:
        response = await _unpost(client, {"Authorization": "Bearer nope"}, ["x"])
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    async def test_requires_permission(self, client: AsyncClient, make_token) -> None:
        token = make_token(["tasks.read"])
        response = await _unpost(client, {"Authorization": f"Bearer {token}"}, ["x"])
        assert response.status_code == 403

    @pytest.mark.parametrize("task_ids", [[], None, [""]])
    async def test_empty_ids(
        self, client: AsyncClient, unpost_headers: dict, task_ids: Any
    ) -> None:
        response = await _unpost(client, unpost_headers, task_ids)
        assert response.status_code == 422

    async def test_unpost_is_idempotent(
        self, client: AsyncClient, unpost_headers: dict, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)

        first = await _unpost(client, unpost_headers, [task["id"]])
        assert first.status_code == 200
        assert first.json() == {
            "message": "Tasks unposted successfully",
            "modified_count": 1,
        }

        second = await _unpost(client, unpost_headers, [task["id"]])
        assert second.json()["modified_count"] == 0

        detail = (await client.get(f"{TASKS}/{task['id']}")).json()
        assert detail["unposted"] is True
        assert detail["unpost_status"] == "unposted"
        assert detail["unposted_at"] is not None
        assert detail["status"] == "unposted"
        assert detail["final_status"] == "unposted"

    async def test_single_id_string(
        self, client: AsyncClient, unpost_headers: dict, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        response = await _unpost(client, unpost_headers, task["id"])
        assert response.json()["modified_count"] == 1

    async def test_unknown_and_malformed_ids_are_ignored(
        self, client: AsyncClient, unpost_headers: dict, task_form: dict
    ) -> None:
        a = await _create_task(client, task_form, code="A")
        b = await _create_task(client, task_form, code="B")
        response = await _unpost(
            client,
            unpost_headers,
            [a["id"], b["id"], str(uuid.uuid4()), "garbage", a["id"]],
        )
        assert response.json()["modified_count"] == 2

    async def test_retract_only_keeps_status(
        self,
        client: AsyncClient,
        unpost_headers: dict,
        task_form: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "UNPOST_FORCES_STATUS", False)
        task = await _create_task(client, task_form)
        await _unpost(client, unpost_headers, [task["id"]])

        detail = (await client.get(f"{TASKS}/{task['id']}")).json()
        assert detail["unposted"] is True
        assert detail["status"] == "pending"
        assert detail["final_status"] == "in-progress"

    async def test_unposted_task_is_frozen_and_hidden(
        self, client: AsyncClient, unpost_headers: dict, task_form: dict
    ) -> None:
        task = await _create_task(client, task_form)
        await _unpost(client, unpost_headers, [task["id"]])

        assert (await _developer_update(client, task["id"])).status_code == 409
        assert (await _assign(client, task["id"])).status_code == 409
        assert (await client.get(f"{TASKS}/pending")).json()["total"] == 0
        unposted = await client.get(f"{TASKS}/unposted")
        assert [t["id"] for t in unposted.json()["items"]] == [task["id"]]


class TestLifecycle:
    async def test_create_update_unpost(
        self, client: AsyncClient, unpost_headers: dict, task_form: dict
    ) -> None:
        created = await _create_task(client, task_form)
        assert created["status"] == "pending"
        assert created["approved"] is False

        updated = await _developer_update(
            client, created["id"], developer_status="done", developer_remarks="fixed wiring"
        )
        task = updated.json()["task"]
        assert task["developer_status"] == "done"
        for axis in ("status", "approved", "assigned", "final_status", "unposted"):
            assert task[axis] == created[axis]

        first = await _unpost(client, unpost_headers, [created["id"]])
        assert first.json()["modified_count"] == 1
        detail = (await client.get(f"{TASKS}/{created['id']}")).json()
        assert detail["unposted"] is True

        second = await _unpost(client, unpost_headers, [created["id"]])
        assert second.json()["modified_count"] == 0
