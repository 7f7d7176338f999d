"""Tests for survey submission, lookup, listing, and deletion."""

import json
import uuid

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from app.models.study_config import StudyConfig
from app.models.survey import Survey
from app.models.survey_response import SurveyResponse
from app.services.exceptions import DatabaseError, SurveyNotFound
from app.services.surveys import delete_survey, get_survey, list_study_surveys, submit_survey
from app.services.validation import validate_submission

NONEXISTENT_ID = str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _submit(db, payload):
    return submit_survey(db, validate_submission(payload))


@pytest.fixture
def fail_on_question():
    """Make the insert of one response row fail as if the database rejected it."""
    listeners = []

    def _install(question_id):
        def _before_insert(mapper, connection, target):
            if target.question_id == question_id:
                raise OperationalError("INSERT INTO responses", {}, Exception("disk I/O error"))

        event.listen(SurveyResponse, "before_insert", _before_insert)
        listeners.append(_before_insert)

    yield _install

    for listener in listeners:
        event.remove(SurveyResponse, "before_insert", listener)


# ---------------------------------------------------------------------------
# Store — submit / get
# ---------------------------------------------------------------------------


class TestSubmitSurvey:
    def test_submit_then_get_returns_ordered_responses(self, db, make_payload):
        payload = make_payload()
        payload["responses"].reverse()
        payload["responses"][0]["answer"] = ["a", "b"]
        payload["responses"][0]["responseType"] = "checkbox"
        payload["responses"][1]["answer"] = 7
        payload["responses"][1]["responseType"] = "scale"

        survey_id = _submit(db, payload)
        survey, responses = get_survey(db, survey_id)

        assert survey.patient_id == "P1"
        assert survey.study_id == "S1"
        assert survey.version == 1
        assert survey.status == "completed"
        assert [r.question_id for r in responses] == list(range(1, 21))
        assert responses[19].answer_value == ["a", "b"]
        assert responses[18].answer_value == 7
        assert responses[0].answer_value == "Answer 1"

    def test_completed_at_taken_from_metadata(self, db, make_payload):
        survey_id = _submit(db, make_payload(completed_at="2026-03-01T12:00:00+02:00"))
        survey, _ = get_survey(db, survey_id)
        assert survey.completed_at.isoformat() == "2026-03-01T10:00:00"
        assert survey.metadata_ == {"completedAt": "2026-03-01T12:00:00+02:00"}

    def test_versions_increment_per_patient_and_study(self, db, make_payload):
        first = _submit(db, make_payload())
        second = _submit(db, make_payload())
        other_study = _submit(db, make_payload(study_id="S2"))

        assert get_survey(db, first)[0].version == 1
        assert get_survey(db, second)[0].version == 2
        assert get_survey(db, other_study)[0].version == 1

    def test_failure_on_last_response_persists_nothing(self, db, make_payload, fail_on_question):
        fail_on_question(20)

        with pytest.raises(DatabaseError):
            _submit(db, make_payload())

        assert _count(db, Survey) == 0
        assert _count(db, SurveyResponse) == 0

    def test_retry_after_failure_succeeds(self, db, make_payload):
        def _fail_last(mapper, connection, target):
            if target.question_id == 20:
                raise OperationalError("INSERT INTO responses", {}, Exception("disk I/O error"))

        event.listen(SurveyResponse, "before_insert", _fail_last)
        try:
            with pytest.raises(DatabaseError):
                _submit(db, make_payload())
        finally:
            event.remove(SurveyResponse, "before_insert", _fail_last)

        survey_id = _submit(db, make_payload())
        assert get_survey(db, survey_id)[0].version == 1
        assert _count(db, SurveyResponse) == 20

    def test_get_nonexistent_raises(self, db):
        with pytest.raises(SurveyNotFound):
            get_survey(db, NONEXISTENT_ID)


# ---------------------------------------------------------------------------
# Store — listing
# ---------------------------------------------------------------------------


class TestListStudySurveys:
    def _seed_five(self, db, make_payload):
        ids = []
        for day in range(1, 6):
            ids.append(_submit(db, make_payload(patient_id=f"P{day}", completed_at=f"2026-03-0{day}T09:00:00Z")))
        return ids

    def test_pages_of_two(self, db, make_payload):
        ids = self._seed_five(db, make_payload)

        page1, more1 = list_study_surveys(db, "S1", page=1, page_size=2)
        page2, more2 = list_study_surveys(db, "S1", page=2, page_size=2)
        page3, more3 = list_study_surveys(db, "S1", page=3, page_size=2)

        assert (len(page1), more1) == (2, True)
        assert (len(page2), more2) == (2, True)
        assert (len(page3), more3) == (1, False)

        # most recent first
        listed = [survey.survey_id for survey, _ in page1 + page2 + page3]
        assert listed == list(reversed(ids))

    def test_response_counts(self, db, make_payload):
        self._seed_five(db, make_payload)
        rows, _ = list_study_surveys(db, "S1", page=1, page_size=10)
        assert [count for _, count in rows] == [20] * 5

    def test_other_studies_excluded(self, db, make_payload):
        _submit(db, make_payload(study_id="S2"))
        rows, has_more = list_study_surveys(db, "S1")
        assert rows == []
        assert has_more is False


# ---------------------------------------------------------------------------
# Store — delete
# ---------------------------------------------------------------------------


class TestDeleteSurvey:
    def test_delete_removes_responses(self, db, make_payload):
        keep = _submit(db, make_payload(patient_id="P2"))
        survey_id = _submit(db, make_payload())

        delete_survey(db, survey_id)

        assert db.get(Survey, survey_id) is None
        assert _count(db, SurveyResponse) == 20
        assert get_survey(db, keep)[0].survey_id == keep

    def test_delete_nonexistent_raises(self, db):
        with pytest.raises(SurveyNotFound):
            delete_survey(db, NONEXISTENT_ID)

    def test_lookup_failure_raises_database_error(self, db, make_payload, monkeypatch):
        survey_id = _submit(db, make_payload())

        def _broken_get(*args, **kwargs):
            raise OperationalError("SELECT surveys", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "get", _broken_get)
        with pytest.raises(DatabaseError):
            delete_survey(db, survey_id)

        monkeypatch.undo()
        assert db.get(Survey, survey_id) is not None

    def test_foreign_key_cascade(self, db, make_payload):
        survey_id = _submit(db, make_payload())
        db.execute(Survey.__table__.delete().where(Survey.survey_id == survey_id))
        db.commit()
        assert _count(db, SurveyResponse) == 0


# ---------------------------------------------------------------------------
# POST /api/surveys
# ---------------------------------------------------------------------------


class TestSubmitEndpoint:
    def test_submit_success(self, client, make_payload):
        resp = client.post("/api/surveys", json=make_payload())
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert uuid.UUID(data["surveyId"])

    def test_submit_then_fetch(self, client, make_payload):
        survey_id = client.post("/api/surveys", json=make_payload()).json()["surveyId"]

        resp = client.get(f"/api/surveys/{survey_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["survey"]["patient_id"] == "P1"
        assert data["survey"]["survey_id"] == survey_id
        assert [r["question_id"] for r in data["responses"]] == list(range(1, 21))
        assert data["responses"][0]["answer"] == "Answer 1"
        assert data["responses"][0]["question_text"] == "Question 1"

    @pytest.mark.parametrize("count", [19, 21])
    def test_wrong_count_returns_400_and_writes_nothing(self, client, db, make_payload, count):
        resp = client.post("/api/surveys", json=make_payload(count=count))
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert any(d["field"] == "responses" for d in body["details"])

        listing = client.get("/api/studies/S1/surveys").json()
        assert listing["surveys"] == []
        assert _count(db, SurveyResponse) == 0

    def test_duplicate_question_returns_400(self, client, make_payload):
        payload = make_payload()
        payload["responses"][1]["questionId"] = 1
        resp = client.post("/api/surveys", json=payload)
        assert resp.status_code == 400
        assert {"field": "responses.1.questionId", "message": "Duplicate questionId 1"} in resp.json()["details"]
        assert client.get("/api/studies/S1/surveys").json()["surveys"] == []

    def test_multiple_errors_reported_together(self, client, make_payload):
        payload = make_payload()
        payload["patientId"] = ""
        payload["responses"][3]["answer"] = None
        resp = client.post("/api/surveys", json=payload)
        assert resp.status_code == 400
        fields = {d["field"] for d in resp.json()["details"]}
        assert {"patientId", "responses.3.answer"} <= fields

    def test_missing_body_returns_400(self, client):
        resp = client.post("/api/surveys")
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "Validation failed",
            "details": [{"field": "body", "message": "Request body is required"}],
        }

    def test_malformed_json_returns_400(self, client):
        resp = client.post("/api/surveys", content="{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["details"] == [{"field": "body", "message": "Malformed JSON body"}]

    def test_nan_answer_returns_400_and_writes_nothing(self, client, db, make_payload):
        body = json.dumps(make_payload()).replace('"Answer 5"', "NaN")
        resp = client.post("/api/surveys", content=body, headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        detail = {"field": "responses.4.answer", "message": "answer must not be NaN or infinite"}
        assert detail in resp.json()["details"]
        assert _count(db, Survey) == 0

    def test_storage_failure_returns_500(self, client, db, make_payload, fail_on_question):
        fail_on_question(20)
        resp = client.post("/api/surveys", json=make_payload())
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to save survey"}
        assert _count(db, Survey) == 0

    def test_uses_study_config_question_count(self, client, db):
        db.add(
            StudyConfig(
                study_id="S1",
                questions=[{"type": "boolean", "text": "Q1"}, {"type": "number", "text": "Q2"}],
                settings={"allowResubmission": True},
            )
        )
        db.commit()
        payload = {
            "patientId": "P1",
            "studyId": "S1",
            "responses": [
                {"questionId": 1, "question": "Q1", "answer": True, "responseType": "boolean"},
                {"questionId": 2, "question": "Q2", "answer": 3.5, "responseType": "number"},
            ],
        }
        resp = client.post("/api/surveys", json=payload)
        assert resp.status_code == 200

        survey = client.get(f"/api/surveys/{resp.json()['surveyId']}").json()
        assert [r["answer"] for r in survey["responses"]] == [True, 3.5]

    def test_resubmission_refused_when_disabled(self, client, db):
        db.add(
            StudyConfig(
                study_id="S1",
                questions=[{"type": "text", "text": "Q1"}],
                settings={"allowResubmission": False},
            )
        )
        db.commit()
        payload = {
            "patientId": "P1",
            "studyId": "S1",
            "responses": [{"questionId": 1, "question": "Q1", "answer": "hi", "responseType": "text"}],
        }
        assert client.post("/api/surveys", json=payload).status_code == 200

        resp = client.post("/api/surveys", json=payload)
        assert resp.status_code == 409
        assert "already submitted" in resp.json()["error"]

        payload["patientId"] = "P2"
        assert client.post("/api/surveys", json=payload).status_code == 200


# ---------------------------------------------------------------------------
# GET /api/surveys/{id}, GET /api/studies/{id}/surveys
# ---------------------------------------------------------------------------


class TestReadEndpoints:
    def test_get_nonexistent_returns_404(self, client):
        resp = client.get(f"/api/surveys/{NONEXISTENT_ID}")
        assert resp.status_code == 404
        assert "not found" in resp.json()["error"]

    def test_get_non_uuid_returns_404(self, client):
        assert client.get("/api/surveys/not-a-uuid").status_code == 404

    def test_list_pagination(self, client, make_payload):
        for day in range(1, 6):
            payload = make_payload(patient_id=f"P{day}", completed_at=f"2026-03-0{day}T09:00:00Z")
            client.post("/api/surveys", json=payload)

        first = client.get("/api/studies/S1/surveys", params={"page": 1, "limit": 2}).json()
        assert first["pagination"] == {"page": 1, "limit": 2, "hasMore": True}
        assert [s["patient_id"] for s in first["surveys"]] == ["P5", "P4"]
        assert first["surveys"][0]["response_count"] == 20

        last = client.get("/api/studies/S1/surveys", params={"page": 3, "limit": 2}).json()
        assert last["pagination"]["hasMore"] is False
        assert [s["patient_id"] for s in last["surveys"]] == ["P1"]

    def test_list_rejects_bad_paging(self, client):
        assert client.get("/api/studies/S1/surveys", params={"page": 0}).status_code == 422
        assert client.get("/api/studies/S1/surveys", params={"limit": 1000}).status_code == 422
