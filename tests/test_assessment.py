import pytest
from pydantic import ValidationError
from sqlalchemy import select

from app.core.errors import BadRequest, Forbidden, NoActivePeriod, NotFound
from app.models.assessment import AssessmentAssignment, FeedbackResponse
from app.schemas.assessment import SubmissionRequest
from app.services import assessment as assessment_service


def _request(assignment_id=None, assessee_id=None, ratings=(("kolaboratif", 8),)):
    return SubmissionRequest(
        assignment_id=assignment_id,
        assessee_id=assessee_id,
        responses=[
            {"aspect": aspect, "indicator": "Membangun kerja sama", "rating": rating}
            for aspect, rating in ratings
        ],
    )


async def _responses(db, assignment_id):
    result = await db.execute(
        select(FeedbackResponse.aspect, FeedbackResponse.rating)
        .where(FeedbackResponse.assignment_id == assignment_id)
        .order_by(FeedbackResponse.id)
    )
    return result.all()


async def _persisted_assignment(db, assessor, assessee, period):
    assignment = AssessmentAssignment(
        assessor_id=assessor.id, assessee_id=assessee.id, period_id=period.id, is_completed=False
    )
    db.add(assignment)
    await db.commit()
    return assignment.id


# ── Payload validation ────────────────────────────────────────────────────────

@pytest.mark.parametrize("item", [
    {"aspect": "kolaboratif", "indicator": "x", "rating": 0},
    {"aspect": "kolaboratif", "indicator": "x", "rating": 11},
    {"aspect": "jujur", "indicator": "x", "rating": 5},
])
def test_submission_rejects_bad_items(item):
    with pytest.raises(ValidationError):
        SubmissionRequest(assignment_id=1, responses=[item])


# ── Peer submissions ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_resubmission_replaces_responses(db, make_user, make_period, roles):
    period = await make_period(kind="assessment")
    assessor, assessee = await make_user(), await make_user()
    assignment_id = await _persisted_assignment(db, assessor, assessee, period)

    await assessment_service.submit_assessment(
        db, assessor.id, _request(assignment_id, ratings=[("loyal", 5), ("adaptif", 6)]), await roles()
    )
    assignment = await assessment_service.submit_assessment(
        db, assessor.id, _request(assignment_id, ratings=[("harmonis", 9)]), await roles()
    )

    assert assignment.is_completed is True
    assert assignment.completed_at is not None
    assert [tuple(r) for r in await _responses(db, assignment_id)] == [("harmonis", 9)]


@pytest.mark.asyncio
async def test_submit_requires_assignment_id(db, make_user, roles):
    assessor = await make_user()
    with pytest.raises(BadRequest):
        await assessment_service.submit_assessment(db, assessor.id, _request(), await roles())


@pytest.mark.asyncio
async def test_submit_to_someone_elses_assignment(db, make_user, make_period, roles):
    period = await make_period(kind="assessment")
    owner, intruder, assessee = await make_user(), await make_user(), await make_user()
    assignment_id = await _persisted_assignment(db, owner, assessee, period)

    with pytest.raises(Forbidden):
        await assessment_service.submit_assessment(db, intruder.id, _request(assignment_id), await roles())
    assert await _responses(db, assignment_id) == []


# ── Supervisor submissions ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_supervisor_assignment_is_created_once(db, make_user, make_period, roles):
    period = await make_period(kind="assessment")
    supervisor, staff = await make_user(role="supervisor"), await make_user()

    first = await assessment_service.submit_assessment(
        db, supervisor.id, _request(assessee_id=staff.id), await roles()
    )
    second = await assessment_service.submit_assessment(
        db, supervisor.id, _request(assessee_id=staff.id, ratings=[("kompeten", 7)]), await roles()
    )

    assert first.id == second.id
    assert second.period_id == period.id
    rows = (await db.execute(select(AssessmentAssignment))).scalars().all()
    assert len(rows) == 1
    assert [tuple(r) for r in await _responses(db, first.id)] == [("kompeten", 7)]


@pytest.mark.asyncio
async def test_supervisor_needs_active_period(db, make_user, roles):
    supervisor, staff = await make_user(role="supervisor"), await make_user()
    with pytest.raises(NoActivePeriod):
        await assessment_service.submit_assessment(db, supervisor.id, _request(assessee_id=staff.id), await roles())


@pytest.mark.asyncio
async def test_supervisor_needs_assessee(db, make_user, make_period, roles):
    await make_period(kind="assessment")
    supervisor = await make_user(role="supervisor")
    with pytest.raises(BadRequest):
        await assessment_service.submit_assessment(db, supervisor.id, _request(), await roles())


@pytest.mark.asyncio
async def test_supervisor_cannot_rate_self_or_admin(db, make_user, make_period, roles):
    await make_period(kind="assessment")
    supervisor, admin = await make_user(role="supervisor"), await make_user(role="admin")
    for target in (supervisor, admin):
        with pytest.raises(Forbidden):
            await assessment_service.submit_assessment(
                db, supervisor.id, _request(assessee_id=target.id), await roles()
            )


@pytest.mark.asyncio
async def test_supervisor_unknown_assessee(db, make_user, make_period, roles):
    await make_period(kind="assessment")
    supervisor = await make_user(role="supervisor")
    with pytest.raises(NotFound):
        await assessment_service.submit_assessment(db, supervisor.id, _request(assessee_id=404), await roles())


# ── Listings ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_supervisor_sees_everyone_but_admins_and_self(db, make_user, make_period, roles):
    await make_period(kind="assessment")
    supervisor = await make_user("Sari", role="supervisor")
    await make_user("Admin", role="admin")
    andi, bayu = await make_user("Andi"), await make_user("Bayu")
    await assessment_service.submit_assessment(db, supervisor.id, _request(assessee_id=bayu.id), await roles())

    items = await assessment_service.list_my_assignments(db, supervisor.id, await roles())

    assert [(i.assessee.name, i.is_completed) for i in items] == [("Andi", None), ("Bayu", True)]
    assert items[0].id is None


@pytest.mark.asyncio
async def test_peer_sees_persisted_assignments(db, make_user, make_period, roles):
    period = await make_period(kind="assessment")
    assessor, assessee = await make_user(), await make_user()
    assignment_id = await _persisted_assignment(db, assessor, assessee, period)

    items = await assessment_service.list_my_assignments(db, assessor.id, await roles())
    assert [(i.id, i.is_completed) for i in items] == [(assignment_id, False)]
    assert await assessment_service.list_my_assignments(db, assessee.id, await roles()) == []


@pytest.mark.asyncio
async def test_responses_visible_to_assessor_only(db, make_user, make_period, roles):
    period = await make_period(kind="assessment")
    assessor, assessee = await make_user(), await make_user()
    assignment_id = await _persisted_assignment(db, assessor, assessee, period)
    await assessment_service.submit_assessment(db, assessor.id, _request(assignment_id), await roles())

    saved = await assessment_service.get_assignment_responses(db, assignment_id, assessor.id)
    assert [(r.aspect, r.rating) for r in saved] == [("kolaboratif", 8)]
    with pytest.raises(Forbidden):
        await assessment_service.get_assignment_responses(db, assignment_id, assessee.id)
    with pytest.raises(NotFound):
        await assessment_service.get_assignment_responses(db, 999, assessor.id)
