import pytest
from datetime import datetime, timedelta
from sqlalchemy import select

from matchcall.models.call_request import CallRequest
from matchcall.models.call_block import CallBlock
from matchcall.services.call_request import (
    call_request_service,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    InvalidArgumentError,
    BlockedError,
    ConflictError,
)
from tests.helpers import seed_match, create_profile


async def _rows(db, model, **filters):
    stmt = select(model).execution_options(populate_existing=True)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def test_create_twice_keeps_one_pending_row(db):
    a, b, match = await seed_match(db)
    first_now = datetime(2026, 1, 1, 12, 0, 0)
    second_now = first_now + timedelta(minutes=3)

    first = await call_request_service.create_request(db, a.id, match.id, "voice", now=first_now)
    second = await call_request_service.create_request(db, a.id, match.id, "video", now=second_now)

    rows = await _rows(db, CallRequest, match_id=match.id, requester_id=a.id)
    assert len(rows) == 1
    assert first.id == second.id
    assert rows[0].status == "pending"
    assert rows[0].type == "video"
    assert rows[0].expires_at == second_now + timedelta(minutes=10)


async def test_create_requires_participant(db):
    a, b, match = await seed_match(db)
    outsider = await create_profile(db)

    with pytest.raises(ForbiddenError):
        await call_request_service.create_request(db, outsider.id, match.id, "voice")


async def test_create_on_unknown_match_is_forbidden(db):
    a, b, match = await seed_match(db)

    with pytest.raises(ForbiddenError):
        await call_request_service.create_request(db, a.id, "no-such-match", "voice")


async def test_create_validates_payload(db):
    a, b, match = await seed_match(db)

    with pytest.raises(InvalidArgumentError):
        await call_request_service.create_request(db, a.id, match.id, None)
    with pytest.raises(InvalidArgumentError):
        await call_request_service.create_request(db, a.id, match.id, "hologram")
    with pytest.raises(InvalidArgumentError):
        await call_request_service.create_request(db, a.id, None, "voice")


async def test_anonymous_caller_is_unauthorized(db):
    a, b, match = await seed_match(db)

    with pytest.raises(UnauthorizedError):
        await call_request_service.create_request(db, None, match.id, "voice")
    with pytest.raises(UnauthorizedError):
        await call_request_service.handle_action(db, None, "list", match_id=match.id)


async def test_only_other_participant_can_respond(db):
    a, b, match = await seed_match(db)
    outsider = await create_profile(db)
    request = await call_request_service.create_request(db, a.id, match.id, "voice")

    with pytest.raises(ForbiddenError):
        await call_request_service.respond(db, a.id, "accepted", request_id=request.id)
    with pytest.raises(ForbiddenError):
        await call_request_service.respond(db, outsider.id, "accepted", request_id=request.id)

    accepted = await call_request_service.respond(db, b.id, "accepted", request_id=request.id)
    assert accepted.status == "accepted"


async def test_reject_blocks_until_unblock(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "video")

    rejected = await call_request_service.respond(db, b.id, "rejected", request_id=request.id)
    assert rejected.status == "rejected"

    blocks = await _rows(db, CallBlock, match_id=match.id)
    assert len(blocks) == 1
    assert blocks[0].blocker_id == b.id
    assert blocks[0].blocked_user_id == a.id
    assert blocks[0].blocked is True

    with pytest.raises(BlockedError):
        await call_request_service.create_request(db, a.id, match.id, "voice")

    # The blocked player cannot lift the block
    assert await call_request_service.unblock(db, a.id, match.id) == 0
    with pytest.raises(BlockedError):
        await call_request_service.create_request(db, a.id, match.id, "voice")

    assert await call_request_service.unblock(db, b.id, match.id) == 1
    assert await _rows(db, CallBlock, match_id=match.id) == []

    again = await call_request_service.create_request(db, a.id, match.id, "voice")
    assert again.status == "pending"


async def test_block_only_applies_to_blocked_direction(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "voice")
    await call_request_service.respond(db, b.id, "rejected", request_id=request.id)

    reverse = await call_request_service.create_request(db, b.id, match.id, "voice")
    assert reverse.requester_id == b.id


async def test_unblock_without_block_succeeds(db):
    a, b, match = await seed_match(db)

    assert await call_request_service.unblock(db, a.id, match.id) == 0
    result = await call_request_service.handle_action(db, a.id, "unblock", match_id=match.id)
    assert result == {"success": True}


async def test_second_response_conflicts(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "voice")
    await call_request_service.respond(db, b.id, "accepted", request_id=request.id)

    with pytest.raises(ConflictError):
        await call_request_service.respond(db, b.id, "rejected", request_id=request.id)

    rows = await _rows(db, CallRequest, id=request.id)
    assert rows[0].status == "accepted"
    assert await _rows(db, CallBlock, match_id=match.id) == []


async def test_respond_by_match_uses_latest_pending_from_other(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "video")

    updated = await call_request_service.respond(db, b.id, "accepted", match_id=match.id)
    assert updated.id == request.id
    assert updated.status == "accepted"


async def test_respond_falls_back_to_match_when_id_unknown(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "voice")

    updated = await call_request_service.respond(
        db, b.id, "accepted", request_id="missing", match_id=match.id
    )
    assert updated.id == request.id


async def test_respond_not_found(db):
    a, b, match = await seed_match(db)

    with pytest.raises(NotFoundError):
        await call_request_service.respond(db, b.id, "accepted", match_id=match.id)
    with pytest.raises(NotFoundError):
        await call_request_service.respond(db, b.id, "accepted", request_id="missing")


async def test_respond_rejects_unknown_status(db):
    a, b, match = await seed_match(db)
    request = await call_request_service.create_request(db, a.id, match.id, "voice")

    with pytest.raises(InvalidArgumentError):
        await call_request_service.respond(db, b.id, "maybe", request_id=request.id)
    with pytest.raises(InvalidArgumentError):
        await call_request_service.respond(db, b.id, None, request_id=request.id)


async def test_list_returns_pending_and_accepted(db):
    a, b, match = await seed_match(db)
    from_a = await call_request_service.create_request(db, a.id, match.id, "voice")
    from_b = await call_request_service.create_request(db, b.id, match.id, "video")
    await call_request_service.respond(db, a.id, "rejected", request_id=from_b.id)

    result = await call_request_service.handle_action(db, b.id, "list", match_id=match.id)
    ids = [c["id"] for c in result["calls"]]
    assert ids == [from_a.id]

    await call_request_service.respond(db, b.id, "accepted", request_id=from_a.id)
    result = await call_request_service.handle_action(db, a.id, "list", match_id=match.id)
    assert [c["status"] for c in result["calls"]] == ["accepted"]


async def test_list_checks_participancy(db):
    a, b, match = await seed_match(db)
    outsider = await create_profile(db)

    with pytest.raises(ForbiddenError):
        await call_request_service.handle_action(db, outsider.id, "list", match_id=match.id)


async def test_unknown_action_is_invalid(db):
    a, b, match = await seed_match(db)

    with pytest.raises(InvalidArgumentError):
        await call_request_service.handle_action(db, a.id, "dance", match_id=match.id)
    with pytest.raises(InvalidArgumentError):
        await call_request_service.handle_action(db, a.id, None, match_id=match.id)


async def test_set_permissions_upserts(db):
    a, b, match = await seed_match(db)

    first = await call_request_service.set_permissions(db, a.id, match.id, True, False)
    second = await call_request_service.set_permissions(db, a.id, match.id, True, True)

    assert first.id == second.id
    assert second.allow_voice is True
    assert second.allow_video is True
