import uuid
from typing import Dict, Tuple

from matchcall.models.profile import Profile
from matchcall.models.match import Match
from matchcall.services.auth_service import create_access_token


def unique_username(prefix: str = 'player') -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


async def create_profile(db, username: str = None) -> Profile:
    profile = Profile(username=username or unique_username())
    db.add(profile)
    await db.commit()
    return profile


async def create_match(db, user_a: Profile, user_b: Profile, status: str = 'matched') -> Match:
    match = Match(user_id_1=user_a.id, user_id_2=user_b.id, status=status)
    db.add(match)
    await db.commit()
    return match


async def seed_match(db) -> Tuple[Profile, Profile, Match]:
    """Two players and the match between them."""
    a = await create_profile(db, unique_username('alice'))
    b = await create_profile(db, unique_username('bob'))
    match = await create_match(db, a, b)
    return a, b, match


def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
