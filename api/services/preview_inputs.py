"""
Diagnostic blend inputs built from a single user's taste.

These let one connected account exercise the shared, bridge and unique
paths of the blend engine without a second real user.
"""
from typing import List, Sequence

from tunedin.artist_utils import first_credited_artist
from tunedin.blend.types import BlendInput
from tunedin.taste.candidate_track import CandidateTrack, candidate_tracks_to_user

PROVIDER = "spotify"


def single_user_input(taste: Sequence[CandidateTrack]) -> BlendInput:
    """One user ("me") with the taste list as-is."""
    return BlendInput(room_id="preview", users=(candidate_tracks_to_user("me", PROVIDER, taste),))


def shifted_overlap_input(taste: Sequence[CandidateTrack], shift: int = 10) -> BlendInput:
    """u1 gets everything, u2 everything after `shift` re-ranked: overlap plus some uniqueness."""
    return BlendInput(
        room_id="preview-2",
        users=(
            candidate_tracks_to_user("u1", PROVIDER, taste),
            candidate_tracks_to_user("u2", PROVIDER, list(taste)[shift:], rerank=True),
        ),
    )


def disjoint_input(taste: Sequence[CandidateTrack], size: int = 10) -> BlendInput:
    """u1 gets taste[0:size], u2 taste[size:2*size]: no shared tracks, only bridges and uniques."""
    tracks = list(taste)
    return BlendInput(
        room_id="preview-3",
        users=(
            candidate_tracks_to_user("u1", PROVIDER, tracks[:size], rerank=True),
            candidate_tracks_to_user("u2", PROVIDER, tracks[size:2 * size], rerank=True),
        ),
    )


def artist_overlap_input(taste: Sequence[CandidateTrack]) -> BlendInput:
    """
    u1 keeps full credits ("DJ Snake, Justin Bieber"), u2 only the first artist
    ("DJ Snake"). Tracks without an ISRC then differ by canonical id while the
    collaborations still count as artist overlap.
    """
    first_only: List[CandidateTrack] = [
        CandidateTrack(
            provider=t.provider,
            id=t.id,
            title=t.title,
            artist=first_credited_artist(t.artist),
            isrc=t.isrc,
            source=t.source,
            rank=t.rank,
        )
        for t in taste
    ]
    return BlendInput(
        room_id="preview-artist-overlap",
        users=(
            candidate_tracks_to_user("u1", PROVIDER, taste),
            candidate_tracks_to_user("u2", PROVIDER, first_only, rerank=True),
        ),
    )
