from .candidate_track import CandidateTrack, candidate_tracks_to_user
from .errors import NotConnectedError, ProviderAPIError, TasteSourceError
from .session import AppleMusicSession, SpotifySession
from .spotify import SpotifyTasteClient
from .apple_music import AppleMusicTasteClient

__all__ = [
    "CandidateTrack",
    "candidate_tracks_to_user",
    "NotConnectedError",
    "ProviderAPIError",
    "TasteSourceError",
    "AppleMusicSession",
    "SpotifySession",
    "SpotifyTasteClient",
    "AppleMusicTasteClient",
]
