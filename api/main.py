import logging
import sys
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

# Allow importing the tunedin package when run from a checkout
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from tunedin.blend import BlendInput, generate_blend  # type: ignore
from tunedin.blend.types import InputTrack, InputUser  # type: ignore
from tunedin.config_loader import Config  # type: ignore
from tunedin.logging_utils import configure_logging, run_id_scope  # type: ignore
from tunedin.retry_helper import RetryableError  # type: ignore
from tunedin.taste import (  # type: ignore
    AppleMusicSession,
    AppleMusicTasteClient,
    CandidateTrack,
    NotConnectedError,
    ProviderAPIError,
    SpotifySession,
    SpotifyTasteClient,
)
from tunedin.taste.spotify import RANGE_SOURCES  # type: ignore

from api.services.preview_inputs import (  # type: ignore
    artist_overlap_input,
    disjoint_input,
    shifted_overlap_input,
    single_user_input,
)

logger = logging.getLogger(__name__)

config: Optional[Config] = None

# a refreshed Spotify token travels back to the client in these response headers
ACCESS_TOKEN_HEADER = "X-Spotify-Access-Token"
EXPIRES_AT_HEADER = "X-Spotify-Token-Expires-At"


def _init_services() -> Config:
    """Load configuration once for the API process."""
    global config
    if config is None:
        config = Config()
    return config


app = FastAPI(title="TunedIn Blend API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_init_services().client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[ACCESS_TOKEN_HEADER, EXPIRES_AT_HEADER],
)


# --- Errors ------------------------------------------------------------------

@contextmanager
def _http_errors():
    """Translate taste-source and blend errors into HTTP responses."""
    try:
        yield
    except NotConnectedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except ProviderAPIError as exc:
        status = exc.status_code if 400 <= exc.status_code < 500 else 502
        logger.warning("Provider error: %s", exc)
        raise HTTPException(status_code=status, detail=str(exc)) from exc
    except RetryableError as exc:
        logger.warning("Provider unavailable after retries: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    _init_services()
    yield


app.router.lifespan_context = lifespan


# --- Models ------------------------------------------------------------------

class TrackPayload(BaseModel):
    id: str = ""
    title: str
    artist: str
    isrc: Optional[str] = None
    source: str
    rank: int


class UserPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    provider: Literal["spotify", "apple"]
    tracks: List[TrackPayload] = Field(default_factory=list)


class BlendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(..., alias="roomId")
    users: List[UserPayload] = Field(default_factory=list)
    k: int = Field(40, ge=1, le=100, description="Target blend size")
    params: Optional[Dict[str, Any]] = Field(None, description="Partial blend parameter overrides")

    def to_blend_input(self) -> BlendInput:
        return BlendInput(
            room_id=self.room_id,
            users=tuple(
                InputUser(
                    user_id=u.user_id,
                    provider=u.provider,
                    tracks=tuple(
                        InputTrack(
                            id=t.id, title=t.title, artist=t.artist, isrc=t.isrc, source=t.source, rank=t.rank
                        )
                        for t in u.tracks
                    ),
                )
                for u in self.users
            ),
        )


# --- Sessions and taste ------------------------------------------------------

def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def spotify_session(
    authorization: Optional[str] = Header(None),
    x_spotify_refresh_token: Optional[str] = Header(None),
    x_spotify_token_expires_at: Optional[float] = Header(None, description="Access token expiry, epoch seconds"),
) -> SpotifySession:
    """Per-request Spotify credential built from the caller's headers."""
    cfg = _init_services()
    return SpotifySession(
        _bearer(authorization),
        refresh_token=x_spotify_refresh_token,
        expires_at=x_spotify_token_expires_at,
        client_id=cfg.spotify_client_id,
        client_secret=cfg.spotify_client_secret,
        timeout=cfg.http_timeout_seconds,
    )


def _fetch_spotify_taste(session: SpotifySession, per_range_limit: int) -> List[CandidateTrack]:
    return SpotifyTasteClient(session).get_taste(per_range_limit)


def _fetch_spotify_range(session: SpotifySession, time_range: str, limit: int) -> List[CandidateTrack]:
    return SpotifyTasteClient(session).fetch_top_tracks(time_range, limit)


def _fetch_apple_taste(session: AppleMusicSession, heavy_limit: int, added_limit: int) -> List[CandidateTrack]:
    cfg = _init_services()
    client = AppleMusicTasteClient(session, timeout=cfg.http_timeout_seconds)
    return client.get_taste(heavy_limit=heavy_limit, added_limit=added_limit)


def _run_blend(blend_input: BlendInput, k: int, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    cfg = _init_services()
    with run_id_scope(blend_input.room_id), _http_errors():
        output = generate_blend(blend_input, k, params, base_params=cfg.blend_params)
    return output.to_dict()


# --- Routes ------------------------------------------------------------------

@app.get("/health")
def health() -> Dict[str, object]:
    return {"ok": True, "service": "server"}


@app.get("/api/ping")
def ping() -> Dict[str, str]:
    return {"message": "pong", "app": "TunedIn Blend"}


@app.post("/api/blend")
def create_blend(request: BlendRequest) -> Dict[str, Any]:
    """Blend the submitted users' ranked tracks into one list of up to k tracks."""
    return _run_blend(request.to_blend_input(), request.k, request.params)


def _hand_back_token(response: Response, session: SpotifySession) -> None:
    if not session.refreshed:
        return
    response.headers[ACCESS_TOKEN_HEADER] = session.access_token or ""
    if session.expires_at is not None:
        response.headers[EXPIRES_AT_HEADER] = str(int(session.expires_at))


@app.get("/api/me/taste")
def get_spotify_taste(
    response: Response,
    limit: int = Query(50),
    time_range: Optional[Literal["short_term", "medium_term"]] = None,
    session: SpotifySession = Depends(spotify_session),
) -> Dict[str, Any]:
    """
    Spotify taste: short+medium term top tracks deduped by id, or a single
    range when time_range is given.

    A stale token is refreshed with X-Spotify-Refresh-Token; the new token
    comes back in the X-Spotify-Access-Token response header.
    """
    limit = _clamp(limit, 1, 50)
    with _http_errors():
        session.get_access_token()
        if time_range:
            tracks = _fetch_spotify_range(session, time_range, limit)
        else:
            tracks = _fetch_spotify_taste(session, limit)
    _hand_back_token(response, session)

    if time_range:
        meta: Dict[str, Any] = {
            "providers": ["spotify"],
            "counts": {"spotify": len(tracks)},
            "time_range": time_range,
            "mode": "single_range",
            "ranges": [time_range],
        }
    else:
        meta = {
            "providers": ["spotify"],
            "counts": {"spotify": len(tracks)},
            "mode": "combined",
            "ranges": list(RANGE_SOURCES),
            "per_range_limit": limit,
        }
    return {"tracks": [t.to_dict() for t in tracks], "meta": meta}


@app.get("/api/me/apple/taste")
def get_apple_taste(
    heavy_limit: int = Query(25),
    added_limit: int = Query(25),
    music_user_token: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """Apple Music taste: heavy rotation plus recently added, deduped."""
    heavy_limit = _clamp(heavy_limit, 1, 50)
    added_limit = _clamp(added_limit, 1, 50)
    session = AppleMusicSession(_init_services().apple_developer_token, music_user_token)
    with _http_errors():
        tracks = _fetch_apple_taste(session, heavy_limit, added_limit)
    return {
        "tracks": [t.to_dict() for t in tracks],
        "meta": {
            "providers": ["apple"],
            "counts": {"apple": len(tracks)},
            "sources": ["heavyRotation", "recentlyAdded"],
        },
    }


def _preview(
    build: Callable[[List[CandidateTrack]], BlendInput],
    *,
    k: int,
    limit: int,
    session: SpotifySession,
    response: Response,
) -> Dict[str, Any]:
    with _http_errors():
        taste = _fetch_spotify_taste(session, _clamp(limit, 1, 50))
    _hand_back_token(response, session)
    return _run_blend(build(taste), _clamp(k, 1, 100))


@app.get("/api/me/blend-preview")
def blend_preview(
    response: Response,
    k: int = Query(20),
    limit: int = Query(50),
    session: SpotifySession = Depends(spotify_session),
) -> Dict[str, Any]:
    """Single-user blend: sanity check of the engine on live taste data."""
    return _preview(single_user_input, k=k, limit=limit, session=session, response=response)


@app.get("/api/me/blend-preview-2")
def blend_preview_shifted(
    response: Response,
    k: int = Query(40),
    limit: int = Query(50),
    session: SpotifySession = Depends(spotify_session),
) -> Dict[str, Any]:
    """Two fake users from one taste list, the second shifted by 10: exercises shared picks."""
    return _preview(shifted_overlap_input, k=k, limit=limit, session=session, response=response)


@app.get("/api/me/blend-preview-3")
def blend_preview_disjoint(
    response: Response,
    k: int = Query(20),
    limit: int = Query(20),
    session: SpotifySession = Depends(spotify_session),
) -> Dict[str, Any]:
    """Two fake users with no shared tracks (top 1-10 vs 11-20): bridges, then uniques."""
    return _preview(
        disjoint_input, k=k, limit=max(_clamp(limit, 1, 50), 20), session=session, response=response,
    )


@app.get("/api/me/blend-preview-artist-overlap")
def blend_preview_artist_overlap(
    response: Response,
    k: int = Query(40),
    limit: int = Query(50),
    session: SpotifySession = Depends(spotify_session),
) -> Dict[str, Any]:
    """Second fake user keeps only each track's first artist: collaborations count as artist overlap."""
    return _preview(artist_overlap_input, k=k, limit=limit, session=session, response=response)
