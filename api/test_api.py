from unittest.mock import MagicMock, patch

import requests
from fastapi.testclient import TestClient

from api.main import app
from tunedin.taste import CandidateTrack, NotConnectedError, ProviderAPIError
from tunedin.retry_helper import ServerError
from tunedin.taste.session import SPOTIFY_TOKEN_URL

client = TestClient(app)

AUTH = {"Authorization": "Bearer test-token"}


def _taste(count, source="top_short"):
    return [
        CandidateTrack(
            provider="spotify",
            id=f"sp{i}",
            title=f"Song {i}",
            artist=f"Artist {i % 7}, Guest {i % 3}",
            isrc=f"TEST0000{i:04d}" if i % 2 else None,
            source=source,
            rank=i + 1,
        )
        for i in range(count)
    ]


def _blend_body(**extra):
    body = {
        "roomId": "room-1",
        "users": [
            {"userId": "u1", "provider": "spotify", "tracks": [
                {"id": "s1", "title": "Song", "artist": "Artist", "isrc": "XX0000000001", "source": "top_short", "rank": 1},
                {"id": "s2", "title": "Other", "artist": "Band", "source": "top_medium", "rank": 2},
            ]},
            {"userId": "u2", "provider": "apple", "tracks": [
                {"id": "a1", "title": "Song", "artist": "Artist", "isrc": "xx0000000001", "source": "heavyRotation", "rank": 1},
            ]},
        ],
    }
    body.update(extra)
    return body


def test_health_and_ping():
    assert client.get("/health").json() == {"ok": True, "service": "server"}
    assert client.get("/api/ping").json() == {"message": "pong", "app": "TunedIn Blend"}


def test_blend_endpoint():
    resp = client.post("/api/blend", json=_blend_body(k=5))
    assert resp.status_code == 200
    data = resp.json()
    assert [t["canonicalId"] for t in data["tracks"]] == ["isrc:XX0000000001"]
    assert data["tracks"][0]["providerIds"] == {"spotify": "s1", "apple": "a1"}
    assert data["stats"]["perUserCounts"] == {"u1": 1, "u2": 0}
    assert data["stats"]["userCap"] == 5


def test_blend_endpoint_params_override():
    resp = client.post("/api/blend", json=_blend_body(k=5, params={"maxUniquePerUser": 1}))
    assert resp.status_code == 200
    titles = [t["title"] for t in resp.json()["tracks"]]
    assert titles == ["Song", "Other"]


def test_blend_endpoint_validation():
    assert client.post("/api/blend", json=_blend_body(k=0)).status_code == 422
    assert client.post("/api/blend", json=_blend_body(k=101)).status_code == 422
    resp = client.post("/api/blend", json=_blend_body(params={"bogus": 1}))
    assert resp.status_code == 400
    assert "Unknown blend parameter" in resp.json()["detail"]


def test_taste_requires_connection():
    resp = client.get("/api/me/taste")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Spotify not connected."}


def test_apple_taste_requires_connection():
    resp = client.get("/api/me/apple/taste")
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Apple Music not connected."}


def test_taste_combined():
    with patch("api.main._fetch_spotify_taste", return_value=_taste(3)) as fetch:
        resp = client.get("/api/me/taste", params={"limit": 500}, headers=AUTH)
    assert resp.status_code == 200
    data = resp.json()
    assert len(data["tracks"]) == 3
    assert data["tracks"][0]["artworkUrl"] is None
    assert data["meta"]["mode"] == "combined"
    assert data["meta"]["per_range_limit"] == 50
    assert fetch.call_args.args[1] == 50


def test_taste_single_range():
    with patch("api.main._fetch_spotify_range", return_value=_taste(2, source="top")) as fetch:
        resp = client.get("/api/me/taste", params={"time_range": "short_term", "limit": 10}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json()["meta"]["mode"] == "single_range"
    assert fetch.call_args.args[1:] == ("short_term", 10)


def test_apple_taste():
    tracks = [
        CandidateTrack(provider="apple", id="a1", title="T", artist="A", source="heavyRotation", rank=1)
    ]
    with patch("api.main._fetch_apple_taste", return_value=tracks) as fetch:
        resp = client.get("/api/me/apple/taste", headers={"Music-User-Token": "mut"}, params={"added_limit": 0})
    assert resp.status_code == 200
    assert resp.json()["meta"]["counts"] == {"apple": 1}
    session = fetch.call_args.args[0]
    assert session.user_token == "mut"
    assert fetch.call_args.args[1:] == (25, 1)


def test_blend_preview_single_user():
    with patch("api.main._fetch_spotify_taste", return_value=_taste(10)):
        resp = client.get("/api/me/blend-preview", headers=AUTH)
    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"]["perUserCounts"] == {"me": 0}
    assert data["stats"]["userCap"] == 22


def test_blend_preview_shifted_overlap():
    with patch("api.main._fetch_spotify_taste", return_value=_taste(30)):
        resp = client.get("/api/me/blend-preview-2", params={"k": 500}, headers=AUTH)
    assert resp.status_code == 200
    data = resp.json()
    assert set(data["stats"]["perUserCounts"]) == {"u1", "u2"}
    assert data["stats"]["userCap"] == 52
    assert data["tracks"]
    assert all(t["pickedFor"] == ["shared"] for t in data["tracks"] if t["explain"].startswith("shared"))
    assert len({t["canonicalId"] for t in data["tracks"]}) == len(data["tracks"])


def test_blend_preview_disjoint_and_artist_overlap():
    with patch("api.main._fetch_spotify_taste", return_value=_taste(20)) as fetch:
        disjoint = client.get("/api/me/blend-preview-3", params={"limit": 5}, headers=AUTH)
        overlap = client.get("/api/me/blend-preview-artist-overlap", headers=AUTH)
    assert disjoint.status_code == 200
    assert overlap.status_code == 200
    assert fetch.call_args_list[0].args[1] == 20
    assert not any(t["explain"].startswith("shared") for t in disjoint.json()["tracks"])
    assert set(overlap.json()["stats"]["perUserCounts"]) == {"u1", "u2"}


def test_preview_provider_errors():
    with patch("api.main._fetch_spotify_taste", side_effect=NotConnectedError("Spotify not connected.")):
        assert client.get("/api/me/blend-preview", headers=AUTH).status_code == 401
    with patch("api.main._fetch_spotify_taste", side_effect=ProviderAPIError("Spotify", "top", 403, "nope")):
        assert client.get("/api/me/blend-preview", headers=AUTH).status_code == 403
    with patch("api.main._fetch_spotify_taste", side_effect=ProviderAPIError("Spotify", "top", 500)):
        assert client.get("/api/me/blend-preview", headers=AUTH).status_code == 502
    with patch("api.main._fetch_spotify_taste", side_effect=ServerError("Spotify top: 503")):
        assert client.get("/api/me/blend-preview", headers=AUTH).status_code == 503


def _http_response(status, payload=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload or {}
    response.headers = {}
    response.text = ""
    return response


def _fake_spotify(method, url, **kwargs):
    if url == SPOTIFY_TOKEN_URL:
        return _http_response(200, {"access_token": "fresh", "expires_in": 3600})
    if kwargs["headers"]["Authorization"] != "Bearer fresh":
        return _http_response(401)
    item = {"id": "sp1", "name": "Song", "artists": [{"name": "Artist"}], "external_ids": {}, "album": {}}
    return _http_response(200, {"items": [item]})


STALE = {"Authorization": "Bearer stale", "X-Spotify-Refresh-Token": "rt"}


def test_taste_refreshes_rejected_token(monkeypatch):
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "cid")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "secret")
    with patch.object(requests.Session, "request", side_effect=_fake_spotify) as request:
        resp = client.get("/api/me/taste", params={"time_range": "short_term"}, headers=STALE)

    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tracks"]] == ["sp1"]
    assert resp.headers["X-Spotify-Access-Token"] == "fresh"
    assert int(resp.headers["X-Spotify-Token-Expires-At"]) > 0
    urls = [call.args[1] for call in request.call_args_list]
    assert urls == [
        "https://api.spotify.com/v1/me/top/tracks",
        SPOTIFY_TOKEN_URL,
        "https://api.spotify.com/v1/me/top/tracks",
    ]


def test_taste_refreshes_token_past_expiry_header(monkeypatch):
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "cid")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "secret")
    headers = dict(STALE, **{"X-Spotify-Token-Expires-At": "1"})
    with patch.object(requests.Session, "request", side_effect=_fake_spotify) as request:
        resp = client.get("/api/me/blend-preview", headers=headers)

    assert resp.status_code == 200
    assert resp.headers["X-Spotify-Access-Token"] == "fresh"
    assert request.call_args_list[0].args[1] == SPOTIFY_TOKEN_URL


def test_taste_rejected_without_refresh_token():
    with patch.object(requests.Session, "request", side_effect=_fake_spotify):
        resp = client.get("/api/me/taste", headers=AUTH)
    assert resp.status_code == 401
    assert "X-Spotify-Access-Token" not in resp.headers


def test_taste_non_json_provider_body_is_bad_gateway():
    def html_page(method, url, **kwargs):
        response = _http_response(200)
        response.json.side_effect = ValueError("Expecting value")
        return response

    with patch.object(requests.Session, "request", side_effect=html_page):
        resp = client.get("/api/me/taste", params={"time_range": "short_term"}, headers=AUTH)
    assert resp.status_code == 502
    assert "invalid JSON body" in resp.json()["detail"]
