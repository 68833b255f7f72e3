import json
import logging
import math

import pytest

from tunedin.blend import BlendInput, BlendParams, generate_blend

from tests.conftest import distinct_tracks, make_input, make_track, make_user

OPEN = {"maxUniquePerUser": 100, "maxRunSameUser": 0}


def _assert_caps(output, k, users, params=None):
    params = params or BlendParams()
    user_cap = math.ceil(k / max(1, users)) + params.cap_user_slack
    assert output.stats.user_cap == user_cap
    assert all(n <= user_cap for n in output.stats.per_user_counts.values())
    assert all(n <= output.stats.artist_cap for n in output.stats.per_artist_counts.values())
    ids = [t.canonical_id for t in output.tracks]
    assert len(ids) == len(set(ids))
    assert len(ids) <= k


def test_empty_users():
    output = generate_blend(make_input(), 10)
    assert output.tracks == []
    assert output.stats.user_cap == 0
    assert output.stats.per_user_counts == {}
    assert output.stats.artist_cap == 2


def test_users_without_tracks():
    output = generate_blend(make_input(make_user("u1", []), make_user("u2", [])), 10)
    assert output.tracks == []
    assert output.stats.user_cap == 0
    assert output.stats.per_user_counts == {"u1": 0, "u2": 0}
    assert output.stats.per_artist_counts == {}


def test_single_user_five_unique_tracks():
    blend_input = make_input(make_user("solo", distinct_tracks("S", 5)))
    output = generate_blend(blend_input, 10, OPEN)
    assert len(output.tracks) == 5
    assert all(t.explain.startswith("unique") for t in output.tracks)
    assert all(t.picked_for == ("solo",) for t in output.tracks)
    _assert_caps(output, 10, 1)


def test_single_user_unique_limit_drops_without_substitution():
    blend_input = make_input(make_user("solo", distinct_tracks("S", 5)))
    output = generate_blend(blend_input, 10, {"maxUniquePerUser": 2, "maxRunSameUser": 0})
    assert [t.title for t in output.tracks] == ["S Song 0", "S Song 1"]


def test_single_user_default_params_yield_nothing_unique():
    blend_input = make_input(make_user("solo", distinct_tracks("S", 5)))
    output = generate_blend(blend_input, 10)
    assert output.tracks == []
    assert output.stats.per_user_counts == {"solo": 0}


def test_shared_isrcs_selected_first():
    shared = [make_track(f"Hit {i}", f"Star {i}", i + 1, isrc=f"USXX0000000{i}") for i in range(3)]
    u1 = make_user("u1", shared + [make_track(t, a, 4 + i) for i, (t, a) in enumerate(distinct_tracks("One", 10))])
    u2 = make_user(
        "u2",
        [make_track(f"hit {i} (remastered)", f"STAR {i}", i + 1, isrc=f"usxx0000000{i}") for i in range(3)]
        + [make_track(t, a, 4 + i) for i, (t, a) in enumerate(distinct_tracks("Two", 10))],
        provider="apple",
    )
    output = generate_blend(make_input(u1, u2), 8, OPEN)

    assert len(output.tracks) == 8
    head = output.tracks[:3]
    assert {t.canonical_id for t in head} == {f"isrc:USXX0000000{i}" for i in range(3)}
    assert all(t.picked_for == ("shared",) for t in head)
    assert all(set(t.provider_ids) == {"spotify", "apple"} for t in head)
    assert all(t.picked_for != ("shared",) for t in output.tracks[3:])
    _assert_caps(output, 8, 2)


def test_shared_only_with_default_params():
    shared = [("Hit", "Star", "USXX00000001")]
    u1 = make_user("u1", shared + distinct_tracks("One", 10))
    u2 = make_user("u2", shared + distinct_tracks("Two", 10))
    output = generate_blend(make_input(u1, u2), 8)
    assert [t.title for t in output.tracks] == ["Hit"]
    assert output.tracks[0].explain == "shared; shared by 2 users; artist overlap (2 users); top_short rank 1"


def test_collaboration_bridges_to_single_artist_track():
    u1 = make_user("u1", [("Let Me Love You", "DJ Snake, Justin Bieber")])
    u2 = make_user("u2", [("Taki Taki", "DJ Snake")])
    output = generate_blend(make_input(u1, u2), 10)

    assert [t.title for t in output.tracks] == ["Let Me Love You", "Taki Taki"]
    taki = output.tracks[1]
    assert taki.picked_for == ("u2",)
    assert taki.explain.startswith("bridge; artist overlap (2 users)")
    assert output.stats.per_artist_counts == {"dj snake": 2}


def test_featured_artist_does_not_use_primary_cap():
    u1 = make_user("u1", [("A", "Main, Guest"), ("B", "Main"), ("C", "Guest")])
    u2 = make_user("u2", [("D", "Main"), ("E", "Guest")])
    output = generate_blend(make_input(u1, u2), 10, {"artistCap": 1})

    # "A" is charged to main only; guest holds E and C
    assert output.stats.per_artist_counts == {"main": 3, "guest": 2}
    assert [t.title for t in output.tracks[:2]] == ["A", "E"]
    assert [t.title for t in output.tracks[2:]] == ["D", "B", "C"]


def test_caps_hold_on_larger_rooms():
    users = [
        make_user(f"u{n}", [("Anthem", "Band")] + distinct_tracks(f"U{n}", 15) + [("Shared B", "Band")])
        for n in range(4)
    ]
    output = generate_blend(make_input(*users), 12, {"maxUniquePerUser": 3})
    _assert_caps(output, 12, 4)
    assert output.stats.per_artist_counts.get("band", 0) <= output.stats.artist_cap


def test_fills_to_k_when_pool_is_diverse():
    u1 = make_user("u1", distinct_tracks("A", 30))
    u2 = make_user("u2", distinct_tracks("B", 30))
    output = generate_blend(make_input(u1, u2), 20, OPEN)
    assert len(output.tracks) == 20
    assert output.stats.per_user_counts == {"u1": 10, "u2": 10}


def test_deterministic_output():
    u1 = make_user("u1", [("Same", "X"), ("Other", "Y")] + distinct_tracks("A", 10))
    u2 = make_user("u2", [("Same", "X"), ("Other", "Z")] + distinct_tracks("B", 10))
    first = generate_blend(make_input(u1, u2), 10, OPEN).to_dict()
    second = generate_blend(make_input(u1, u2), 10, OPEN).to_dict()
    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


def test_base_params_layered_under_overrides():
    blend_input = make_input(make_user("solo", distinct_tracks("S", 5)))
    base = BlendParams(max_unique_per_user=1, max_run_same_user=0)
    assert len(generate_blend(blend_input, 10, base_params=base).tracks) == 1
    assert len(generate_blend(blend_input, 10, {"max_unique_per_user": 4}, base_params=base).tracks) == 4


def test_output_shape():
    u1 = make_user("u1", [make_track("Song", "Artist", 1, isrc="XX0000000001", track_id="sp")])
    u2 = make_user("u2", [make_track("Song", "Artist", 2, isrc="XX0000000001", track_id="am")], provider="apple")
    data = generate_blend(make_input(u1, u2), 5).to_dict()
    track = data["tracks"][0]
    assert track == {
        "canonicalId": "isrc:XX0000000001",
        "title": "Song",
        "artist": "Artist",
        "isrc": "XX0000000001",
        "providerIds": {"spotify": "sp", "apple": "am"},
        "sourceUserId": "u1",
        "score": track["score"],
        "pickedFor": ["shared"],
        "explain": "shared; shared by 2 users; artist overlap (2 users); top_short rank 1",
        "fallbackQuery": "Artist Song",
    }
    assert data["stats"] == {
        "perUserCounts": {"u1": 1, "u2": 0},
        "perArtistCounts": {"artist": 1},
        "artistCap": 3,
        "userCap": 5,
    }


@pytest.mark.parametrize("k", [0, -1, 2.5, "10", True])
def test_invalid_target_size(k):
    with pytest.raises(ValueError):
        generate_blend(make_input(), k)


def test_invalid_input_and_params():
    with pytest.raises(ValueError):
        generate_blend({"roomId": "x", "users": []}, 10)
    with pytest.raises(ValueError):
        generate_blend(make_input(), 10, {"nope": 1})
    with pytest.raises(ValueError):
        generate_blend(make_input(), 10, {"artistCap": 0})


def test_from_dict_accepts_camel_case():
    blend_input = BlendInput.from_dict(
        {
            "roomId": "r",
            "users": [
                {"userId": "u1", "provider": "spotify", "tracks": [
                    {"id": "1", "title": "T", "artist": "A", "source": "top_short", "rank": 1}
                ]},
            ],
        }
    )
    assert blend_input.users[0].tracks[0].isrc is None
    assert generate_blend(blend_input, 5).stats.per_user_counts == {"u1": 0}


def test_effective_params_logged(caplog):
    u1 = make_user("u1", [("Song", "Artist")])
    with caplog.at_level(logging.DEBUG, logger="tunedin.blend.pipeline"):
        generate_blend(make_input(u1), 5, {"artistCap": 4})
    assert "'artist_cap': 4" in caplog.text
