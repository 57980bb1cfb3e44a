from datetime import timedelta

from jose import jwt

from drawwat.config import ALGORITHM, SECRET_KEY
from drawwat.services.auth import create_access_token


def create_puzzle(client, headers, image_data, **overrides):
    payload = {"image_data": image_data, "answer": "sakura", "expires_in": 0}
    payload.update(overrides)
    res = client.post("/puzzles", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "healthy"}


def test_requires_authentication(client, png_data_url):
    res = client.post("/puzzles", json={"image_data": png_data_url, "answer": "sakura"})
    assert res.status_code == 401

    res = client.post("/puzzles", json={"image_data": png_data_url, "answer": "sakura"},
                      headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401


def test_rejects_expired_and_non_access_tokens(client, png_data_url):
    payload = {"image_data": png_data_url, "answer": "sakura"}

    expired = create_access_token("creator", expires_delta=timedelta(seconds=-10))
    res = client.post("/puzzles", json=payload, headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Token has expired"
    assert res.headers["WWW-Authenticate"] == "Bearer"

    refresh = jwt.encode({"sub": "creator", "type": "refresh"}, SECRET_KEY, algorithm=ALGORITHM)
    res = client.post("/puzzles", json=payload, headers={"Authorization": f"Bearer {refresh}"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid token type"


def test_create_and_fetch_puzzle(client, auth_headers, png_data_url):
    created = create_puzzle(client, auth_headers("creator"), png_data_url, hint="spring", expires_in=3600)
    assert created["share_url"].endswith(f"/puzzle/{created['id']}")
    assert created["expires_at"] is not None

    res = client.get(f"/puzzles/{created['id']}")
    assert res.status_code == 200
    puzzle = res.json()
    assert puzzle["hint"] == "spring"
    assert puzzle["is_expired"] is False
    assert puzzle["image_url"].startswith("https://cdn.test/")
    assert "answer" not in puzzle


def test_create_puzzle_validation(client, auth_headers, png_data_url):
    headers = auth_headers("creator")
    assert client.post("/puzzles", json={"image_data": png_data_url, "answer": ""}, headers=headers).status_code == 422
    assert client.post("/puzzles", json={"image_data": png_data_url, "answer": "x", "expires_in": -5},
                       headers=headers).status_code == 422

    res = client.post("/puzzles", json={"image_data": "data:image/png;base64,AAAA", "answer": "x"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"


def test_get_missing_puzzle(client):
    res = client.get("/puzzles/nope")
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


def test_sakura_scenario(client, auth_headers, png_data_url, clock):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url, answer="sakura", case_sensitive=False)
    clock.advance(seconds=42)

    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "Sakura"}, headers=auth_headers("alice"))
    assert res.status_code == 200
    first = res.json()
    assert first["is_correct"] is True
    assert first["is_counted"] is True
    assert first["correct_answer"] == "sakura"
    assert first["time_to_solve"] == 42
    assert "hint" not in first

    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=auth_headers("alice"))
    second = res.json()
    assert second["is_correct"] is True
    assert second["is_counted"] is True
    assert "time_to_solve" not in second

    board = client.get(f"/puzzles/{puzzle['id']}/solves").json()
    assert board["total_solves"] == 1


def test_wrong_guess_hint(client, auth_headers, png_data_url):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url, answer="aab")
    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "aba"}, headers=auth_headers("alice"))
    body = res.json()
    assert body["is_correct"] is False
    assert "correct_answer" not in body
    assert body["hint"] == {"correct_chars": 3, "correct_positions": 1, "answer_length": 3}


def test_expired_puzzle_scenario(client, auth_headers, png_data_url, clock):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url, answer="sakura", expires_in=60)
    clock.advance(minutes=5)

    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=auth_headers("alice"))
    body = res.json()
    assert body["is_correct"] is True
    assert body["is_expired"] is True
    assert body["is_counted"] is False
    assert "time_to_solve" not in body

    assert client.get(f"/puzzles/{puzzle['id']}/solves").json()["total_solves"] == 0
    history = client.get(f"/puzzles/{puzzle['id']}/guesses", headers=auth_headers("alice")).json()
    assert history["total_count"] == 1
    assert history["counted_count"] == 0
    assert history["guesses"][0]["is_after_expiry"] is True

    answer = client.get(f"/puzzles/{puzzle['id']}/answer", headers=auth_headers("bob"))
    assert answer.status_code == 200
    assert answer.json() == {"answer": "sakura", "is_expired": True}


def test_answer_hidden_before_expiry(client, auth_headers, png_data_url):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url, expires_in=3600)
    res = client.get(f"/puzzles/{puzzle['id']}/answer", headers=auth_headers("bob"))
    assert res.status_code == 400
    assert res.json()["error"] == "puzzle_not_expired"


def test_creator_cannot_guess(client, auth_headers, png_data_url):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url)
    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=auth_headers("creator"))
    assert res.status_code == 403


def test_give_up_flow(client, auth_headers, png_data_url):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url)
    bob = auth_headers("bob")

    status = client.get(f"/puzzles/{puzzle['id']}/give-up", headers=bob).json()
    assert status == {"has_given_up": False, "given_up_at": None, "answer": None}

    res = client.post(f"/puzzles/{puzzle['id']}/give-up", headers=bob)
    assert res.status_code == 200
    assert res.json()["answer"] == "sakura"

    res = client.post(f"/puzzles/{puzzle['id']}/give-up", headers=bob)
    assert res.status_code == 409
    assert res.json()["error"] == "already_given_up"

    res = client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=bob)
    assert res.status_code == 403

    status = client.get(f"/puzzles/{puzzle['id']}/give-up", headers=bob).json()
    assert status["has_given_up"] is True

    alice = auth_headers("alice")
    client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=alice)
    res = client.post(f"/puzzles/{puzzle['id']}/give-up", headers=alice)
    assert res.status_code == 409
    assert res.json()["error"] == "already_solved"

    res = client.post(f"/puzzles/{puzzle['id']}/give-up", headers=auth_headers("creator"))
    assert res.status_code == 403


def test_stats_and_leaderboard(client, auth_headers, png_data_url, clock):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url, answer="sakura")
    pid = puzzle["id"]
    for user_id in ["A", "B", "C"]:
        clock.advance(seconds=15)
        client.post(f"/puzzles/{pid}/guess", json={"answer": "nope"}, headers=auth_headers(user_id))
        client.post(f"/puzzles/{pid}/guess", json={"answer": "SAKURA"}, headers=auth_headers(user_id))

    board = client.get(f"/puzzles/{pid}/solves").json()
    assert [(s["rank"], s["user_id"]) for s in board["solves"]] == [(1, "A"), (2, "B"), (3, "C")]
    assert [s["time_to_solve"] for s in board["solves"]] == [15, 30, 45]

    assert client.get(f"/puzzles/{pid}/stats", headers=auth_headers("A")).status_code == 403
    stats = client.get(f"/puzzles/{pid}/stats", headers=auth_headers("creator")).json()
    assert stats["answer"] == "sakura"
    assert stats["total_guesses"] == 6
    assert stats["correct_guesses"] == 3
    assert stats["accuracy_rate"] == 0.5
    assert len(stats["solves"]) == 3

    wrong = client.get(f"/puzzles/{pid}/wrong-guesses", headers=auth_headers("creator")).json()
    assert wrong == {"wrong_guesses": [{"guess": "nope", "count": 3}]}
    assert client.get(f"/puzzles/{pid}/wrong-guesses", headers=auth_headers("A")).status_code == 403


def test_list_public_puzzles(client, auth_headers, png_data_url, clock):
    headers = auth_headers("creator")
    for answer in ["one", "two", "three"]:
        clock.advance(seconds=1)
        create_puzzle(client, headers, png_data_url, answer=answer)
    create_puzzle(client, headers, png_data_url, answer="hidden", is_public=False)

    res = client.get("/puzzles", params={"page": 1, "page_size": 2})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 3
    assert len(body["puzzles"]) == 2
    assert body["page"] == 1

    assert len(client.get("/puzzles", params={"page": 2, "page_size": 2}).json()["puzzles"]) == 1
    assert client.get("/puzzles", params={"page": 0}).status_code == 422


def test_delete_puzzle(client, auth_headers, png_data_url, images):
    puzzle = create_puzzle(client, auth_headers("creator"), png_data_url)
    client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "neko"}, headers=auth_headers("alice"))

    assert client.delete(f"/puzzles/{puzzle['id']}", headers=auth_headers("alice")).status_code == 403
    res = client.delete(f"/puzzles/{puzzle['id']}", headers=auth_headers("creator"))
    assert res.status_code == 200
    assert len(images.deleted) == 1
    assert client.get(f"/puzzles/{puzzle['id']}").status_code == 404


def test_user_endpoints(client, auth_headers, png_data_url, add_user):
    add_user("creator", "kumo")
    headers = auth_headers("creator")
    puzzle = create_puzzle(client, headers, png_data_url)
    client.post(f"/puzzles/{puzzle['id']}/guess", json={"answer": "sakura"}, headers=auth_headers("alice"))

    me = client.get("/user/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "kumo"

    mine = client.get("/user/me/puzzles", headers=headers).json()["puzzles"]
    assert len(mine) == 1
    assert mine[0]["answer"] == "sakura"
    assert mine[0]["total_guesses"] == 1
    assert mine[0]["correct_guesses"] == 1

    assert client.get("/user/me", headers=auth_headers("stranger")).status_code == 404
