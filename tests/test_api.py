from tests.conftest import auth_header

QUIZ = {
    "title": "Azores Essentials",
    "difficulty": "beginner",
    "passing_score": 70,
    "questions": [
        {"question_text": "Largest island?", "options": ["São Miguel", "Pico"], "correct_answer": "São Miguel", "points": 1},
        {"question_text": "Volcanic archipelago?", "question_type": "true_false", "options": [True, False], "correct_answer": True, "points": 1},
        {"question_text": "How many islands?", "options": [7, 9, 11], "correct_answer": 9, "points": 1},
    ],
}


async def login(client, user_id, roles=("employee",), company_id="acme"):
    r = await client.post("/v1/auth/mock-login", json={"user_id": user_id, "roles": list(roles), "company_id": company_id})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


async def create_quiz(client, admin):
    r = await client.post("/v1/quizzes", headers=admin, json=QUIZ)
    assert r.status_code == 201
    return r.json()["id"]


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


async def test_login_returns_bearer_token(client):
    r = await client.post("/v1/auth/mock-login", json={"user_id": "ana", "name": "Ana", "company_id": "acme"})
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["roles"] == ["employee"]


async def test_quiz_catalog_hides_answers(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    hdr = await login(client, "ana")

    r = await client.get("/v1/quizzes", headers=hdr)
    assert r.status_code == 200
    assert [(q["id"], q["question_count"]) for q in r.json()] == [(quiz_id, 3)]

    r = await client.get(f"/v1/quizzes/{quiz_id}", headers=hdr)
    assert r.status_code == 200
    questions = r.json()["questions"]
    assert [q["sort_order"] for q in questions] == [1, 2, 3]
    assert all("correct_answer" not in q for q in questions)


async def test_employees_cannot_create_quizzes(client):
    hdr = await login(client, "ana")
    r = await client.post("/v1/quizzes", headers=hdr, json=QUIZ)
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "access_denied"


async def test_submit_full_pass(client, publisher):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    hdr = await login(client, "ana")

    r = await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=hdr,
                          json={"answers": ["São Miguel", True, 9], "timeSpent": 300})
    assert r.status_code == 200
    body = r.json()
    assert body["score"] == 100
    assert body["passed"] is True
    assert body["pointsEarned"] == 3
    assert body["gamificationPoints"] == 150
    assert body["correctAnswers"] == 3
    assert body["totalQuestions"] == 3
    assert body["attemptNumber"] == 1
    assert body["currentStreak"] == 1
    assert body["badgesEarned"] == ["First Steps", "Perfectionist", "High Performer"]
    assert [e["type"] for e in publisher.for_user("ana")][0] == "quiz_completed"


async def test_submit_partial_fail(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    hdr = await login(client, "ana")

    r = await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=hdr,
                          json={"answers": ["São Miguel", "true", 7], "timeSpent": 120})
    body = r.json()
    assert round(body["score"], 2) == 33.33
    assert body["passed"] is False
    assert body["pointsEarned"] == 1
    assert body["gamificationPoints"] == 100


async def test_submit_rejects_malformed_payload(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    hdr = await login(client, "ana")

    r = await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=hdr, json={"answers": "A", "timeSpent": 10})
    assert r.status_code == 422
    assert r.json()["error"]["type"] == "validation_error"

    for time_spent in (-5, True, "10", 1.5):
        r = await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=hdr, json={"answers": ["A"], "timeSpent": time_spent})
        assert r.status_code == 422
        assert r.json()["error"]["type"] == "validation_error"

    r = await client.get("/v1/quizzes/results/ana", headers=hdr)
    assert r.json() == []


async def test_submit_unknown_quiz(client):
    hdr = await login(client, "ana")
    r = await client.post("/v1/quizzes/424242/submit", headers=hdr, json={"answers": [], "timeSpent": 1})
    assert r.status_code == 404
    assert r.json()["error"]["type"] == "not_found"


async def test_requests_need_a_token(client):
    r = await client.get("/v1/quizzes")
    assert r.status_code in (401, 403)

    r = await client.get("/v1/quizzes", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_results_are_private(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    ana = await login(client, "ana")
    rui = await login(client, "rui")
    await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=ana, json={"answers": ["Pico"], "timeSpent": 5})

    r = await client.get("/v1/quizzes/results/ana", headers=rui)
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "access_denied"

    r = await client.get("/v1/quizzes/results/ana", headers=admin)
    assert r.status_code == 200
    [result] = r.json()
    assert result["quiz_title"] == "Azores Essentials"
    assert result["attempt_number"] == 1
    assert result["answers"] == ["Pico"]


async def test_leaderboard_and_user_stats(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    ana = await login(client, "ana")
    await login(client, "rui")
    await login(client, "eve", company_id="globex")
    await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=ana,
                      json={"answers": ["São Miguel", True, 9], "timeSpent": 300})

    r = await client.get("/v1/gamification/leaderboard/acme", headers=ana)
    assert r.status_code == 200
    board = r.json()
    assert {row["id"] for row in board} == {"ana", "boss", "rui"}
    assert board[0]["id"] == "ana"
    assert board[0]["total_points"] == 450
    assert board[0]["badge_count"] == 3
    assert board[0]["rank"] == 1

    r = await client.get("/v1/gamification/leaderboard/globex", headers=ana)
    assert r.status_code == 403

    r = await client.get("/v1/gamification/user-stats/ana", headers=ana)
    assert r.status_code == 200
    stats = r.json()
    assert stats["total_points"] == 450
    assert stats["quiz_count"] == 1
    assert stats["perfect_scores"] == 1
    assert stats["current_streak"] == 1
    assert stats["rank"] == 1
    assert {b["name"] for b in stats["badges"]} == {"First Steps", "Perfectionist", "High Performer"}
    assert len(stats["points_history"]) == 4


async def test_user_stats_for_unknown_user(client):
    hdr = auth_header("ghost", roles=("super_admin",))
    r = await client.get("/v1/gamification/user-stats/ghost", headers=hdr)
    assert r.status_code == 404


async def test_badge_catalog_rarest_first(client):
    hdr = await login(client, "ana")
    r = await client.get("/v1/gamification/badges", headers=hdr)
    assert r.status_code == 200
    names = [b["name"] for b in r.json()]
    assert len(names) == 8
    assert names[0] == "Streak Warrior"
    assert names[1:3] == ["Content Creator", "Quiz Master"]


async def test_company_analytics(client):
    admin = await login(client, "boss", roles=("company_admin",))
    quiz_id = await create_quiz(client, admin)
    ana = await login(client, "ana")
    await client.post(f"/v1/quizzes/{quiz_id}/submit", headers=ana, json={"answers": ["São Miguel"], "timeSpent": 30})

    r = await client.get("/v1/gamification/analytics/acme", headers=ana)
    assert r.status_code == 403

    r = await client.get("/v1/gamification/analytics/acme", headers=admin)
    assert r.status_code == 200
    overview = r.json()["overview"]
    assert overview["total_users"] == 2
    assert overview["total_quiz_attempts"] == 1
    assert overview["active_learners"] == 1
    assert overview["passed_attempts"] == 0
