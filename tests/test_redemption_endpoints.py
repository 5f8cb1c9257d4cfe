import pytest

from codepool_api.models.code import CodeCategory

from conftest import ADMIN_KEY, REDEEM_KEY


REDEEM_HEADERS = {"X-API-Key": REDEEM_KEY}
ADMIN_HEADERS = {"X-API-Key": ADMIN_KEY}


@pytest.mark.asyncio
async def test_redeem_flow_over_http(client, seed_codes) -> None:
    await seed_codes(CodeCategory.COINS, ["A1", "A2"])

    first = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 7, "jobId": "job-1"},
        headers=REDEEM_HEADERS,
    )
    assert first.status_code == 200
    assert first.json() == {"code": "A1"}

    replay = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 7},
        headers=REDEEM_HEADERS,
    )
    assert replay.status_code == 409
    assert replay.json() == {"error": "ALREADY_REDEEMED", "code": "A1"}

    second = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 8},
        headers=REDEEM_HEADERS,
    )
    assert second.json() == {"code": "A2"}

    exhausted = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 9},
        headers=REDEEM_HEADERS,
    )
    assert exhausted.status_code == 404
    assert exhausted.json() == {"error": "OUT_OF_STOCK"}

    stats = await client.get("/api/v1/stats", headers=ADMIN_HEADERS)
    assert stats.status_code == 200
    assert stats.json() == {
        "stats": [
            {"category": "gopay_cashback", "remaining": 0, "used": 0},
            {"category": "gopay_coins", "remaining": 0, "used": 2},
        ]
    }


@pytest.mark.asyncio
async def test_replay_can_answer_with_ok(client, seed_codes, configured_settings, monkeypatch) -> None:
    monkeypatch.setattr(configured_settings, "redeem_conflict_on_replay", False)
    await seed_codes(CodeCategory.CASHBACK, ["B1"])
    body = {"category": "gopay_cashback", "playerUserId": 3}

    await client.post("/api/v1/redeem", json=body, headers=REDEEM_HEADERS)
    replay = await client.post("/api/v1/redeem", json=body, headers=REDEEM_HEADERS)

    assert replay.status_code == 200
    assert replay.json() == {"code": "B1", "alreadyRedeemed": True}


@pytest.mark.asyncio
async def test_redeem_requires_matching_key(client, seed_codes) -> None:
    await seed_codes(CodeCategory.COINS, ["A1"])
    body = {"category": "gopay_coins", "playerUserId": 7}

    missing = await client.post("/api/v1/redeem", json=body)
    wrong = await client.post("/api/v1/redeem", json=body, headers={"X-API-Key": "nope"})
    admin = await client.post("/api/v1/redeem", json=body, headers=ADMIN_HEADERS)

    for response in (missing, wrong, admin):
        assert response.status_code == 401
        assert response.json() == {"error": "UNAUTHORIZED"}

    peek = await client.get("/api/v1/admin/peek", params={"category": "gopay_coins"}, headers=ADMIN_HEADERS)
    assert peek.json()["code"] == "A1"


@pytest.mark.asyncio
async def test_unconfigured_secret_rejects_everything(client, configured_settings, monkeypatch) -> None:
    monkeypatch.setattr(configured_settings, "redeem_secret_key", "")

    response = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 7},
        headers={"X-API-Key": ""},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_json_is_rejected(client) -> None:
    response = await client.post(
        "/api/v1/redeem",
        content=b"{not json",
        headers={**REDEEM_HEADERS, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "INVALID_JSON"}


@pytest.mark.asyncio
async def test_credentials_are_checked_before_the_body(client) -> None:
    malformed = await client.post(
        "/api/v1/redeem",
        content=b"{nope",
        headers={"Content-Type": "application/json"},
    )
    invalid = await client.post("/api/v1/redeem", json={"category": "gopay_points"}, headers={"X-API-Key": "nope"})

    for response in (malformed, invalid):
        assert response.status_code == 401
        assert response.json() == {"error": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_largest_bigint_player_id_is_accepted(client, seed_codes) -> None:
    await seed_codes(CodeCategory.COINS, ["A1"])

    response = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 2**63 - 1},
        headers=REDEEM_HEADERS,
    )

    assert response.status_code == 200
    assert response.json() == {"code": "A1"}


@pytest.mark.asyncio
async def test_routing_errors_use_error_bodies(client) -> None:
    wrong_method = await client.get("/api/v1/redeem", headers=REDEEM_HEADERS)
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"error": "METHOD_NOT_ALLOWED"}
    assert "POST" in wrong_method.headers["allow"]

    unknown = await client.get("/api/v1/nowhere")
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "NOT_FOUND"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"category": "gopay_points", "playerUserId": 7},
        {"category": "gopay_coins"},
        {"category": "gopay_coins", "playerUserId": "7"},
        {"category": "gopay_coins", "playerUserId": -1},
        {"category": "gopay_coins", "playerUserId": 2**63},
        {"category": "gopay_coins", "playerUserId": 7.5},
        {"playerUserId": 7},
    ],
)
async def test_invalid_body_describes_expected_shape(client, body) -> None:
    response = await client.post("/api/v1/redeem", json=body, headers=REDEEM_HEADERS)

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "INVALID_BODY"
    assert set(payload["expected"]) == {"category", "playerUserId", "jobId"}


@pytest.mark.asyncio
async def test_non_string_job_id_is_ignored(client, app_with_db, seed_codes) -> None:
    await seed_codes(CodeCategory.COINS, ["A1"])

    response = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 7, "jobId": 12345},
        headers=REDEEM_HEADERS,
    )
    assert response.status_code == 200

    status = await client.get("/api/v1/admin/code-status", params={"code": "A1"}, headers=ADMIN_HEADERS)
    assert status.json()["usedRecord"]["jobId"] is None


@pytest.mark.asyncio
async def test_code_status_reports_usage(client, seed_codes) -> None:
    [code_id] = await seed_codes(CodeCategory.CASHBACK, ["B1"])

    before = await client.get("/api/v1/admin/code-status", params={"code": "B1"}, headers=ADMIN_HEADERS)
    assert before.status_code == 200
    body = before.json()
    assert body["found"] is True
    assert body["used"] is False
    assert body["usedRecord"] is None
    assert body["codeRow"]["id"] == code_id
    assert body["codeRow"]["category"] == "gopay_cashback"
    assert body["codeRow"]["usedAt"] is None

    await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_cashback", "playerUserId": 55, "jobId": "job-55"},
        headers=REDEEM_HEADERS,
    )

    after = await client.get(
        "/api/v1/admin/code-status",
        params={"code": "B1", "category": "gopay_cashback"},
        headers=ADMIN_HEADERS,
    )
    body = after.json()
    assert body["used"] is True
    assert body["codeRow"]["usedAt"] is not None
    assert body["usedRecord"]["playerUserId"] == 55
    assert body["usedRecord"]["jobId"] == "job-55"
    assert body["usedRecord"]["redeemedAt"] is not None


@pytest.mark.asyncio
async def test_code_status_validation_and_not_found(client, seed_codes) -> None:
    await seed_codes(CodeCategory.COINS, ["A1"])

    missing_code = await client.get("/api/v1/admin/code-status", headers=ADMIN_HEADERS)
    assert missing_code.status_code == 400
    assert missing_code.json()["error"] == "INVALID_CODE"

    bad_category = await client.get(
        "/api/v1/admin/code-status",
        params={"code": "A1", "category": "gopay_points"},
        headers=ADMIN_HEADERS,
    )
    assert bad_category.status_code == 400
    assert bad_category.json() == {
        "error": "INVALID_CATEGORY",
        "expected": "gopay_cashback | gopay_coins",
    }

    wrong_category = await client.get(
        "/api/v1/admin/code-status",
        params={"code": "A1", "category": "gopay_cashback"},
        headers=ADMIN_HEADERS,
    )
    assert wrong_category.status_code == 404
    assert wrong_category.json() == {"error": "NOT_FOUND"}

    unknown = await client.get("/api/v1/admin/code-status", params={"code": "ZZ"}, headers=ADMIN_HEADERS)
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_peek_does_not_consume(client, seed_codes) -> None:
    [first_id, _] = await seed_codes(CodeCategory.COINS, ["A1", "A2"])

    for _ in range(2):
        peek = await client.get("/api/v1/admin/peek", params={"category": "gopay_coins"}, headers=ADMIN_HEADERS)
        assert peek.status_code == 200
        assert peek.json() == {"id": first_id, "code": "A1", "category": "gopay_coins"}

    redeemed = await client.post(
        "/api/v1/redeem",
        json={"category": "gopay_coins", "playerUserId": 1},
        headers=REDEEM_HEADERS,
    )
    assert redeemed.json() == {"code": "A1"}


@pytest.mark.asyncio
async def test_peek_validation_and_empty_stock(client) -> None:
    missing = await client.get("/api/v1/admin/peek", headers=ADMIN_HEADERS)
    assert missing.status_code == 400
    assert missing.json()["error"] == "INVALID_CATEGORY"

    empty = await client.get("/api/v1/admin/peek", params={"category": "gopay_cashback"}, headers=ADMIN_HEADERS)
    assert empty.status_code == 404
    assert empty.json() == {"error": "OUT_OF_STOCK"}


@pytest.mark.asyncio
async def test_admin_routes_reject_redeem_key(client) -> None:
    for path in ("/api/v1/stats", "/api/v1/admin/peek?category=gopay_coins", "/api/v1/admin/code-status?code=A1"):
        response = await client.get(path, headers=REDEEM_HEADERS)
        assert response.status_code == 401
