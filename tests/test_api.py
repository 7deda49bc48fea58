from sqlalchemy.exc import OperationalError

from summarizer_gateway.config import settings
from summarizer_gateway.exceptions import ModelInvocationFailed
from summarizer_gateway.models import UsageLog
from summarizer_gateway.utils.auth import APIKeyManager
from summarizer_gateway.utils.tokens import TokenManager

URL = "/v1/github-summarizer"
HELLO = {"githubUrl": "https://github.com/octocat/Hello-World"}


def _post(client, body=HELLO, key="rsk_test-key", demo=None, token=None):
    headers = {}
    if key:
        headers["x-api-key"] = key
    if demo:
        headers["x-demo-user"] = demo
    if token:
        headers["x-demo-token"] = token
    return client.post(URL, json=body, headers=headers)


def test_summarize_success(client, make_key, read_usage, db):
    key_id = make_key(usage=0)

    r = _post(client)

    assert r.status_code == 200
    body = r.json()
    assert body["summary"] == "A friendly test repository."
    assert body["cool_facts"] == ["It says hello", "It is tiny", "It is a classic"]
    assert "warning" not in body
    assert read_usage(key_id=key_id) == 1

    log = db.query(UsageLog).one()
    assert log.subject_ref == key_id
    assert log.repository == "octocat/Hello-World"
    assert log.used_fallback is False


def test_missing_credentials(client):
    r = _post(client, key=None)

    assert r.status_code == 401
    assert r.json() == {"error": "Invalid API key"}


def test_unknown_key_does_not_touch_quota(client, make_key, read_usage, db):
    key_id = make_key(key="rsk_real", usage=2)

    r = _post(client, key="rsk_unknown")

    assert r.status_code == 401
    assert r.json() == {"error": "Invalid API key"}
    assert read_usage(key_id=key_id) == 2
    assert db.query(UsageLog).count() == 0


def test_inactive_key(client, make_key):
    make_key(active=False)

    r = _post(client)

    assert r.status_code == 401
    assert r.json() == {"error": "API key is inactive"}


def test_quota_runs_out(client, make_key, read_usage):
    key_id = make_key(usage=4, limit=5)

    assert _post(client).status_code == 200
    r = _post(client)

    assert r.status_code == 429
    assert r.json() == {"error": "Rate limit exceeded", "usage": 5, "limit": 5}
    assert read_usage(key_id=key_id) == 5


def test_demo_user_gets_trial_requests(client, read_usage):
    r = _post(client, key=None, demo="new-user@example.com")

    assert r.status_code == 200
    assert read_usage(email="new-user@example.com") == 1


def test_exhausted_demo_user(client, make_demo, github_api):
    make_demo(usage=5)

    r = _post(client, key=None, demo="demo@example.com")

    assert r.status_code == 429
    assert r.json()["usage"] == 5
    assert r.json()["limit"] == 5
    assert github_api.requests == []


def test_missing_readme_still_summarizes(client, make_key, github_api, model_client):
    make_key()
    github_api.add_repo("acme/no-readme", readme_status=404, description="Tools")

    r = _post(client, body={"githubUrl": "https://github.com/acme/no-readme"})

    assert r.status_code == 200
    assert model_client.prompts[0].endswith("README Content:\n")


def test_model_failure_returns_fallback(client, make_key, model_client, read_usage, db):
    key_id = make_key()
    model_client.error = ModelInvocationFailed("Model call failed: connection reset")

    r = _post(client)

    assert r.status_code == 200
    body = r.json()
    assert body["warning"] == "AI generation failed, using fallback"
    assert body["cool_facts"] == [
        "My first repository on GitHub!",
        "Uses demo, hello, octocat technologies",
        "2500 stars on GitHub",
    ]
    assert body["summary"].startswith("octocat/Hello-World is a Python project")
    assert read_usage(key_id=key_id) == 1
    assert db.query(UsageLog).one().used_fallback is True


def test_repository_not_found_releases_quota(client, make_key, read_usage, db):
    key_id = make_key(usage=3)

    r = _post(client, body={"githubUrl": "https://github.com/ghost/nothing"})

    assert r.status_code == 404
    assert r.json() == {"error": "Repository not found"}
    assert read_usage(key_id=key_id) == 3
    assert db.query(UsageLog).count() == 0


def test_moved_repository_is_summarized(client, make_key, github_api, db):
    make_key()
    github_api.add_repo("new/name", readme="# Renamed", description="Moved repo")
    github_api.move_repo("old/name", "new/name")

    r = _post(client, body={"githubUrl": "https://github.com/old/name"})

    assert r.status_code == 200
    assert db.query(UsageLog).one().repository == "new/name"


def _store_error(*args, **kwargs):
    raise OperationalError("UPDATE api_keys", {}, Exception("database is locked"))


def test_usage_commit_failure_keeps_the_summary(client, make_key, monkeypatch, read_usage, db):
    key_id = make_key()
    monkeypatch.setattr(APIKeyManager, "touch", _store_error)

    r = _post(client)

    assert r.status_code == 200
    assert r.json()["summary"] == "A friendly test repository."
    assert read_usage(key_id=key_id) == 1
    assert db.query(UsageLog).count() == 0


def test_release_failure_keeps_the_original_error(client, make_key, monkeypatch, read_usage):
    key_id = make_key(usage=3)
    monkeypatch.setattr(APIKeyManager, "release", _store_error)

    r = _post(client, body={"githubUrl": "https://github.com/ghost/nothing"})

    assert r.status_code == 404
    assert r.json() == {"error": "Repository not found"}
    assert read_usage(key_id=key_id) == 4


def test_upstream_error_status_is_propagated(client, make_key, github_api, read_usage):
    key_id = make_key()
    github_api.add_repo("acme/flaky", status=503)

    r = _post(client, body={"githubUrl": "https://github.com/acme/flaky"})

    assert r.status_code == 503
    assert r.json() == {"error": "Failed to fetch repository data"}
    assert read_usage(key_id=key_id) == 0


def test_malformed_url(client, make_key, read_usage):
    key_id = make_key()

    r = _post(client, body={"githubUrl": "https://example.com/nope"})

    assert r.status_code == 400
    assert "Invalid GitHub URL format" in r.json()["error"]
    assert read_usage(key_id=key_id) == 0


def test_missing_url(client, make_key):
    make_key()

    r = _post(client, body={})

    assert r.status_code == 400
    assert r.json() == {"error": "GitHub URL is required"}


def test_non_json_body(client, make_key):
    make_key()

    r = client.post(
        URL,
        content="githubUrl=oops",
        headers={"x-api-key": "rsk_test-key", "content-type": "application/json"},
    )

    assert r.status_code == 400
    assert "error" in r.json()


def test_demo_token_required(client, monkeypatch, read_usage):
    monkeypatch.setattr(settings, "demo_require_token", True)
    email = "signed@example.com"

    r = _post(client, key=None, demo=email)
    assert r.status_code == 401
    assert r.json() == {"error": "Demo session could not be verified"}

    other = TokenManager().create_demo_token("someone-else@example.com")["access_token"]
    assert _post(client, key=None, demo=email, token=other).status_code == 401

    token = TokenManager().create_demo_token(email)["access_token"]
    r = _post(client, key=None, demo=email, token=token)
    assert r.status_code == 200
    assert read_usage(email=email) == 1


def test_unknown_route(client):
    r = client.get("/v1/nothing-here")

    assert r.status_code == 404
    assert r.json() == {"error": "Not found"}


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
