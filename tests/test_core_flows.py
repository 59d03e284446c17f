from bookmarkly.auth.errors import LOGIN_ERROR_MESSAGES, LOGIN_ERROR_NETWORK
from bookmarkly.services.forms import DUPLICATE_TAG_MESSAGE, URL_ERROR
from bookmarkly.services.token_cache import KEY as TOKEN_CACHE_KEY


def _create(client, **values):
    payload = {"url": "https://example.com", "title": "Example"}
    payload.update(values)
    response = client.post("/api/v1/bookmarks", json=payload)
    assert response.status_code == 201
    return response.get_json()


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_protected_routes_require_sign_in(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")

    response = client.get("/api/v1/bookmarks")
    assert response.status_code == 401
    assert response.get_json() == {"error": "authentication required"}


def test_login_page_and_redirect_to_provider(client, provider):
    response = client.get("/login")
    assert response.status_code == 200
    assert b"Continue with Google" in response.data

    response = client.post("/login", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].startswith("https://accounts.example.test/")
    assert "state=" in response.headers["Location"]


def test_callback_signs_in_and_caches_tokens(client, login):
    response = login(client)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/")

    with client.session_transaction() as session:
        assert session["auth_session"]["access_token"].startswith("bka_")
        assert TOKEN_CACHE_KEY in session

    response = client.get("/api/v1/me")
    assert response.get_json()["user"]["email"] == "alice@example.com"

    response = client.get("/login", follow_redirects=False)
    assert response.status_code == 302


def test_callback_provider_error_fails_fast(client, provider):
    response = client.get(
        "/auth/callback",
        query_string={"error": "access_denied", "error_description": "User cancelled"},
    )
    assert response.status_code == 400
    assert b"User cancelled" in response.data
    assert b"/login" in response.data
    assert provider.exchanged == []


def test_callback_rejects_forged_state(client, provider):
    client.post("/login")
    response = client.get("/auth/callback", query_string={"code": "alice", "state": "x"})
    assert response.status_code == 400
    assert b"expired" in response.data
    assert provider.exchanged == []


def test_callback_network_failure_shows_friendly_message(client, login):
    response = login(client, code="offline")
    assert response.status_code == 400
    assert LOGIN_ERROR_MESSAGES[LOGIN_ERROR_NETWORK].encode() in response.data.replace(
        b"&#39;", b"'"
    )


def test_callback_shows_provider_rejection(client, login):
    response = login(client, code="rejected")
    assert response.status_code == 400
    assert b"Google rejected the sign-in" in response.data
    with client.session_transaction() as session:
        assert "auth_session" not in session


def test_callback_timeout_message(client, login):
    response = login(client, code="slow")
    assert response.status_code == 400
    assert b"took too long" in response.data


def test_empty_collection_state(client, login):
    login(client)
    response = client.get("/")
    assert response.status_code == 200
    assert b"Your collection is empty" in response.data


def test_search_without_matches_state(client, login):
    login(client)
    _create(client)
    response = client.get("/?q=zzz")
    assert b"No matches found" in response.data
    assert b"Clear search" in response.data


def test_web_add_edit_delete(client, login):
    login(client)
    response = client.post(
        "/bookmarks/new",
        data={
            "url": "https://docs.python.org",
            "title": "Python Docs",
            "tags": ["python"],
            "tag_input": "docs",
            "notes": "",
        },
        follow_redirects=False,
    )
    assert response.status_code == 302

    items = client.get("/api/v1/bookmarks").get_json()["items"]
    assert len(items) == 1
    bookmark = items[0]
    assert bookmark["tags"] == ["python", "docs"]
    assert bookmark["notes"] is None

    response = client.get("/")
    assert b"Python Docs" in response.data
    assert b"docs.python.org" in response.data

    response = client.post(
        f"/bookmarks/{bookmark['id']}/edit",
        data={"url": "https://docs.python.org/3/", "title": "Python 3", "tags": ["python"]},
    )
    assert response.status_code == 302
    items = client.get("/api/v1/bookmarks").get_json()["items"]
    assert items[0]["title"] == "Python 3"
    assert items[0]["tags"] == ["python"]

    response = client.post(f"/bookmarks/{bookmark['id']}/delete")
    assert response.status_code == 302
    assert client.get("/api/v1/bookmarks").get_json()["items"] == []


def test_web_form_rejects_invalid_url(client, login):
    login(client)
    response = client.post("/bookmarks/new", data={"url": "not-a-url", "title": "x"})
    assert response.status_code == 400
    assert URL_ERROR.encode() in response.data
    assert client.get("/api/v1/bookmarks").get_json()["items"] == []


def test_web_form_tag_actions(client, login):
    login(client)
    response = client.post(
        "/bookmarks/new",
        data={"url": "", "title": "", "tags": ["python"], "tag_input": "web", "action": "add_tag"},
    )
    assert response.status_code == 200
    assert b'name="tags" value="web"' in response.data

    response = client.post(
        "/bookmarks/new",
        data={"tags": ["python"], "tag_input": "python", "action": "add_tag"},
    )
    assert DUPLICATE_TAG_MESSAGE.encode() in response.data

    response = client.post(
        "/bookmarks/new",
        data={"tags": ["python", "web"], "tag_input": "", "action": "remove_last_tag"},
    )
    assert b'name="tags" value="web"' not in response.data
    assert b'name="tags" value="python"' in response.data


def test_tag_filter_and_view_modes(client, login):
    login(client)
    _create(client, title="Python Docs", tags=["python", "docs", "ref", "extra"])
    _create(client, url="https://rust-lang.org", title="Rust", tags=["rust"])

    response = client.get("/?tag=rust&view=list")
    assert b"Rust" in response.data
    assert b"Python Docs" not in response.data
    assert b"bookmarks-list" in response.data

    response = client.get("/")
    assert b"+1" in response.data
    assert b"bookmarks-grid" in response.data


def test_api_crud(client, login):
    login(client)
    created = _create(client, tags=[" a ", "b"], notes="  note ")
    assert created["tags"] == ["a", "b"]
    assert created["notes"] == "note"

    response = client.patch(f"/api/v1/bookmarks/{created['id']}", json={"title": "Renamed"})
    assert response.status_code == 200
    assert response.get_json()["title"] == "Renamed"

    response = client.patch(f"/api/v1/bookmarks/{created['id']}", json={"title": " "})
    assert response.status_code == 400

    response = client.post("/api/v1/bookmarks", json={"url": "https://x.test"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Title is required"}

    response = client.get("/api/v1/bookmarks?q=renamed")
    body = response.get_json()
    assert [item["id"] for item in body["items"]] == [created["id"]]
    assert body["tags"] == ["All", "a", "b"]

    response = client.delete(f"/api/v1/bookmarks/{created['id']}")
    assert response.status_code == 200
    response = client.delete(f"/api/v1/bookmarks/{created['id']}")
    assert response.status_code == 404


def test_users_cannot_touch_each_others_bookmarks(app, login):
    alice = app.test_client()
    bob = app.test_client()
    login(alice, code="alice")
    login(bob, code="bob")

    created = _create(alice)
    assert bob.get("/api/v1/bookmarks").get_json()["items"] == []
    assert bob.patch(f"/api/v1/bookmarks/{created['id']}", json={"title": "x"}).status_code == 404
    assert bob.delete(f"/api/v1/bookmarks/{created['id']}").status_code == 404
    assert bob.get(f"/bookmarks/{created['id']}/edit").status_code == 404


def test_changes_reach_other_sessions_of_the_same_user(app, login):
    laptop = app.test_client()
    phone = app.test_client()
    login(laptop)
    login(phone)
    assert phone.get("/api/v1/bookmarks").get_json()["items"] == []

    created = _create(laptop, title="From laptop")
    items = phone.get("/api/v1/bookmarks").get_json()["items"]
    assert [item["id"] for item in items] == [created["id"]]

    laptop.delete(f"/api/v1/bookmarks/{created['id']}")
    assert phone.get("/api/v1/bookmarks").get_json()["items"] == []


def test_visible_resubscribes(client, login):
    login(client)
    before = client.post("/api/v1/session/visible").get_json()["channel"]
    after = client.post("/api/v1/session/visible").get_json()["channel"]
    assert before.startswith("bookmarks-")
    assert after.startswith("bookmarks-")


def test_stream_sends_ready_event(client, login):
    login(client)
    response = client.get("/api/v1/stream")
    assert response.status_code == 200
    assert response.mimetype == "text/event-stream"
    assert b"event: ready" in response.data


def test_logout_clears_session(client, login):
    login(client)
    response = client.post("/logout", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    with client.session_transaction() as session:
        assert "auth_session" not in session
        assert TOKEN_CACHE_KEY not in session
    assert client.get("/", follow_redirects=False).status_code == 302


def test_global_logout_signs_out_other_devices(app, services, login):
    laptop = app.test_client()
    phone = app.test_client()
    login(laptop)
    login(phone)
    phone.get("/")
    assert len(services.workspaces) == 1

    phone.post("/logout", data={"scope": "global"})
    assert len(services.workspaces) == 0

    response = laptop.get("/", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")
    assert laptop.get("/api/v1/me").status_code == 401


def test_api_rejects_wrongly_typed_fields(client, login):
    login(client)
    for payload in (
        {"url": "https://x.test", "title": "x", "tags": 5},
        {"url": 123, "title": "x"},
        {"url": "https://x.test", "title": ["x"]},
        {"url": "https://x.test", "title": "x", "notes": 7},
        {"url": "javascript:alert(1)", "title": "x"},
    ):
        response = client.post("/api/v1/bookmarks", json=payload)
        assert response.status_code == 400, payload
        assert "error" in response.get_json()

    created = _create(client, tags=["a"])
    for patch in ({"tags": "ab"}, {"url": 5}, {"notes": ["n"]}, {"url": "data:text/html,x"}):
        response = client.patch(f"/api/v1/bookmarks/{created['id']}", json=patch)
        assert response.status_code == 400, patch

    items = client.get("/api/v1/bookmarks").get_json()["items"]
    assert items[0]["tags"] == ["a"]
    assert items[0]["url"] == "https://example.com"


def test_enter_key_is_the_default_form_action(client, login):
    login(client)
    response = client.post(
        "/bookmarks/new", data={"tags": ["python"], "tag_input": "", "action": "add_tag"}
    )
    html = response.get_data(as_text=True)
    first_button = html[html.index('action="/bookmarks/new"'):].split("<button", 2)[1]
    assert 'value="enter"' in first_button

    response = client.post(
        "/bookmarks/new",
        data={"url": "", "title": "", "tags": ["python"], "tag_input": "web", "action": "enter"},
    )
    assert response.status_code == 200
    assert b'name="tags" value="python"' in response.data
    assert b'name="tags" value="web"' in response.data

    response = client.post(
        "/bookmarks/new",
        data={
            "url": "https://example.com",
            "title": "Example",
            "tags": ["python"],
            "tag_input": "",
            "action": "enter",
        },
        follow_redirects=False,
    )
    assert response.status_code == 302
    items = client.get("/api/v1/bookmarks").get_json()["items"]
    assert items[0]["tags"] == ["python"]
