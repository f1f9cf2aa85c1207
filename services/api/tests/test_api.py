"""
End-to-end HTTP behaviour: status codes, error bodies, upload flow and the
live event socket.
"""
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from livefeed.main import create_app

from conftest import PASSWORD, PNG_BYTES


async def create_post(client, headers, image_path, title="Hello World", content="First post body"):
    return await client.post(
        "/posts",
        headers=headers,
        json={"title": title, "content": content, "image_url": image_path},
    )


class TestScenarios:
    async def test_signup_login_create_delete(self, client, register, upload):
        resp = await client.put(
            "/auth/signup", json={"email": "a@b.com", "name": "Ann", "password": "12345"}
        )
        assert resp.status_code == 201
        user_id = resp.json()["user_id"]

        resp = await client.post("/auth/login", json={"email": "a@b.com", "password": "12345"})
        assert resp.status_code == 200
        headers = {"Authorization": f"Bearer {resp.json()['token']}"}

        image = await upload(headers, "photo.jpg")
        resp = await create_post(client, headers, image)
        assert resp.status_code == 201
        post = resp.json()
        assert post["creator"] == {"user_id": user_id, "name": "Ann"}

        page = (await client.get("/posts?page=1")).json()
        assert page["total_items"] == 1
        assert page["posts"][0]["post_id"] == post["post_id"]

        resp = await client.delete(f"/posts/{post['post_id']}", headers=headers)
        assert resp.status_code == 200

        page = (await client.get("/posts?page=1")).json()
        assert page == {"posts": [], "total_items": 0}
        me = (await client.get("/users/me", headers=headers)).json()
        assert post["post_id"] not in me["posts"]

    async def test_other_user_cannot_update(self, client, register, upload):
        _, alice = await register("alice@b.com")
        _, bob = await register("bob@b.com")
        image = await upload(alice)
        post = (await create_post(client, alice, image)).json()

        resp = await client.put(
            f"/posts/{post['post_id']}",
            headers=bob,
            json={"title": "Taken over", "content": "Not yours anymore"},
        )
        assert resp.status_code == 403
        assert resp.json() == {"message": "Not authorized!", "status": 403}

        current = (await client.get(f"/posts/{post['post_id']}", headers=alice)).json()
        assert current["title"] == post["title"]
        assert current["content"] == post["content"]

    async def test_empty_feed(self, client):
        resp = await client.get("/posts", params={"page": 1})
        assert resp.status_code == 200
        assert resp.json() == {"posts": [], "total_items": 0}


class TestErrorBodies:
    async def test_anonymous_request_reaches_the_operation(self, client):
        resp = await client.post(
            "/posts", json={"title": "Hello World", "content": "Body text", "image_url": "images/x.png"}
        )
        assert resp.status_code == 401
        assert resp.json() == {"message": "Not authenticated.", "status": 401}

    async def test_garbage_token_is_treated_as_anonymous(self, client):
        resp = await client.get("/users/me", headers={"Authorization": "Bearer nonsense"})
        assert resp.status_code == 401

    async def test_validation_failure_lists_fields(self, client):
        resp = await client.put(
            "/auth/signup", json={"email": "bad", "name": "Ann", "password": "1"}
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["status"] == 422
        assert {item["field"] for item in body["data"]} == {"email", "password"}

    async def test_malformed_body_is_normalised(self, client):
        resp = await client.post("/auth/login", json={"email": "a@b.com"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["status"] == 422
        assert body["data"][0]["field"] == "password"

    async def test_duplicate_signup_conflicts(self, client, register):
        await register("a@b.com")
        resp = await client.put(
            "/auth/signup", json={"email": "a@b.com", "name": "Again", "password": PASSWORD}
        )
        assert resp.status_code == 409

    async def test_login_failures(self, client, register):
        await register("a@b.com")
        resp = await client.post("/auth/login", json={"email": "x@b.com", "password": PASSWORD})
        assert resp.status_code == 404
        resp = await client.post("/auth/login", json={"email": "a@b.com", "password": "wrong"})
        assert resp.status_code == 401

    async def test_unknown_post(self, client, register):
        _, headers = await register()
        resp = await client.get("/posts/does-not-exist", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["status"] == 404

    async def test_negative_page(self, client):
        resp = await client.get("/posts", params={"page": -1})
        assert resp.status_code == 422


class TestPrivateListing:
    async def test_listing_requires_token_when_not_public(self, app, client, register):
        app.state.settings.public_post_listing = False
        try:
            assert (await client.get("/posts")).status_code == 401
            _, headers = await register()
            assert (await client.get("/posts", headers=headers)).status_code == 200
        finally:
            app.state.settings.public_post_listing = True


class TestStatus:
    async def test_read_and_update(self, client, register):
        _, headers = await register()
        resp = await client.get("/users/me/status", headers=headers)
        assert resp.json() == {"status": "I am new!"}

        resp = await client.patch("/users/me/status", headers=headers, json={"status": "Busy"})
        assert resp.status_code == 200
        assert (await client.get("/users/me/status", headers=headers)).json() == {"status": "Busy"}


class TestImageUpload:
    async def test_requires_authentication(self, client):
        resp = await client.put(
            "/post-image", files={"image": ("a.png", PNG_BYTES, "image/png")}
        )
        assert resp.status_code == 401

    async def test_anonymous_upload_is_refused_before_reading(self, client, monkeypatch):
        reads = []
        original_read = UploadFile.read

        async def recording_read(self, *args, **kwargs):
            reads.append(self.filename)
            return await original_read(self, *args, **kwargs)

        monkeypatch.setattr(UploadFile, "read", recording_read)
        resp = await client.put(
            "/post-image", files={"image": ("a.png", PNG_BYTES, "image/png")}
        )
        assert resp.status_code == 401
        assert resp.json() == {"message": "Not authenticated.", "status": 401}
        assert reads == []

    async def test_no_file(self, client, register):
        _, headers = await register()
        resp = await client.put("/post-image", headers=headers, data={"old_path": "images/x.png"})
        assert resp.status_code == 200
        assert resp.json() == {"message": "No file provided"}

    async def test_rejects_wrong_type(self, client, register):
        _, headers = await register()
        resp = await client.put(
            "/post-image", headers=headers, files={"image": ("a.gif", b"GIF89a", "image/gif")}
        )
        assert resp.status_code == 422
        assert resp.json()["data"][0]["field"] == "image"

    async def test_stored_file_is_served(self, client, register, upload):
        _, headers = await register()
        path = await upload(headers)
        resp = await client.get(f"/{path}")
        assert resp.status_code == 200
        assert resp.content == PNG_BYTES

    async def test_old_path_is_released(self, app, client, register, upload):
        _, headers = await register()
        old = await upload(headers)
        resp = await client.put(
            "/post-image",
            headers=headers,
            files={"image": ("b.png", PNG_BYTES, "image/png")},
            data={"old_path": old},
        )
        assert resp.status_code == 201
        assert not app.state.images.exists(old)
        assert app.state.images.exists(resp.json()["file_path"])

    async def test_old_path_still_used_by_a_post_is_kept(self, app, client, register, upload):
        _, headers = await register()
        in_use = await upload(headers)
        await create_post(client, headers, in_use)

        resp = await client.put(
            "/post-image",
            headers=headers,
            files={"image": ("b.png", PNG_BYTES, "image/png")},
            data={"old_path": in_use},
        )
        assert resp.status_code == 201
        assert app.state.images.exists(in_use)


class TestHealthAndMetrics:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"

    async def test_metrics(self, client):
        resp = await client.get("/metrics/")
        assert resp.status_code == 200
        assert "post_mutations_total" in resp.text


def test_websocket_receives_mutation_events(settings):
    app = create_app(settings)
    with TestClient(app) as tc:
        tc.put("/auth/signup", json={"email": "a@b.com", "name": "Ann", "password": PASSWORD})
        token = tc.post("/auth/login", json={"email": "a@b.com", "password": PASSWORD}).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        image = tc.put(
            "/post-image", headers=headers, files={"image": ("a.png", PNG_BYTES, "image/png")}
        ).json()["file_path"]

        with tc.websocket_connect("/ws/posts") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

            post = tc.post(
                "/posts",
                headers=headers,
                json={"title": "Live title", "content": "Live content", "image_url": image},
            ).json()
            event = ws.receive_json()
            assert event["action"] == "create"
            assert event["post"]["post_id"] == post["post_id"]

            tc.delete(f"/posts/{post['post_id']}", headers=headers)
            assert ws.receive_json() == {"action": "delete", "post": post["post_id"]}
