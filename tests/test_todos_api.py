from datetime import datetime

from fastapi.testclient import TestClient

from todo_api.main import app

client = TestClient(app)


def parse_ts(value: str) -> datetime:
    # pydantic renders UTC as a trailing 'Z'
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create_todo_payload(
    title="Test Task",
    description="Do something",
    completed=False,
    priority=None,
    tag_ids=None,
):
    payload = {
        "title": title,
        "description": description,
        "completed": completed,
    }
    if priority is not None:
        payload["priority"] = priority
    if tag_ids is not None:
        payload["tagIds"] = tag_ids
    return payload


def create_tag(name, color=None):
    body = {"name": name}
    if color is not None:
        body["color"] = color
    res = client.post("/api/tags", json=body)
    assert res.status_code == 201
    return res.json()


def assert_todo_shape(todo: dict):
    # Basic structure validation
    for key in ["id", "title", "completed", "priority", "created_at", "updated_at", "tags"]:
        assert key in todo
    # Optional fields
    assert "description" in todo
    # Type-ish checks
    assert isinstance(todo["id"], int)
    assert isinstance(todo["title"], str)
    assert isinstance(todo["completed"], bool)
    assert todo["priority"] in ("low", "medium", "high")
    assert isinstance(todo["tags"], list)
    # Timestamps are ISO8601 strings parseable by datetime.fromisoformat
    created = parse_ts(todo["created_at"])
    updated = parse_ts(todo["updated_at"])
    assert updated >= created


class TestHealth:
    def test_health_check(self):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")

    def test_liveness(self):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}


class TestTodosCRUD:
    def test_create_todo_minimal_uses_defaults(self):
        res = client.post("/api/todos", json={"title": "Buy milk"})
        assert res.status_code == 201
        todo = res.json()
        assert_todo_shape(todo)
        assert todo["title"] == "Buy milk"
        assert todo["description"] is None
        assert todo["completed"] is False
        assert todo["priority"] == "medium"
        assert todo["tags"] == []
        assert todo["created_at"] == todo["updated_at"]

    def test_create_todo_accepts_content_alias(self):
        res = client.post("/api/todos", json={"title": "Write notes", "content": "Chapter 3"})
        assert res.status_code == 201
        assert res.json()["description"] == "Chapter 3"

    def test_create_todo_with_tags_resolves_them_by_name(self):
        work = create_tag("work", "#3b82f6")
        errands = create_tag("Errands")
        payload = create_todo_payload(title="Pay bills", priority="high", tag_ids=[work["id"], errands["id"], work["id"]])
        res = client.post("/api/todos", json=payload)
        assert res.status_code == 201
        todo = res.json()
        assert_todo_shape(todo)
        assert todo["priority"] == "high"
        # Duplicates collapse, ordering is by tag name
        assert [t["name"] for t in todo["tags"]] == ["Errands", "work"]
        assert todo["tags"][1]["color"] == "#3b82f6"

    def test_create_todo_with_unknown_tag_is_rejected(self):
        res = client.post("/api/todos", json=create_todo_payload(tag_ids=[999]))
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationError"
        assert body["detail"][0]["field"] == "tagIds"
        # Nothing was written
        assert client.get("/api/todos").json()["total"] == 0

    def test_get_todo_and_not_found(self):
        # Create new todo
        res_create = client.post("/api/todos", json=create_todo_payload(title="Read book"))
        assert res_create.status_code == 201
        todo = res_create.json()
        tid = todo["id"]

        # Retrieve
        res_get = client.get(f"/api/todos/{tid}")
        assert res_get.status_code == 200
        fetched = res_get.json()
        assert fetched["id"] == tid
        assert fetched["title"] == "Read book"

        # Not found case
        res_404 = client.get("/api/todos/999999")
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Todo not found"

    def test_get_todo_non_integer_id(self):
        res = client.get("/api/todos/abc")
        assert res.status_code == 400
        assert res.json()["detail"][0]["field"] == "todo_id"

    def test_patch_partial_update(self):
        # Create
        res_create = client.post(
            "/api/todos", json=create_todo_payload(title="Partial", description="X", priority="low")
        )
        assert res_create.status_code == 201
        original = res_create.json()
        tid = original["id"]

        # Partial update: set completed true and change title
        patch_payload = {"title": "Partial Updated", "completed": True}
        res_patch = client.patch(f"/api/todos/{tid}", json=patch_payload)
        assert res_patch.status_code == 200
        patched = res_patch.json()
        assert patched["title"] == "Partial Updated"
        assert patched["completed"] is True
        # Untouched fields keep their values
        assert patched["description"] == "X"
        assert patched["priority"] == "low"
        assert patched["created_at"] == original["created_at"]
        assert parse_ts(patched["updated_at"]) > parse_ts(original["updated_at"])

    def test_put_uses_partial_semantics(self):
        res_create = client.post("/api/todos", json=create_todo_payload(title="Initial", description="A"))
        tid = res_create.json()["id"]

        res_put = client.put(f"/api/todos/{tid}", json={"priority": "high"})
        assert res_put.status_code == 200
        updated = res_put.json()
        assert updated["title"] == "Initial"
        assert updated["description"] == "A"
        assert updated["priority"] == "high"

        res_put_nf = client.put("/api/todos/424242", json={"priority": "high"})
        assert res_put_nf.status_code == 404
        assert res_put_nf.json()["detail"] == "Todo not found"

    def test_patch_clears_description_with_null(self):
        res_create = client.post("/api/todos", json=create_todo_payload(title="Clear me", description="Soon gone"))
        tid = res_create.json()["id"]

        res_patch = client.patch(f"/api/todos/{tid}", json={"description": None})
        assert res_patch.status_code == 200
        assert res_patch.json()["description"] is None

    def test_patch_replaces_tag_set(self):
        a = create_tag("alpha")
        b = create_tag("beta")
        c = create_tag("gamma")
        tid = client.post("/api/todos", json=create_todo_payload(tag_ids=[a["id"], b["id"]])).json()["id"]

        res = client.patch(f"/api/todos/{tid}", json={"tagIds": [c["id"]]})
        assert res.status_code == 200
        assert [t["name"] for t in res.json()["tags"]] == ["gamma"]

        res_clear = client.patch(f"/api/todos/{tid}", json={"tagIds": []})
        assert res_clear.status_code == 200
        assert res_clear.json()["tags"] == []

    def test_patch_empty_body_is_noop(self):
        created = client.post("/api/todos", json=create_todo_payload(title="Same")).json()
        res = client.patch(f"/api/todos/{created['id']}", json={})
        assert res.status_code == 200
        assert res.json() == created

    def test_delete_todo_and_idempotent_not_found(self):
        # Create
        res_create = client.post("/api/todos", json=create_todo_payload(title="To delete"))
        assert res_create.status_code == 201
        tid = res_create.json()["id"]

        # Delete
        res_del = client.delete(f"/api/todos/{tid}")
        assert res_del.status_code == 200
        assert res_del.json() == {"success": True, "message": "Todo deleted successfully"}

        # Further access is 404, and so is every repeated delete
        assert client.get(f"/api/todos/{tid}").status_code == 404
        for _ in range(2):
            res_del_again = client.delete(f"/api/todos/{tid}")
            assert res_del_again.status_code == 404
            assert res_del_again.json()["detail"] == "Todo not found"

    def test_delete_never_existing_todo(self):
        assert client.delete("/api/todos/31337").status_code == 404
        assert client.delete("/api/todos/31337").status_code == 404


class TestListFilters:
    def seed_todos(self):
        home = create_tag("home")
        work = create_tag("work")
        specs = [
            ("Buy groceries", "Milk and eggs", "high", False, [home["id"]]),
            ("Write report", "Quarterly numbers", "high", True, [work["id"]]),
            ("Clean garage", None, "low", True, [home["id"], work["id"]]),
            ("Call plumber", "Kitchen sink leaks", "medium", False, []),
        ]
        ids = []
        for title, desc, prio, done, tag_ids in specs:
            res = client.post(
                "/api/todos",
                json=create_todo_payload(title=title, description=desc, priority=prio, completed=done, tag_ids=tag_ids),
            )
            assert res.status_code == 201
            ids.append(res.json()["id"])
        return ids, home, work

    def test_list_without_filters_returns_all_newest_first(self):
        ids, _, _ = self.seed_todos()
        res = client.get("/api/todos")
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 4
        assert data["limit"] is None
        assert data["offset"] == 0
        assert [t["id"] for t in data["items"]] == list(reversed(ids))
        created_ts = [parse_ts(t["created_at"]) for t in data["items"]]
        assert created_ts == sorted(created_ts, reverse=True)

    def test_filter_priority_is_exact_subset(self):
        self.seed_todos()
        all_ids = {t["id"] for t in client.get("/api/todos").json()["items"]}
        res = client.get("/api/todos?priority=high")
        assert res.status_code == 200
        items = res.json()["items"]
        assert len(items) == 2
        assert all(item["priority"] == "high" for item in items)
        assert {item["id"] for item in items} <= all_ids

    def test_filter_completed_true_false(self):
        self.seed_todos()
        data_true = client.get("/api/todos?completed=true").json()
        assert {t["title"] for t in data_true["items"]} == {"Write report", "Clean garage"}
        data_false = client.get("/api/todos?completed=false").json()
        assert all(item["completed"] is False for item in data_false["items"])
        assert data_true["total"] + data_false["total"] == 4

    def test_filter_search_title_and_description_case_insensitive(self):
        self.seed_todos()
        res_title = client.get("/api/todos?search=GROCER")
        assert [t["title"] for t in res_title.json()["items"]] == ["Buy groceries"]
        res_desc = client.get("/api/todos?search=sink")
        assert [t["title"] for t in res_desc.json()["items"]] == ["Call plumber"]

    def test_filter_tag_ids_any_of(self):
        _, home, work = self.seed_todos()
        res_home = client.get(f"/api/todos?tagIds={home['id']}")
        assert {t["title"] for t in res_home.json()["items"]} == {"Buy groceries", "Clean garage"}
        res_any = client.get(f"/api/todos?tagIds={home['id']},{work['id']}")
        assert res_any.json()["total"] == 3

    def test_filters_combine_with_and(self):
        _, home, _ = self.seed_todos()
        res = client.get(f"/api/todos?tagIds={home['id']}&completed=true&priority=low")
        assert [t["title"] for t in res.json()["items"]] == ["Clean garage"]

    def test_limit_offset_slicing(self):
        ids, _, _ = self.seed_todos()
        data = client.get("/api/todos?limit=2&offset=1").json()
        assert data["total"] == 4
        assert data["limit"] == 2
        assert data["offset"] == 1
        assert [t["id"] for t in data["items"]] == list(reversed(ids))[1:3]

    def test_invalid_query_reports_every_field(self):
        res = client.get("/api/todos?priority=urgent&completed=maybe&tagIds=1,x")
        assert res.status_code == 400
        body = res.json()
        assert body["error"] == "ValidationError"
        fields = {err["field"] for err in body["detail"]}
        assert "priority" in fields
        assert "completed" in fields
        assert any(f.startswith("tagIds") for f in fields)


class TestValidationErrors:
    def test_create_validation_error_title_empty(self):
        # Whitespace-only title is rejected with our error format handler
        payload = {"title": "  ", "description": "x"}
        res = client.post("/api/todos", json=payload)
        assert res.status_code == 400
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)
        assert body["detail"][0]["field"] == "title"

    def test_create_reports_all_errors_at_once(self):
        payload = {"title": "", "priority": "urgent", "completed": "sometimes", "tagIds": [0]}
        res = client.post("/api/todos", json=payload)
        assert res.status_code == 400
        fields = {err["field"] for err in res.json()["detail"]}
        assert {"title", "priority", "completed"} <= fields
        assert any(f.startswith("tagIds") for f in fields)

    def test_create_missing_title(self):
        res = client.post("/api/todos", json={"description": "no title"})
        assert res.status_code == 400
        assert res.json()["detail"][0]["field"] == "title"

    def test_create_title_too_long(self):
        res = client.post("/api/todos", json={"title": "x" * 256})
        assert res.status_code == 400

    def test_patch_rejects_null_title(self):
        tid = client.post("/api/todos", json=create_todo_payload(title="Keep")).json()["id"]
        res_patch = client.patch(f"/api/todos/{tid}", json={"title": None, "priority": None})
        assert res_patch.status_code == 400
        fields = {err["field"] for err in res_patch.json()["detail"]}
        assert fields == {"title", "priority"}
        # The todo is untouched
        assert client.get(f"/api/todos/{tid}").json()["title"] == "Keep"

    def test_patch_validation_error_bad_priority(self):
        tid = client.post("/api/todos", json=create_todo_payload(title="Bad prio")).json()["id"]
        res_patch = client.patch(f"/api/todos/{tid}", json={"priority": "urgent"})
        assert res_patch.status_code == 400
        body = res_patch.json()
        assert body.get("error") == "ValidationError"
        assert body["detail"][0]["field"] == "priority"
