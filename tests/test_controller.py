"""
Test: HTTP controller
=====================

End-to-end requests through the FastAPI application built by create_app.
Settings use a page size of 2 and add an X-Api-Version header.
"""

from fastapi.testclient import TestClient

from jsonapi_rql.api.main import create_app
from jsonapi_rql.db.session import get_async_session

from tests.models import make_definitions

JSONAPI = "application/vnd.api+json"


def ids_of(response):
    return [item["id"] for item in response.json()["data"]]


def post_json(client, url, document, method="POST", content_type=JSONAPI):
    return client.request(method, url, json=document, headers={"Content-Type": content_type})


class TestIndex:
    """GET /{type}."""

    def test_first_page(self, client):
        response = client.get("/posts")
        assert response.status_code == 200
        assert response.headers["content-type"] == JSONAPI
        assert response.headers["X-Api-Version"] == "1"
        body = response.json()
        assert body["jsonapi"] == {"version": "1.0"}
        assert body["meta"] == {"total": 4}
        assert ids_of(response) == ["1", "2"]
        assert body["links"]["prev"] is None
        assert "page%5Bnumber%5D=2" in body["links"]["next"]

    def test_page_number(self, client):
        response = client.get("/posts", params={"page[number]": "2"})
        assert ids_of(response) == ["3", "4"]
        assert response.json()["links"]["next"] is None

    def test_rql_filter(self, client):
        response = client.get("/posts", params={"filter": "eq(status,published)"})
        assert ids_of(response) == ["1", "3"]
        assert response.json()["meta"] == {"total": 2}

    def test_field_filter(self, client):
        assert ids_of(client.get("/posts", params={"filter[status]": "draft"})) == ["2", "4"]

    def test_like_filter_with_encoded_percent(self, client):
        assert ids_of(client.get("/posts", params={"filter": "like(title,*%25)"})) == ["2"]

    def test_sort(self, client):
        response = client.get("/posts", params={"sort": "-rating", "page[size]": "10"})
        assert ids_of(response) == ["3", "1", "2", "4"]

    def test_unknown_sort_field(self, client):
        response = client.get("/posts", params={"sort": "secret"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["source"] == {"parameter": "sort"}

    def test_unknown_filter_field(self, client):
        response = client.get("/posts", params={"filter": "eq(secret,1)"})
        assert response.status_code == 400
        error = response.json()["errors"][0]
        assert error["status"] == "400"
        assert error["source"] == {"parameter": "filter"}

    def test_malformed_filter(self, client):
        response = client.get("/posts", params={"filter": "eq(status"})
        assert response.status_code == 400
        assert "offset" in response.json()["errors"][0]["detail"]

    def test_include(self, client):
        response = client.get("/posts", params={"filter[author_id]": "1", "include": "author"})
        body = response.json()
        assert ids_of(response) == ["1", "2"]
        assert [(item["type"], item["id"]) for item in body["included"]] == [("people", "1")]

    def test_unknown_include(self, client):
        assert client.get("/posts", params={"include": "editor"}).status_code == 400

    def test_sparse_fieldset(self, client):
        response = client.get("/posts", params={"fields[posts]": "title"})
        for item in response.json()["data"]:
            assert list(item["attributes"]) == ["title"]
            assert "relationships" not in item

    def test_rql_select(self, client):
        response = client.get("/posts", params={"filter": "select(title,status)"})
        assert list(response.json()["data"][0]["attributes"]) == ["title", "status"]

    def test_unknown_field_in_fieldset(self, client):
        assert client.get("/posts", params={"fields[posts]": "secret"}).status_code == 400


class TestShow:
    """GET /{type}/{id} and related routes."""

    def test_show(self, client):
        response = client.get("/posts/1")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["attributes"]["published_on"] == "2024-01-10"
        assert data["links"]["self"] == "http://testserver/posts/1"
        assert data["relationships"]["author"] == {
            "data": {"type": "people", "id": "1"},
            "links": {"related": "http://testserver/posts/1/author"},
        }

    def test_show_with_include(self, client):
        response = client.get("/posts/1", params={"include": "comments"})
        assert [item["id"] for item in response.json()["included"]] == ["1", "2"]

    def test_missing(self, client):
        response = client.get("/posts/999")
        assert response.status_code == 404
        assert response.headers["content-type"] == JSONAPI
        assert response.json()["errors"][0]["status"] == "404"

    def test_non_numeric_id(self, client):
        assert client.get("/posts/abc").status_code == 404

    def test_create_and_edit_forms_do_not_exist(self, client):
        assert client.get("/posts/create").status_code == 404
        assert client.get("/posts/1/edit").status_code == 404

    def test_related_to_one(self, client):
        response = client.get("/posts/1/author")
        assert response.json()["data"]["type"] == "people"
        assert response.json()["data"]["id"] == "1"

    def test_related_to_many(self, client):
        response = client.get("/posts/1/comments")
        assert ids_of(response) == ["1", "2"]
        assert response.json()["meta"] == {"total": 2}

    def test_related_empty(self, client):
        assert client.get("/posts/4/author").json()["data"] is None

    def test_unknown_relationship(self, client):
        assert client.get("/posts/1/editor").status_code == 404


class TestStore:
    """POST /{type}."""

    def test_create(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "Dave", "email": "dave@example.com"}}}
        response = post_json(client, "/people", document)
        assert response.status_code == 201
        assert response.headers["Location"] == "http://testserver/people/4"
        data = response.json()["data"]
        assert data["id"] == "4"
        assert data["attributes"] == {"name": "Dave", "email": "dave@example.com", "age": None}
        assert client.get("/people/4").status_code == 200

    def test_create_with_relationship(self, client):
        document = {
            "data": {
                "type": "posts",
                "attributes": {"title": "Linked"},
                "relationships": {"author": {"data": {"type": "people", "id": "2"}}},
            }
        }
        response = post_json(client, "/posts", document)
        assert response.status_code == 201
        assert response.json()["data"]["relationships"]["author"]["data"] == {"type": "people", "id": "2"}

    def test_client_generated_id(self, client):
        document = {"data": {"type": "people", "id": "10", "attributes": {"name": "Eve", "email": "eve@example.com"}}}
        response = post_json(client, "/people", document)
        assert response.status_code == 201
        assert response.json()["data"]["id"] == "10"

    def test_existing_id_conflicts(self, client):
        document = {"data": {"type": "people", "id": "1", "attributes": {"name": "X", "email": "x@example.com"}}}
        assert post_json(client, "/people", document).status_code == 409

    def test_plain_json_is_accepted(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "Fay", "email": "fay@example.com"}}}
        assert post_json(client, "/people", document, content_type="application/json").status_code == 201

    def test_unsupported_media_type(self, client):
        response = client.post("/people", content=b"{}", headers={"Content-Type": "text/plain"})
        assert response.status_code == 415

    def test_media_type_parameters_are_rejected(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "G", "email": "g@example.com"}}}
        response = post_json(client, "/people", document, content_type=JSONAPI + "; ext=bulk")
        assert response.status_code == 415

    def test_invalid_json(self, client):
        response = client.post("/people", content=b"{not json", headers={"Content-Type": JSONAPI})
        assert response.status_code == 400

    def test_missing_data(self, client):
        response = post_json(client, "/people", {"meta": {}})
        assert response.status_code == 400
        assert response.json()["errors"][0]["source"]["pointer"] == "/data"

    def test_type_mismatch(self, client):
        response = post_json(client, "/people", {"data": {"type": "posts", "attributes": {}}})
        assert response.status_code == 409
        assert response.json()["errors"][0]["source"] == {"pointer": "/data/type"}

    def test_unknown_attribute(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "H", "email": "h@example.com", "role": "x"}}}
        response = post_json(client, "/people", document)
        assert response.status_code == 422
        assert response.json()["errors"][0]["source"] == {"pointer": "/data/attributes/role"}

    def test_to_many_relationship_cannot_be_set(self, client):
        document = {
            "data": {
                "type": "posts",
                "attributes": {"title": "T"},
                "relationships": {"comments": {"data": [{"type": "comments", "id": "1"}]}},
            }
        }
        assert post_json(client, "/posts", document).status_code == 422

    def test_unique_violation_conflicts(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "A2", "email": "alice@example.com"}}}
        response = post_json(client, "/people", document)
        assert response.status_code == 409
        # the session recovers for later requests
        assert client.get("/people/1").status_code == 200

    def test_missing_required_column(self, client):
        document = {"data": {"type": "people", "attributes": {"name": "NoEmail"}}}
        assert post_json(client, "/people", document).status_code == 409


class TestUpdate:
    """PATCH and PUT /{type}/{id}."""

    def test_patch(self, client):
        document = {"data": {"type": "people", "id": "1", "attributes": {"age": 31}}}
        response = post_json(client, "/people/1", document, method="PATCH")
        assert response.status_code == 200
        attributes = response.json()["data"]["attributes"]
        assert attributes["age"] == 31
        assert attributes["name"] == "Alice"

    def test_patch_relationship(self, client):
        document = {"data": {"type": "posts", "id": "4", "relationships": {"author": {"data": {"type": "people", "id": "3"}}}}}
        response = post_json(client, "/posts/4", document, method="PATCH")
        assert response.json()["data"]["relationships"]["author"]["data"] == {"type": "people", "id": "3"}

    def test_patch_clears_relationship(self, client):
        document = {"data": {"type": "posts", "id": "1", "relationships": {"author": {"data": None}}}}
        response = post_json(client, "/posts/1", document, method="PATCH")
        assert response.json()["data"]["relationships"]["author"]["data"] is None

    def test_put_requires_every_attribute(self, client):
        document = {"data": {"type": "people", "id": "1", "attributes": {"age": 31}}}
        response = post_json(client, "/people/1", document, method="PUT")
        assert response.status_code == 422

    def test_put(self, client):
        attributes = {"name": "Alicia", "email": "alicia@example.com", "age": None}
        document = {"data": {"type": "people", "id": "1", "attributes": attributes}}
        response = post_json(client, "/people/1", document, method="PUT")
        assert response.status_code == 200
        assert response.json()["data"]["attributes"] == attributes

    def test_id_mismatch(self, client):
        document = {"data": {"type": "people", "id": "2", "attributes": {"age": 1}}}
        assert post_json(client, "/people/1", document, method="PATCH").status_code == 409

    def test_missing(self, client):
        document = {"data": {"type": "people", "attributes": {"age": 1}}}
        assert post_json(client, "/people/999", document, method="PATCH").status_code == 404

    def test_invalid_date_value(self, client):
        document = {"data": {"type": "posts", "id": "1", "attributes": {"published_on": "someday"}}}
        assert post_json(client, "/posts/1", document, method="PATCH").status_code == 422


class TestDestroy:
    """DELETE /{type}/{id}."""

    def test_delete(self, client):
        response = client.delete("/comments/3")
        assert response.status_code == 204
        assert response.content == b""
        assert client.get("/comments/3").status_code == 404

    def test_delete_missing(self, client):
        assert client.delete("/people/999").status_code == 404

    def test_delete_with_dependents_conflicts(self, client):
        assert client.delete("/posts/1").status_code == 409
        assert client.get("/posts/1").status_code == 200


class TestErrorsAndContext:
    """Error documents, correlation ids and routing errors."""

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/posts/999", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.json()["meta"] == {"correlation_id": "abc-123"}

    def test_correlation_id_is_generated(self, client):
        assert client.get("/posts").headers["X-Correlation-ID"]

    def test_error_responses_carry_extra_headers(self, client):
        for response in (
            client.get("/posts/999"),
            client.get("/posts", params={"filter": "eq(nope,1)"}),
            post_json(client, "/posts", {"data": {"type": "people"}}),
            post_json(client, "/posts", {}, content_type="text/plain"),
            client.get("/nothing"),
        ):
            assert response.status_code >= 400
            assert response.headers["X-Api-Version"] == "1"

    def test_unknown_route(self, client):
        response = client.get("/nothing")
        assert response.status_code == 404
        assert response.json()["errors"][0]["status"] == "404"

    def test_method_not_allowed(self, client):
        assert client.delete("/posts").status_code == 405

    def test_unhandled_errors_become_500(self, settings):
        app = create_app(make_definitions(), settings=settings)

        async def broken_session():
            raise RuntimeError("database is down")
            yield  # pragma: no cover

        app.dependency_overrides[get_async_session] = broken_session
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/posts")
        assert response.status_code == 500
        error = response.json()["errors"][0]
        assert error["code"] == "internal_error"
        assert response.headers["X-Api-Version"] == "1"
        assert "database" not in error["detail"]

    def test_routes_are_named(self, app):
        names = {route.name for route in app.routes}
        for action in ("index", "show", "store", "update", "destroy", "create", "edit", "related"):
            assert f"posts.{action}" in names
