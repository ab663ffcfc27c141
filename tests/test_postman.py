import json
from pathlib import Path

import pytest

from api_scramble.generator.mock import MockGenerator
from api_scramble.generator.postman import SCHEMA_URL, PostmanCollectionGenerator
from api_scramble.scanner.service import ScannerService

SAMPLE_APP = Path(__file__).parent / "fixtures" / "sample_app"


@pytest.fixture(scope="module")
def collection():
    controllers = ScannerService().scan_controllers(SAMPLE_APP)
    generator = PostmanCollectionGenerator(mock_generator=MockGenerator(seed=7))
    return generator.generate_collection(controllers, collection_name="Sample", base_url_value="http://api.test")


def _folder(collection, name):
    return next(f for f in collection["item"] if f["name"] == name)


def _request(collection, folder, item_name):
    return next(i["request"] for i in _folder(collection, folder)["item"] if i["name"] == item_name)


class TestCollection:
    def test_info_and_variables(self, collection):
        assert collection["info"]["name"] == "Sample"
        assert collection["info"]["schema"] == SCHEMA_URL
        assert collection["variable"] == [{"key": "baseUrl", "value": "http://api.test", "type": "string"}]

    def test_one_folder_per_controller(self, collection):
        assert [f["name"] for f in collection["item"]] == ["main", "categories", "posts", "users"]

    def test_item_names(self, collection):
        names = [i["name"] for i in _folder(collection, "users")["item"]]
        assert names == [
            "GET list_users", "GET get_user", "POST create_user", "DELETE delete_user", "GET find_by_email",
        ]

    def test_serializable(self, collection):
        json.dumps(collection)


class TestRequests:
    def test_url_with_path_variable(self, collection):
        request = _request(collection, "users", "GET get_user")
        assert request["method"] == "GET"
        assert request["url"]["raw"] == "{{baseUrl}}/users/:id"
        assert request["url"]["host"] == ["{{baseUrl}}"]
        assert request["url"]["path"] == ["users", ":id"]
        assert request["url"]["variable"] == [{"key": "id", "value": ""}]

    def test_json_header(self, collection):
        request = _request(collection, "main", "GET health")
        assert request["header"] == [{"key": "Content-Type", "value": "application/json", "type": "text"}]
        assert "variable" not in request["url"]

    def test_object_body_is_mock_json(self, collection):
        request = _request(collection, "users", "POST create_user")
        assert request["body"]["mode"] == "raw"
        body = json.loads(request["body"]["raw"])
        assert {"name", "email"} <= set(body)
        assert "@" in body["email"]

    def test_embedded_body_is_keyed_by_param(self, collection):
        request = _request(collection, "categories", "PATCH rename_category")
        body = json.loads(request["body"]["raw"])
        assert list(body) == ["title"]
        assert isinstance(body["title"], str)

    def test_plain_scalar_body_is_skipped(self, tmp_path):
        (tmp_path / "notes.py").write_text(
            "from fastapi import APIRouter, Body\n"
            "router = APIRouter(prefix='/notes')\n\n"
            "@router.post('')\n"
            "def add_note(text: str = Body(...)) -> str:\n"
            "    return text\n"
        )
        collection = PostmanCollectionGenerator().generate_collection(ScannerService().scan_controllers(tmp_path))
        assert "body" not in _request(collection, "notes", "POST add_note")

    def test_several_bodies_are_keyed_by_param(self, tmp_path):
        (tmp_path / "items.py").write_text(
            "from fastapi import APIRouter\n"
            "from pydantic import BaseModel\n\n"
            "class Item(BaseModel):\n    sku: str\n\n"
            "class User(BaseModel):\n    login: str\n\n"
            "router = APIRouter(prefix='/items')\n\n"
            "@router.put('/{item_id}')\n"
            "def update_item(item_id: int, item: Item, user: User) -> Item:\n"
            "    return item\n"
        )
        collection = PostmanCollectionGenerator().generate_collection(ScannerService().scan_controllers(tmp_path))
        body = json.loads(_request(collection, "items", "PUT update_item")["body"]["raw"])
        assert set(body) == {"item", "user"}
        assert set(body["item"]) == {"sku"}
        assert set(body["user"]) == {"login"}

    def test_no_body_for_get(self, collection):
        assert "body" not in _request(collection, "users", "GET get_user")

    def test_flattened_query_from_object(self, collection):
        request = _request(collection, "users", "GET list_users")
        keys = [q["key"] for q in request["url"]["query"]]
        assert "limit" in keys
        assert set(keys) <= {"search", "page", "limit"}
        assert request["url"]["raw"].startswith("{{baseUrl}}/users?")
        assert all(isinstance(q["value"], str) for q in request["url"]["query"])

    def test_scalar_query(self, collection):
        request = _request(collection, "users", "GET find_by_email")
        query = {q["key"]: q["value"] for q in request["url"]["query"]}
        assert set(query) == {"email", "active"}
        assert "@" in query["email"]
        assert query["active"] in ("true", "false")


class TestBaseUrl:
    def test_custom_base_url(self):
        controllers = ScannerService().scan_controllers(SAMPLE_APP)
        collection = PostmanCollectionGenerator("http://localhost:9000").generate_collection(controllers)
        request = _request(collection, "posts", "GET get_post")
        assert request["url"]["raw"] == "http://localhost:9000/posts/:post_id"
        assert collection["info"]["name"] == "FastAPI API"

    def test_empty_controllers(self):
        collection = PostmanCollectionGenerator().generate_collection([])
        assert collection["item"] == []
        assert collection["variable"][0]["value"] == "http://localhost:8000"
