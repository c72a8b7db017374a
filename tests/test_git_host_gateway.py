"""
Git host gateway tests with a mocked requests session.
"""

from unittest.mock import MagicMock

import pytest
import requests

from app.integrations.git_host_gateway import GitHostGateway


def _response(ok=True, status=200, body=None):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status
    resp.json.return_value = body if body is not None else {}
    return resp


def _gateway(provider):
    session = MagicMock()
    return GitHostGateway(provider, session=session, settle_seconds=0), session


FILES = {"README.md": "# Shop\n", "src/index.js": "console.log(1);\n"}


class TestGitHub:
    def test_push_creates_repo_and_uploads_files(self):
        gw, session = _gateway("github")
        session.post.return_value = _response(status=201, body={
            "owner": {"login": "ana"}, "html_url": "https://github.com/ana/shop",
        })
        session.get.return_value = _response(body={"sha": "abc123"})
        session.put.return_value = _response(status=201)

        result = gw.push("ghp_token", "shop", FILES, private=True, description="Storefront")

        assert result.ok
        assert result.url == "https://github.com/ana/shop"
        create_kwargs = session.post.call_args.kwargs
        assert create_kwargs["json"]["private"] is True
        assert create_kwargs["json"]["auto_init"] is True
        assert create_kwargs["headers"]["Authorization"] == "Bearer ghp_token"
        assert session.put.call_count == 2
        readme_put = session.put.call_args_list[0]
        assert readme_put.args[0].endswith("/repos/ana/shop/contents/README.md")
        assert readme_put.kwargs["json"]["sha"] == "abc123"

    def test_repo_creation_failure(self):
        gw, session = _gateway("github")
        session.post.return_value = _response(ok=False, status=422, body={"message": "name already exists"})

        result = gw.push("t", "shop", FILES)

        assert not result.ok
        assert result.status_code == 422
        assert result.error == "name already exists"
        session.put.assert_not_called()

    def test_partial_upload_still_succeeds(self):
        gw, session = _gateway("github")
        session.post.return_value = _response(status=201, body={"owner": {"login": "ana"}, "html_url": "u"})
        session.get.return_value = _response(ok=False, status=404)
        session.put.side_effect = [_response(status=201), _response(ok=False, status=409, body={"message": "conflict"})]

        result = gw.push("t", "shop", FILES)

        assert result.ok
        assert result.failed_files == ["src/index.js: conflict"]

    def test_every_upload_failing_fails_the_push(self):
        gw, session = _gateway("github")
        session.post.return_value = _response(status=201, body={"owner": {"login": "ana"}, "html_url": "u"})
        session.get.return_value = _response(ok=False, status=404)
        session.put.return_value = _response(ok=False, status=500, body={"message": "boom"})

        result = gw.push("t", "shop", FILES)

        assert not result.ok
        assert result.error.startswith("Failed to upload files")

    def test_network_error_captured(self):
        gw, session = _gateway("github")
        session.post.side_effect = requests.ConnectionError("refused")

        result = gw.push("t", "shop", FILES)

        assert not result.ok
        assert "refused" in result.error

    def test_timeout_captured(self):
        gw, session = _gateway("github")
        session.post.side_effect = requests.Timeout()

        result = gw.push("t", "shop", FILES)

        assert not result.ok
        assert "timed out" in result.error


class TestGitLab:
    def test_push_commits_in_batches(self):
        gw, session = _gateway("gitlab")
        files = {f"src/file{i}.js": "x" for i in range(25)}
        session.post.side_effect = [
            _response(status=201, body={"id": 7, "web_url": "https://gitlab.com/ana/shop"}),
            _response(status=201),
            _response(status=201),
        ]

        result = gw.push("glpat", "shop", files)

        assert result.ok
        assert result.url == "https://gitlab.com/ana/shop"
        create, first_batch, second_batch = session.post.call_args_list
        assert create.kwargs["headers"]["PRIVATE-TOKEN"] == "glpat"
        assert create.kwargs["json"]["visibility"] == "public"
        assert first_batch.args[0].endswith("/projects/7/repository/commits")
        assert len(first_batch.kwargs["json"]["actions"]) == 20
        assert len(second_batch.kwargs["json"]["actions"]) == 5

    def test_readme_is_updated_not_created(self):
        gw, session = _gateway("gitlab")
        session.post.side_effect = [_response(status=201, body={"id": 1, "web_url": "u"}), _response(status=201)]

        gw.push("t", "shop", FILES)

        actions = session.post.call_args_list[1].kwargs["json"]["actions"]
        assert {a["file_path"]: a["action"] for a in actions} == {"README.md": "update", "src/index.js": "create"}

    def test_error_dict_message_flattened(self):
        gw, session = _gateway("gitlab")
        session.post.return_value = _response(ok=False, status=400, body={"message": {"name": ["has already been taken"]}})

        result = gw.push("t", "shop", FILES)

        assert result.error == "name: ['has already been taken']"


def test_unknown_provider():
    with pytest.raises(ValueError):
        GitHostGateway("bitbucket", session=MagicMock())


def test_result_to_dict():
    gw, session = _gateway("github")
    session.post.return_value = _response(ok=False, status=401, body={"message": "Bad credentials"})
    data = gw.push("t", "shop", FILES).to_dict()
    assert data["ok"] is False
    assert data["status_code"] == 401
    assert data["failed_files"] == []
    assert isinstance(data["duration_ms"], int)
