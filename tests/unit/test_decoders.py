"""FileDecoder, StoreDecoder and the row → model mapping of the template store."""

from __future__ import annotations

import json

import pytest

from stepwise.errors import (
    DecodeError,
    InvalidIdentityError,
    TemplateNotFoundError,
    UnsupportedFormatError,
)
from stepwise.models.template import Template
from stepwise.models.version import Identity, Version

YAML_TEMPLATE = """
author: acme
namespace: login
version: v1.2.0
description: log in and fetch a token
env:
  base: https://api.example.com
steps:
  - method: POST
    url: "{{ base() }}/login"
    header:
      Content-Type: application/json
    set:
      token: "{{ response | json_get('token') }}"
    out:
      token: "{{ token() }}"
"""


class TestFileDecoder:

    @pytest.mark.asyncio
    async def test_yaml(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "login.yaml").write_text(YAML_TEMPLATE)
        target = Template()
        await FileDecoder(tmp_path).load("login.yaml", target)

        assert str(target) == "acme/login@v1.2.0: log in and fetch a token"
        assert target.env == {"base": "https://api.example.com"}
        step = target.steps[0]
        assert step.header == {"Content-Type": ["application/json"]}
        assert step.set_ == {"token": "{{ response | json_get('token') }}"}

    @pytest.mark.asyncio
    async def test_json_absolute_path(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        path = tmp_path / "t.json"
        path.write_text(json.dumps({"author": "a", "namespace": "n", "version": "v0.0.1"}))
        target = Template()
        await FileDecoder("/nonexistent").load(str(path), target)
        assert target.version == Version(0, 0, 1)

    @pytest.mark.asyncio
    async def test_fields_absent_from_source_are_kept(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "t.yml").write_text("author: a\nsteps: []\n")
        target = Template(namespace="keep", env={"k": 1})
        await FileDecoder(tmp_path).load("t.yml", target)
        assert target.author == "a"
        assert target.namespace == "keep"
        assert target.env == {"k": 1}

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "t.toml").write_text("")
        with pytest.raises(UnsupportedFormatError, match=".toml"):
            await FileDecoder(tmp_path).load("t.toml", Template())

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        with pytest.raises(TemplateNotFoundError):
            await FileDecoder(tmp_path).load("nope.json", Template())

    @pytest.mark.asyncio
    async def test_unreadable_path(self, tmp_path):
        """A directory named like a template is a decode failure, not a raw OSError."""
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "dir.yaml").mkdir()
        with pytest.raises(DecodeError, match="dir.yaml"):
            await FileDecoder(tmp_path).load("dir.yaml", Template())

    @pytest.mark.asyncio
    async def test_malformed_json(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "bad.json").write_text("{not json")
        with pytest.raises(DecodeError):
            await FileDecoder(tmp_path).load("bad.json", Template())

    @pytest.mark.asyncio
    async def test_numeric_version_rejected(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "bad.yaml").write_text("version: 1.2\n")
        with pytest.raises(DecodeError, match="version"):
            await FileDecoder(tmp_path).load("bad.yaml", Template())

    @pytest.mark.asyncio
    async def test_non_mapping_document(self, tmp_path):
        from stepwise.tools.decoder import FileDecoder

        (tmp_path / "list.yaml").write_text("- a\n- b\n")
        with pytest.raises(DecodeError, match="mapping"):
            await FileDecoder(tmp_path).load("list.yaml", Template())


class _FakeStore:
    def __init__(self, templates: dict[Identity, Template]) -> None:
        self.templates = templates
        self.lookups: list[Identity] = []

    async def fetch(self, identity: Identity) -> Template | None:
        self.lookups.append(identity)
        return self.templates.get(identity)


class TestStoreDecoder:

    @pytest.mark.asyncio
    async def test_load(self):
        from stepwise.tools.template_store import StoreDecoder

        stored = Template(author="acme", namespace="login", version=Version(1, 0, 0), env={"a": 1})
        store = _FakeStore({stored.identity: stored})
        target = Template()
        await StoreDecoder(store).load("acme/login@v1.0.0", target)

        assert store.lookups == [Identity("acme", "login", Version(1, 0, 0))]
        assert target.env == {"a": 1}
        assert str(target.identity) == "acme/login@v1.0.0"

    @pytest.mark.asyncio
    async def test_not_found(self):
        from stepwise.tools.template_store import StoreDecoder

        with pytest.raises(TemplateNotFoundError, match="acme/x@v1.0.0"):
            await StoreDecoder(_FakeStore({})).load("acme/x@v1.0.0", Template())

    @pytest.mark.asyncio
    async def test_invalid_identity(self):
        from stepwise.tools.template_store import StoreDecoder

        with pytest.raises(InvalidIdentityError):
            await StoreDecoder(_FakeStore({})).load("no-separators", Template())


class TestStoreRows:

    def test_row_to_template(self):
        from stepwise.tools.template_store import row_to_template

        row = {
            "id": 1,
            "description": "",
            "author": "acme",
            "namespace": "login",
            "major": 1,
            "minor": 2,
            "patch": 3,
            "env": '{"base": "http://x"}',
        }
        step_rows = [
            {
                "url": "http://x/login",
                "method": "POST",
                "header": '{"Accept": ["application/json"]}',
                "set_env": '{"a": "1", "set": {"b": "2"}}',
                "out_env": None,
                "env": "{}",
            },
            {"uses": "acme/profile@v1.0.0", "namespace": "profile", "major": 0, "env": {"k": "v"}},
        ]
        t = row_to_template(row, step_rows)

        assert str(t) == "acme/login@v1.2.3"
        assert t.env == {"base": "http://x"}
        assert t.steps[0].header == {"Accept": ["application/json"]}
        assert t.steps[0].set_chain() == [{"a": "1"}, {"b": "2"}]
        assert t.steps[0].out is None
        assert t.steps[1].uses == "acme/profile@v1.0.0"
        assert t.steps[1].env == {"k": "v"}

    def test_redacted_dsn(self):
        from stepwise.tools.template_store import TemplateStore

        store = TemplateStore("postgresql://user:secret@db:5432/stepwise")
        assert "secret" not in store._redacted_dsn()
