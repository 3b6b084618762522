import os
import textwrap

import pytest
import yaml

from feeds_to_pocket import config as config_module
from feeds_to_pocket.config import (
    config_to_dict,
    create_empty_config,
    load_config,
    save_config,
)
from feeds_to_pocket.errors import ConfigIOError, MultipleErrors
from feeds_to_pocket.models import Configuration, FeedConfiguration


def test_load_config_parses_all_fields(tmp_path):
    path = tmp_path / "feeds.yaml"
    path.write_text(
        textwrap.dedent(
            """\
            consumer_key: 1234-abcd
            access_token: token
            feeds:
            - url: https://example.com/feed.xml
              tags: news,tech
              processed_entries:
              - https://example.com/1
              - https://example.com/2
              last_modified: Mon, 01 Jan 2024 00:00:00 GMT
              last_e_tag: '"abc"'
            - url: https://example.org/atom.xml
            """
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.consumer_key == "1234-abcd"
    assert config.access_token == "token"
    assert config.feeds[0] == FeedConfiguration(
        url="https://example.com/feed.xml",
        tags="news,tech",
        processed_entries=["https://example.com/1", "https://example.com/2"],
        last_modified="Mon, 01 Jan 2024 00:00:00 GMT",
        last_e_tag='"abc"',
    )
    assert config.feeds[1] == FeedConfiguration(url="https://example.org/atom.xml")


def test_load_config_accepts_empty_document(tmp_path):
    path = tmp_path / "feeds.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == Configuration()


def test_load_config_missing_file_raises_config_io_error(tmp_path):
    with pytest.raises(ConfigIOError) as excinfo:
        load_config(tmp_path / "missing.yaml")

    assert "failed to open file" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, OSError)


@pytest.mark.parametrize(
    "content",
    [
        "feeds: [",
        "- just\n- a list\n",
        "feeds:\n- tags: no-url\n",
        "feeds:\n- url: https://example.com\n  processed_entries: nope\n",
        "consumer_key: [1, 2]\n",
    ],
)
def test_load_config_rejects_invalid_documents(tmp_path, content):
    path = tmp_path / "feeds.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigIOError) as excinfo:
        load_config(path)

    assert str(excinfo.value) == f"failed to load configuration from {path}"


def test_config_to_dict_omits_defaults():
    config = Configuration(
        consumer_key="key",
        feeds=[FeedConfiguration(url="https://example.com/feed")],
    )

    assert config_to_dict(config) == {
        "consumer_key": "key",
        "feeds": [{"url": "https://example.com/feed"}],
    }
    assert config_to_dict(Configuration()) == {}


def test_save_config_replaces_file_and_cleans_up(tmp_path):
    path = tmp_path / "feeds.yaml"
    path.write_text("consumer_key: old\n", encoding="utf-8")
    os.chmod(path, 0o600)

    config = Configuration(
        consumer_key="new",
        access_token="token",
        feeds=[
            FeedConfiguration(
                url="https://example.com/feed",
                tags="a,b",
                processed_entries=["https://example.com/1"],
                last_e_tag='W/"1"',
            )
        ],
    )
    save_config(config, path)

    assert load_config(path) == config
    assert list(yaml.safe_load(path.read_text(encoding="utf-8"))) == [
        "consumer_key",
        "access_token",
        "feeds",
    ]
    assert not (tmp_path / "feeds.yaml.new").exists()
    assert not (tmp_path / "feeds.yaml.old").exists()
    assert os.stat(path).st_mode & 0o777 == 0o600


def test_save_config_rolls_back_when_final_rename_fails(tmp_path, monkeypatch):
    path = tmp_path / "feeds.yaml"
    path.write_text("consumer_key: original\n", encoding="utf-8")
    real_rename = os.rename

    def flaky_rename(source, target):
        if source.endswith(".new"):
            raise PermissionError("rename denied")
        real_rename(source, target)

    monkeypatch.setattr(config_module.os, "rename", flaky_rename)

    with pytest.raises(ConfigIOError) as excinfo:
        save_config(Configuration(consumer_key="changed"), path)

    assert "failed to rename" in str(excinfo.value)
    assert load_config(path).consumer_key == "original"
    assert not (tmp_path / "feeds.yaml.old").exists()


def test_save_config_reports_both_errors_when_rollback_fails(tmp_path, monkeypatch):
    path = tmp_path / "feeds.yaml"
    path.write_text("consumer_key: original\n", encoding="utf-8")
    real_rename = os.rename

    def flaky_rename(source, target):
        if source == str(path):
            real_rename(source, target)
            return
        raise PermissionError("rename denied")

    monkeypatch.setattr(config_module.os, "rename", flaky_rename)

    with pytest.raises(ConfigIOError) as excinfo:
        save_config(Configuration(consumer_key="changed"), path)

    assert str(excinfo.value) == "failed to save configuration"
    cause = excinfo.value.__cause__
    assert isinstance(cause, MultipleErrors)
    assert len(cause.errors) == 2


def test_create_empty_config_only_when_missing(tmp_path):
    path = tmp_path / "feeds.yaml"

    assert create_empty_config(path) is True
    assert load_config(path) == Configuration()

    path.write_text("consumer_key: keep\n", encoding="utf-8")
    assert create_empty_config(path) is False
    assert load_config(path).consumer_key == "keep"
