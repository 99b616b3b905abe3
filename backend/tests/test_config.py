import logging
import os

import pytest

from similar_scenes.core import config
from similar_scenes.core.constants import scene_id_from_path
from similar_scenes.core.logging_config import configure_logging


class TestEnvHelpers:
    @pytest.mark.parametrize("raw,expected", [("1", True), ("true", True), (" YES ", True), ("0", False), ("off", False)])
    def test_flag(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SIMILAR_SCENES_TEST_FLAG", raw)
        assert config._env_flag("SIMILAR_SCENES_TEST_FLAG") is expected

    def test_flag_default(self, monkeypatch):
        monkeypatch.delenv("SIMILAR_SCENES_TEST_FLAG", raising=False)
        assert config._env_flag("SIMILAR_SCENES_TEST_FLAG", default=True) is True

    @pytest.mark.parametrize("raw,expected", [("12.5", 12.5), ("", 30.0), ("soon", 30.0)])
    def test_float(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SIMILAR_SCENES_TIMEOUT", raw)
        assert config._env_float("SIMILAR_SCENES_TIMEOUT", 30.0) == expected

    @pytest.mark.parametrize("raw,expected", [("stashapi", "stashapi"), ("HTTP", "http"), ("grpc", "http")])
    def test_transport(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SIMILAR_SCENES_TRANSPORT", raw)
        assert config._env_transport() == expected


class TestConfigEnv:
    def test_loads_named_file_without_overriding(self, monkeypatch, tmp_path):
        env_file = tmp_path / "stash.env"
        env_file.write_text("SIMILAR_SCENES_TEST_URL=http://from-file:9999\nSIMILAR_SCENES_TEST_KEY=file-key\n")
        monkeypatch.setenv("SIMILAR_SCENES_CONFIG_FILE", str(env_file))
        monkeypatch.setenv("SIMILAR_SCENES_TEST_URL", "placeholder")
        monkeypatch.delenv("SIMILAR_SCENES_TEST_URL")
        monkeypatch.setenv("SIMILAR_SCENES_TEST_KEY", "from-shell")

        assert config.load_config_env() == env_file
        assert os.environ["SIMILAR_SCENES_TEST_URL"] == "http://from-file:9999"
        assert os.environ["SIMILAR_SCENES_TEST_KEY"] == "from-shell"

    def test_missing_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIMILAR_SCENES_CONFIG_FILE", str(tmp_path / "absent.env"))
        assert config.load_config_env() is None

    def test_working_directory_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SIMILAR_SCENES_CONFIG_FILE", raising=False)
        monkeypatch.chdir(tmp_path)
        assert config.load_config_env() is None
        (tmp_path / "config.env").write_text("SIMILAR_SCENES_TEST_FLAG_FILE=1\n")
        monkeypatch.setenv("SIMILAR_SCENES_TEST_FLAG_FILE", "placeholder")
        monkeypatch.delenv("SIMILAR_SCENES_TEST_FLAG_FILE")
        assert config.load_config_env().resolve() == (tmp_path / "config.env").resolve()


def test_settings_accept_overrides():
    cfg = config.Settings(stash_url="http://stash:9999", request_timeout=5)
    assert cfg.stash_url == "http://stash:9999"
    assert cfg.request_timeout == 5.0
    assert cfg.app_name == "Similar Scenes"


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        level, handlers = root.level, list(root.handlers)
        yield
        root.setLevel(level)
        root.handlers[:] = handlers

    def test_sets_level_and_quiets_http_clients(self):
        logging.getLogger("httpx").setLevel(logging.NOTSET)
        configure_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_handler_added_once(self):
        configure_logging("INFO")
        configure_logging("INFO")
        streams = [h for h in logging.getLogger().handlers if isinstance(h, logging.StreamHandler)]
        assert len(streams) >= 1
        assert len(streams) == len({id(h) for h in streams})


@pytest.mark.parametrize(
    "path,expected",
    [("/scenes/42", "42"), ("/scenes/42/markers", "42"), ("/scenes/new", None), ("/images/3", None), ("/", None)],
)
def test_scene_id_from_path(path, expected):
    assert scene_id_from_path(path) == expected
