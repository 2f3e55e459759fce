"""Loading and validating jellofin-server.yaml"""

from pathlib import Path

import pytest

from jellofin.config import ConfigError, ServerConfig, load_config

CONFIG = """
Listen:
  Port: 9096
  IPACL: 127.0.0.1/32, 10.0.0.0/8
DBDir: /var/lib/jellofin
Collections:
  - ID: "1"
    Name: Movies
    Type: movies
    Directory: /media/movies
  - Name: Shows
    type: shows
    directory: /media/shows
    HLSServer: http://hls.local
Jellyfin:
  ServerID: abc
  AutoRegister: true
"""


def write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "jellofin-server.yaml"
    path.write_text(text)
    return str(path)


def test_load_config_keys_are_case_insensitive(tmp_path):
    config = load_config(write(tmp_path, CONFIG))
    assert config.listen.port == 9096
    assert config.listen.ipacl == ["127.0.0.1/32", "10.0.0.0/8"]
    assert config.collections[0].id == "1"
    assert config.collections[1].hlsserver == "http://hls.local"
    assert config.jellyfin.autoregister
    assert config.server_id == "abc"
    assert config.database_path == Path("/var/lib/jellofin/jellofin.db")


def test_defaults():
    config = ServerConfig()
    assert config.listen.port == 8096
    assert config.logfile == "stdout"
    assert not config.tls_enabled
    assert config.database_path == Path("jellofin.db")
    assert config.server_id


def test_unknown_collection_type(tmp_path):
    text = "collections:\n  - name: Music\n    type: music\n    directory: /media/music\n"
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, text))


def test_missing_or_broken_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yaml"))
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, "listen: [unclosed"))
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, "- just\n- a list\n"))
