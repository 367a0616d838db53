import pytest

from conplicity.errors import ConplicityError
from conplicity.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text(
        "target_url: s3://bucket\nfull_if_older_than: 7D\nvolumes:\n  data: /srv/data\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["target_url"] == "s3://bucket"
    assert loaded["full_if_older_than"] == "7D"
    assert loaded["volumes"] == {"data": "/srv/data"}


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ConplicityError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_root(tmp_path):
    config_file = tmp_path / ".conplicity.yml"
    config_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConplicityError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_returns_empty_without_path():
    assert ConfigLoader().load(None) == {}
