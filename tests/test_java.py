import asyncio

import pytest

from packwrap import java as java_module
from packwrap.exceptions import ConfigError, JavaNotFoundError
from packwrap.java import (
    JavaInstallation,
    JavaManager,
    get_required_java_version,
    get_strict_java_version,
    parse_java_major_version,
    parse_java_version_string,
    parse_minecraft_version,
)


@pytest.mark.parametrize(
    "mc_version, required, strict",
    [
        ("1.7.10", 8, 8),
        ("1.12.2", 8, 8),
        ("1.16.5", 17, 8),
        ("1.17", 17, 17),
        ("1.20.1", 17, 17),
        ("1.20.4", 17, 17),
        ("1.20.5", 21, 21),
        ("1.21", 21, 21),
    ],
)
def test_java_version_mapping(mc_version, required, strict):
    assert get_required_java_version(mc_version) == required
    assert get_strict_java_version(mc_version) == strict


def test_parse_minecraft_version():
    assert parse_minecraft_version("1.20.5-pre1") == (1, 20, 5)
    assert parse_minecraft_version("1.21") == (1, 21, 0)
    assert parse_minecraft_version("snapshot") == (0, 0, 0)


@pytest.mark.parametrize(
    "version, major",
    [("1.8.0_392", 8), ("17.0.9", 17), ("21", 21), ("21-ea", 21), ("", 0)],
)
def test_parse_java_major_version(version, major):
    assert parse_java_major_version(version) == major


def test_parse_java_version_string():
    output = (
        'openjdk version "17.0.9" 2023-10-17\n'
        "OpenJDK Runtime Environment Temurin-17.0.9+9 (build 17.0.9+9)\n"
    )
    assert parse_java_version_string(output) == "17.0.9"
    assert parse_java_version_string("garbage") == ""


def _install(major):
    return JavaInstallation(path=f"/jdk{major}/bin/java", version=f"{major}.0.1", major=major)


def _manager(monkeypatch, tmp_path, majors, **kwargs):
    manager = JavaManager(data_dir=str(tmp_path), **kwargs)

    async def find_installations():
        return [_install(major) for major in majors]

    monkeypatch.setattr(manager, "find_installations", find_installations)
    return manager


def test_prefers_exact_match(monkeypatch, tmp_path):
    manager = _manager(monkeypatch, tmp_path, [21, 8, 17])
    java = asyncio.run(manager.find_compatible("1.20.1"))
    assert java.major == 17


def test_falls_back_to_newer_java(monkeypatch, tmp_path):
    manager = _manager(monkeypatch, tmp_path, [8, 21])
    java = asyncio.run(manager.find_compatible("1.20.1"))
    assert java.major == 21


def test_old_minecraft_accepts_java8(monkeypatch, tmp_path):
    manager = _manager(monkeypatch, tmp_path, [8])
    java = asyncio.run(manager.find_compatible("1.16.5"))
    assert java.major == 8


def test_no_compatible_java(monkeypatch, tmp_path):
    manager = _manager(monkeypatch, tmp_path, [8], auto_download=False)

    with pytest.raises(JavaNotFoundError) as exc:
        asyncio.run(manager.ensure("1.20.1"))
    assert exc.value.code == "E210"
    assert exc.value.context["found"] == [8]


def test_ensure_downloads_required_version(monkeypatch, tmp_path):
    manager = _manager(monkeypatch, tmp_path, [8])
    downloaded = []

    async def download_and_install(major):
        downloaded.append(major)
        return str(tmp_path / f"java-{major}")

    async def detect(java_cmd):
        return JavaInstallation(path=java_cmd, version="17.0.9", major=17)

    monkeypatch.setattr(manager, "download_and_install", download_and_install)
    monkeypatch.setattr(java_module, "detect_java_version", detect)

    java = asyncio.run(manager.ensure("1.20.1"))

    assert downloaded == [17]
    assert java.major == 17
    assert java.path.startswith(str(tmp_path / "java-17"))


def test_empty_minecraft_version_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        asyncio.run(JavaManager(data_dir=str(tmp_path)).find_compatible(""))


def test_unsupported_managed_version(tmp_path):
    with pytest.raises(ConfigError):
        asyncio.run(JavaManager(data_dir=str(tmp_path)).download_and_install(11))


def test_data_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("PACKWRAP_DATA_DIR", str(tmp_path))
    assert JavaManager().managed_path(21) == str(tmp_path / "java" / "java-21")


def test_configured_path_is_listed_first(monkeypatch, tmp_path):
    monkeypatch.setattr(java_module.shutil, "which", lambda name: None)
    monkeypatch.delenv("JAVA_HOME", raising=False)

    manager = JavaManager(data_dir=str(tmp_path), explicit_path="/custom/jdk/bin/java")

    assert manager._candidates() == ["/custom/jdk/bin/java"]
