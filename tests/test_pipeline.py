import asyncio
import json
import os
import re
import zipfile
from datetime import datetime

import pytest

from packwrap.build import ExportPipeline
from packwrap.build.filters import INSTALLER_JAR
from packwrap.exceptions import (
    ExportError,
    GitError,
    InstallerError,
    MissingMinecraftVersionError,
    OutputCollisionError,
    PackNotFoundError,
)
from packwrap.models import ExportTarget

from conftest import FakeInstaller, FakePackwiz, StepClock


def _pipeline(pack_dir, installer, java, packwiz=None, clock=None):
    return ExportPipeline(
        pack_dir,
        java_manager=java,
        installer=installer,
        packwiz=packwiz,
        clock=clock or StepClock(),
    )


def _names(path):
    with zipfile.ZipFile(path) as archive:
        return set(archive.namelist())


def _read(path, name):
    with zipfile.ZipFile(path) as archive:
        return archive.read(name).decode("utf-8")


def test_server_export(make_pack, fake_installer, fake_java):
    pack_dir = make_pack()
    pipeline = _pipeline(pack_dir, fake_installer, fake_java)

    result = asyncio.run(pipeline.export(ExportTarget.SERVER))

    assert result.path == os.path.join(pack_dir, ".build", "mypack-server.zip")
    names = _names(result.path)

    # 元文件保留，jar 全部由安装器处理
    assert {"mods/sodium.pw.toml", "mods/lithium.pw.toml", "mods/ledger.pw.toml"} <= names
    assert not any(n.startswith("mods/") and n.endswith(".jar") for n in names)

    assert "config/sodium.json" in names
    assert "options.txt" not in names
    assert not any(n.startswith(("resourcepacks", ".git", ".build", ".server")) for n in names)

    assert {
        "server-icon.png",
        "start.sh",
        "start.bat",
        "eula.txt",
        "server.properties",
        "pack.toml",
        "index.toml",
        INSTALLER_JAR,
    } <= names

    assert "eula=false" in _read(result.path, "eula.txt")
    assert "-Xmx4G -Xms1G" in _read(result.path, "start.sh")
    assert "motd=Test Pack" in _read(result.path, "server.properties")
    with zipfile.ZipFile(result.path) as archive:
        mode = archive.getinfo("start.sh").external_attr >> 16
    assert mode & 0o777 == 0o755

    assert fake_installer.calls[0]["server_only"] is True
    assert fake_installer.calls[0]["java"] == "/opt/java/bin/java"
    assert fake_java.requested == ["1.20.1"]
    assert not os.path.exists(os.path.join(pack_dir, ".server"))


def test_technic_export(make_pack, fake_java):
    pack_dir = make_pack()
    installer = FakeInstaller(materialize=True)

    result = asyncio.run(
        _pipeline(pack_dir, installer, fake_java).export(ExportTarget.TECHNIC)
    )

    assert result.path.endswith("mypack-technic.zip")
    names = _names(result.path)
    assert "mods/sodium-fabric-0.5.3.jar" in names
    assert "mods/local-only.jar" not in names
    assert not any(n.endswith(".pw.toml") for n in names)
    assert {"pack.toml", "index.toml", INSTALLER_JAR}.isdisjoint(names)
    assert {"config/sodium.json", "resourcepacks/faithful.zip", "options.txt"} <= names
    assert installer.calls[0]["server_only"] is False
    assert not os.path.exists(os.path.join(pack_dir, ".technic"))


def test_multimc_falls_back_to_local_path(monkeypatch, make_pack, fake_installer, fake_java):
    pack_dir = make_pack()

    async def no_git(args, cwd):
        raise GitError("not a git repository")

    monkeypatch.setattr("packwrap.remote.run_git", no_git)

    result = asyncio.run(
        _pipeline(pack_dir, fake_installer, fake_java).export(ExportTarget.MULTIMC)
    )

    names = _names(result.path)
    assert {"instance.cfg", "mmc-pack.json", "Test_Pack_icon.png", INSTALLER_JAR} <= names
    assert {".minecraft/config/sodium.json", ".minecraft/pack.toml"} <= names
    assert not any(n.startswith(".minecraft/mods") for n in names)
    assert f".minecraft/{INSTALLER_JAR}" not in names

    local_url = os.path.abspath(os.path.join(pack_dir, "pack.toml")).replace("\\", "/")
    cfg = _read(result.path, "instance.cfg")
    assert "InstanceType=OneSix" in cfg
    assert "iconKey=Test_Pack_icon" in cfg
    assert f'PreLaunchCommand="$INST_JAVA" -jar {INSTALLER_JAR} {local_url}' in cfg

    mmc_pack = json.loads(_read(result.path, "mmc-pack.json"))
    assert mmc_pack["formatVersion"] == 1
    assert [c["uid"] for c in mmc_pack["components"]] == [
        "net.minecraft",
        "org.lwjgl3",
        "net.fabricmc.fabric-loader",
    ]

    # MultiMC 不在导出时安装模组
    assert fake_installer.calls == []
    assert fake_java.requested == []


def test_multimc_use_local_skips_git(monkeypatch, make_pack, fake_installer, fake_java):
    pack_dir = make_pack()

    async def unexpected(args, cwd):
        raise AssertionError("git should not be called")

    monkeypatch.setattr("packwrap.remote.run_git", unexpected)

    result = asyncio.run(
        _pipeline(pack_dir, fake_installer, fake_java).export(
            ExportTarget.MULTIMC, use_local=True
        )
    )
    assert os.path.isfile(result.path)


def test_platform_exports_are_timestamped(make_pack, fake_installer, fake_java, fake_packwiz):
    pack_dir = make_pack()
    pipeline = _pipeline(pack_dir, fake_installer, fake_java, packwiz=fake_packwiz)

    first = asyncio.run(pipeline.export(ExportTarget.CURSEFORGE))
    second = asyncio.run(pipeline.export(ExportTarget.CURSEFORGE))
    modrinth = asyncio.run(pipeline.export(ExportTarget.MODRINTH))

    assert first.path != second.path
    assert os.path.isfile(first.path) and os.path.isfile(second.path)
    assert re.search(r"mypack-curseforge_03-05_14-07-09\.zip$", first.path)
    assert modrinth.path.endswith(".mrpack")

    platform, pack_file, _ = fake_packwiz.exports[0]
    assert platform == "curseforge"
    assert pack_file.endswith("pack.toml")
    assert not os.path.exists(os.path.join(pack_dir, ".temp"))


def test_timestamped_collision(make_pack, fake_installer, fake_java, fake_packwiz):
    pack_dir = make_pack()
    fixed = datetime(2024, 1, 1, 0, 0, 0)
    pipeline = _pipeline(
        pack_dir, fake_installer, fake_java, packwiz=fake_packwiz, clock=lambda: fixed
    )

    asyncio.run(pipeline.export(ExportTarget.MODRINTH))
    with pytest.raises(OutputCollisionError):
        asyncio.run(pipeline.export(ExportTarget.MODRINTH))
    assert len(fake_packwiz.exports) == 1


def test_server_collision_leaves_existing_archive(make_pack, fake_installer, fake_java):
    pack_dir = make_pack()
    pipeline = _pipeline(pack_dir, fake_installer, fake_java)

    first = asyncio.run(pipeline.export(ExportTarget.SERVER))
    with open(first.path, "rb") as f:
        before = f.read()

    with pytest.raises(OutputCollisionError) as exc:
        asyncio.run(pipeline.export(ExportTarget.SERVER))

    assert exc.value.code == "E401"
    assert exc.value.context["path"] == first.path
    with open(first.path, "rb") as f:
        assert f.read() == before
    assert len(fake_installer.calls) == 1
    assert not os.path.exists(os.path.join(pack_dir, ".server"))


def test_install_failure_is_wrapped_with_stage(make_pack, fake_java):
    pack_dir = make_pack()
    installer = FakeInstaller(error=InstallerError("installer exited", returncode=1))

    with pytest.raises(ExportError) as exc:
        asyncio.run(_pipeline(pack_dir, installer, fake_java).export(ExportTarget.SERVER))

    assert exc.value.stage == "install"
    assert exc.value.target == "server"
    assert exc.value.code == "E202"
    assert not os.path.exists(os.path.join(pack_dir, ".build", "mypack-server.zip"))
    assert not os.path.exists(os.path.join(pack_dir, ".server"))


def test_missing_minecraft_version_before_java_lookup(make_pack, fake_installer, fake_java):
    pack_dir = make_pack(pack_toml='name = "No Version"\n')

    with pytest.raises(MissingMinecraftVersionError):
        asyncio.run(
            _pipeline(pack_dir, fake_installer, fake_java).export(ExportTarget.SERVER)
        )
    assert fake_java.requested == []
    assert fake_installer.calls == []


def test_missing_pack(tmp_path, fake_installer, fake_java):
    with pytest.raises(PackNotFoundError):
        asyncio.run(
            _pipeline(str(tmp_path), fake_installer, fake_java).export(ExportTarget.TECHNIC)
        )


def test_nested_minecraft_layout_outputs_next_to_it(tmp_path, make_pack, fake_installer, fake_java):
    make_pack(name="outer/.minecraft")
    outer = str(tmp_path / "outer")

    result = asyncio.run(
        _pipeline(outer, fake_installer, fake_java).export(ExportTarget.SERVER)
    )

    assert result.path == os.path.join(outer, ".build", "outer-server.zip")


def test_export_all_continues_after_failures(make_pack, fake_installer, fake_java, fake_packwiz):
    pack_dir = make_pack(pack_toml='name = "No Version"\n')
    pipeline = _pipeline(pack_dir, fake_installer, fake_java, packwiz=fake_packwiz)

    report = asyncio.run(pipeline.export_all())

    assert not report.ok
    assert [r.target for r in report.succeeded] == [
        ExportTarget.CURSEFORGE,
        ExportTarget.MODRINTH,
    ]
    assert [t for t, _ in report.failed] == [
        ExportTarget.MULTIMC,
        ExportTarget.TECHNIC,
        ExportTarget.SERVER,
    ]
    assert all(isinstance(e, MissingMinecraftVersionError) for _, e in report.failed)
    assert fake_java.requested == []


def test_export_all_success(monkeypatch, make_pack, fake_installer, fake_java, fake_packwiz):
    pack_dir = make_pack()

    async def no_git(args, cwd):
        raise GitError("not a git repository")

    monkeypatch.setattr("packwrap.remote.run_git", no_git)
    pipeline = _pipeline(pack_dir, fake_installer, fake_java, packwiz=fake_packwiz)

    report = asyncio.run(pipeline.export_all())

    assert report.ok
    assert [r.target for r in report.succeeded] == list(ExportTarget)
    assert all(os.path.isfile(r.path) for r in report.succeeded)


class BrokenCurseForgePackwiz(FakePackwiz):
    async def export(self, platform, pack_file, output):
        if platform == "curseforge":
            raise ValueError("unexpected manifest field")
        await super().export(platform, pack_file, output)


def test_export_all_survives_unexpected_errors(monkeypatch, make_pack, fake_installer, fake_java):
    pack_dir = make_pack()

    async def no_git(args, cwd):
        raise GitError("not a git repository")

    monkeypatch.setattr("packwrap.remote.run_git", no_git)
    pipeline = _pipeline(
        pack_dir, fake_installer, fake_java, packwiz=BrokenCurseForgePackwiz()
    )

    report = asyncio.run(pipeline.export_all())

    [(target, error)] = report.failed
    assert target is ExportTarget.CURSEFORGE
    assert isinstance(error, ExportError)
    assert error.target == "curseforge"
    assert error.stage == "manifest"
    assert "unexpected manifest field" in str(error)
    assert [r.target for r in report.succeeded] == list(ExportTarget)[1:]


def test_mistyped_metafile_does_not_block_export(make_pack, fake_installer, fake_java):
    pack_dir = make_pack()
    with open(os.path.join(pack_dir, "mods", "lithium.pw.toml"), "w") as f:
        f.write('name = "x"\nside = 5\n\n[update]\nmodrinth = "half"\n')

    result = asyncio.run(
        _pipeline(pack_dir, fake_installer, fake_java).export(ExportTarget.SERVER)
    )

    assert os.path.isfile(result.path)
