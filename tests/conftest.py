import os
from datetime import datetime

import pytest

from packwrap.build import ModInstaller
from packwrap.build.filters import INSTALLER_JAR
from packwrap.java import JavaInstallation

PACK_TOML = """name = "Test Pack"
author = "tester"
version = "1.0.0"
pack-format = "packwiz:1.1.0"

[index]
file = "index.toml"
hash-format = "sha256"
hash = "0000"

[versions]
minecraft = "1.20.1"
fabric = "0.15.0"
"""

INDEX_TOML = """hash-format = "sha256"

[[files]]
file = "mods/sodium.pw.toml"
hash = "aaaa"
metafile = true

[[files]]
file = "mods/lithium.pw.toml"
hash = "bbbb"
metafile = true

[[files]]
file = "mods/ledger.pw.toml"
hash = "cccc"
metafile = true

[[files]]
file = "config/sodium.json"
hash = "dddd"
"""

SODIUM_TOML = """name = "Sodium"
filename = "sodium-fabric-0.5.3.jar"
side = "client"

[download]
url = "https://cdn.modrinth.com/data/AANobbMI/versions/abc/sodium-fabric-0.5.3.jar"
hash-format = "sha1"
hash = "1111"

[update.modrinth]
mod-id = "AANobbMI"
version = "abc123"
"""

LITHIUM_TOML = """name = "Lithium"
filename = "lithium-fabric-0.11.2.jar"
side = "both"

[download]
hash-format = "sha1"
hash = "2222"
mode = "metadata:curseforge"

[update.curseforge]
file-id = 4439705
project-id = 360438
"""

LEDGER_TOML = """name = "Ledger"
filename = "ledger-1.2.jar"
side = "server"

[download]
url = "https://example.com/ledger-1.2.jar"
hash-format = "sha256"
hash = "3333"
"""


def write_file(path, content="", mode="w"):
    os.makedirs(os.path.dirname(str(path)), exist_ok=True)
    with open(path, mode) as f:
        f.write(content)
    return str(path)


@pytest.fixture
def make_pack(tmp_path):
    """在 tmp_path 下创建 packwiz 整合包，返回整合包目录"""

    def _make(name="mypack", pack_toml=PACK_TOML, extras=True):
        pack_dir = tmp_path / name
        write_file(pack_dir / "pack.toml", pack_toml)
        write_file(pack_dir / "index.toml", INDEX_TOML)
        write_file(pack_dir / "mods" / "sodium.pw.toml", SODIUM_TOML)
        write_file(pack_dir / "mods" / "lithium.pw.toml", LITHIUM_TOML)
        write_file(pack_dir / "mods" / "ledger.pw.toml", LEDGER_TOML)
        write_file(pack_dir / "config" / "sodium.json", "{}")
        if extras:
            write_file(pack_dir / "mods" / "local-only.jar", b"jar", mode="wb")
            write_file(pack_dir / "resourcepacks" / "faithful.zip", b"zip", mode="wb")
            write_file(pack_dir / "options.txt", "fov:70\n")
            write_file(pack_dir / ".git" / "HEAD", "ref: refs/heads/main\n")
            write_file(pack_dir / ".build" / "old.zip", b"old", mode="wb")
            write_file(pack_dir / "icon.png", b"\x89PNG", mode="wb")
        return str(pack_dir)

    return _make


class FakeInstaller(ModInstaller):
    """不联网、不启动 JVM 的安装器"""

    def __init__(self, materialize=False, error=None):
        super().__init__()
        self.materialize = materialize
        self.error = error
        self.calls = []

    async def ensure_installer_jar(self, pack_location):
        return write_file(
            os.path.join(pack_location, INSTALLER_JAR), b"bootstrap", mode="wb"
        )

    async def install(self, staging_dir, pack, java_path, server_only=False):
        self.calls.append(
            {"staging_dir": staging_dir, "java": java_path, "server_only": server_only}
        )
        if self.error is not None:
            raise self.error
        if self.materialize:
            write_file(
                os.path.join(staging_dir, "mods", "sodium-fabric-0.5.3.jar"),
                b"mod",
                mode="wb",
            )


class FakeJavaManager:
    def __init__(self, major=17):
        self.major = major
        self.requested = []

    async def ensure(self, mc_version):
        self.requested.append(mc_version)
        return JavaInstallation(
            path="/opt/java/bin/java", version=f"{self.major}.0.9", major=self.major
        )


class FakePackwiz:
    def __init__(self):
        self.exports = []

    async def export(self, platform, pack_file, output):
        self.exports.append((platform, pack_file, output))
        write_file(output, b"exported", mode="wb")


class StepClock:
    """每次调用前进一秒的时钟"""

    def __init__(self, start=datetime(2024, 3, 5, 14, 7, 9)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current = value.replace(second=(value.second + 1) % 60)
        return value


@pytest.fixture
def fake_installer():
    return FakeInstaller()


@pytest.fixture
def fake_java():
    return FakeJavaManager()


@pytest.fixture
def fake_packwiz():
    return FakePackwiz()
