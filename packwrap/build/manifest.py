"""
目标清单生成

MultiMC 实例文件 (instance.cfg / mmc-pack.json) 与服务端启动文件。
"""

import json
import os
import re

from packwrap.build.filters import INSTALLER_JAR
from packwrap.exceptions import ManifestError
from packwrap.models import LoaderKind, PackDescriptor

LOADER_COMPONENTS = {
    LoaderKind.FABRIC: "net.fabricmc.fabric-loader",
    LoaderKind.FORGE: "net.minecraftforge",
    LoaderKind.QUILT: "org.quiltmc.quilt-loader",
}


def sanitize_icon_name(name: str) -> str:
    """非字母数字字符替换为下划线"""
    return re.sub(r"[^A-Za-z0-9]", "_", name)


def sanitize_pack_name(name: str) -> str:
    """输出文件名用的整合包名：小写，空格转为 -，只保留 [a-z0-9_-]"""
    name = name.replace(" ", "-").lower()
    name = re.sub(r"[^a-z0-9_-]", "", name)
    return name or "modpack"


def build_mmc_components(pack: PackDescriptor, lwjgl_version: str) -> list[dict]:
    """
    mmc-pack.json 组件列表

    顺序固定：Minecraft、LWJGL，然后是检测到的加载器（至多一个）。
    """
    components = [
        {"uid": "net.minecraft", "version": pack.minecraft_version},
        {"uid": "org.lwjgl3", "version": lwjgl_version},
    ]
    if pack.loader.kind in LOADER_COMPONENTS and pack.loader.version:
        components.append(
            {"uid": LOADER_COMPONENTS[pack.loader.kind], "version": pack.loader.version}
        )
    return components


def write_mmc_pack(dest_dir: str, pack: PackDescriptor, lwjgl_version: str) -> str:
    path = os.path.join(dest_dir, "mmc-pack.json")
    data = {
        "components": build_mmc_components(pack, lwjgl_version),
        "formatVersion": 1,
    }
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
    except OSError as e:
        raise ManifestError(f"写入 mmc-pack.json 失败: {e}") from e
    return path


def write_instance_cfg(dest_dir: str, pack_name: str, pack_url: str) -> str:
    """写入 instance.cfg，启动前命令调用安装器同步整合包"""
    icon_key = f"{sanitize_icon_name(pack_name)}_icon"
    content = (
        "[General]\n"
        "InstanceType=OneSix\n"
        f"iconKey={icon_key}\n"
        f"name={pack_name}\n"
        "OverrideCommands=true\n"
        f'PreLaunchCommand="$INST_JAVA" -jar {INSTALLER_JAR} {pack_url}\n'
    )
    path = os.path.join(dest_dir, "instance.cfg")
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise ManifestError(f"写入 instance.cfg 失败: {e}") from e
    return path


START_SH = """#!/bin/bash
echo "Starting Minecraft Server..."
java -Xmx{max_memory} -Xms{min_memory} -jar server.jar nogui
"""

START_BAT = """@echo off
title Minecraft Server
echo Starting Minecraft Server...
java -Xmx{max_memory} -Xms{min_memory} -jar server.jar nogui
pause
"""

EULA_TXT = """# By changing the setting below to TRUE you are indicating your agreement to our EULA (https://aka.ms/MinecraftEULA).
# You must accept the EULA to run the server.
eula=false
"""

SERVER_PROPERTIES = """# Minecraft server properties
server-port=25565
gamemode=survival
difficulty=normal
max-players=20
motd={motd}
online-mode=true
spawn-protection=16
level-name=world
level-type=minecraft\\:normal
"""


def write_server_files(
    dest_dir: str,
    pack: PackDescriptor,
    min_memory: str = "1G",
    max_memory: str = "4G",
):
    """写入服务端启动脚本、eula.txt 与 server.properties"""
    files = {
        "start.sh": START_SH.format(min_memory=min_memory, max_memory=max_memory),
        "start.bat": START_BAT.format(min_memory=min_memory, max_memory=max_memory),
        "eula.txt": EULA_TXT,
        "server.properties": SERVER_PROPERTIES.format(
            motd=pack.name or "A Minecraft Server"
        ),
    }
    try:
        for name, content in files.items():
            newline = "\r\n" if name.endswith(".bat") else "\n"
            with open(
                os.path.join(dest_dir, name), "w", encoding="utf-8", newline=newline
            ) as f:
                f.write(content)
        os.chmod(os.path.join(dest_dir, "start.sh"), 0o755)
    except OSError as e:
        raise ManifestError(f"写入服务端文件失败: {e}") from e
