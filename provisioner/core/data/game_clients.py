"""
L0 Data — Windows game clients run through Proton-GE.

One entry per client: where its isolated prefix lives, where the
installer comes from, and which executable marks a finished install.
Shared by the capability table and the launcher helpers.

Prefix layout is the Proton compat-data layout: ``STEAM_COMPAT_DATA_PATH``
is ``~/.wine-<dir>`` and the actual ``WINEPREFIX`` is its ``pfx``
subdirectory.
"""

from __future__ import annotations

GAME_CLIENTS: dict[str, dict] = {
    "battlenet": {
        "capability": "battlenet",
        "label": "Battle.net",
        "prefix_dir": ".wine-battlenet",
        "installer_url": (
            "https://downloader.battle.net/download/getInstallerForGame"
            "?os=win&gameProgram=BATTLENET_APP&version=Live"
        ),
        "installer_file": "Battle.net-Setup.exe",
        "executable": "drive_c/Program Files (x86)/Battle.net/Battle.net Launcher.exe",
        "winetricks": ["win10", "corefonts", "vcrun2019", "dotnet48"],
        "proton_env": {
            "PROTON_USE_WINED3D": "1",
            "PROTON_NO_ESYNC": "1",
            "PROTON_NO_FSYNC": "1",
            "PROTON_FORCE_LARGE_ADDRESS_AWARE": "1",
            "PROTON_OLD_GL_STRING": "1",
            "PROTON_HIDE_NVIDIA_GPU": "0",
            "PROTON_LOG": "1",
            "WINEDLLOVERRIDES": "winemenubuilder.exe=d;mscoree=d;mshtml=d",
        },
        "kill_patterns": ["Battle.net", "Agent.exe", "Blizzard"],
    },
    "ea": {
        "capability": "ea-app",
        "label": "EA App",
        "prefix_dir": ".wine-ea",
        "installer_url": (
            "https://origin-a.akamaihd.net/EA-Desktop-Client-Download/"
            "installer-releases/EAappInstaller.exe"
        ),
        "installer_file": "EAappInstaller.exe",
        "executable": "drive_c/Program Files/Electronic Arts/EA Desktop/EA Desktop/EADesktop.exe",
        "winetricks": ["win10", "corefonts", "vcrun2019", "dotnet48"],
        "proton_env": {
            "PROTON_NO_ESYNC": "1",
            "PROTON_NO_FSYNC": "1",
            "PROTON_USE_WINED3D": "1",
        },
        "kill_patterns": ["EADesktop", "EABackgroundService"],
    },
    "epic": {
        "capability": "epic-games",
        "label": "Epic Games Launcher",
        "prefix_dir": ".wine-epic",
        "installer_url": (
            "https://launcher-public-service-prod06.ol.epicgames.com/"
            "launcher/api/installer/download/EpicGamesLauncherInstaller.msi"
        ),
        "installer_file": "EpicGamesLauncherInstaller.msi",
        "executable": (
            "drive_c/Program Files (x86)/Epic Games/Launcher/Portal/Binaries/Win32/EpicGamesLauncher.exe"
        ),
        "winetricks": ["win10", "corefonts", "vcrun2019"],
        "proton_env": {
            "PROTON_USE_WINED3D": "1",
            "PROTON_NO_ESYNC": "1",
            "PROTON_NO_FSYNC": "1",
        },
        "kill_patterns": ["EpicGamesLauncher", "EpicWebHelper"],
    },
}


def prefix_root(home: str, client: dict) -> str:
    """STEAM_COMPAT_DATA_PATH for a client."""
    return f"{home}/{client['prefix_dir']}"


def wineprefix(home: str, client: dict) -> str:
    """WINEPREFIX (the ``pfx`` subdirectory) for a client."""
    return f"{prefix_root(home, client)}/pfx"


def executable_path(home: str, client: dict) -> str:
    return f"{wineprefix(home, client)}/{client['executable']}"


def installer_path(home: str, client: dict) -> str:
    return f"{home}/Downloads/{client['installer_file']}"


def proton_environment(home: str, client: dict) -> dict[str, str]:
    """Environment for running anything inside a client's prefix."""
    return {
        "STEAM_COMPAT_CLIENT_INSTALL_PATH": f"{home}/.steam",
        "STEAM_COMPAT_DATA_PATH": prefix_root(home, client),
        "WINEPREFIX": wineprefix(home, client),
        **client["proton_env"],
    }
