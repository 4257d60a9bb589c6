"""Entry point: ``python -m ornithe_installer [install|list] [config.json]``."""
import asyncio
import logging
import pathlib
import sys

from .config import ConfigError, load_config
from .enums import GameSide, LauncherType, LoaderType
from .errors import ErrorKind, InstallerError
from .install import get_installation_info, install_multimc, install_official, list_versions
from .meta import MetaClient

log = logging.getLogger("ornithe_installer")

ACTIONS = ("install", "list")

FAILURE_HINTS = {
    ErrorKind.NETWORK: "Could not reach the metadata service. Check your internet connection and try again.",
    ErrorKind.MALFORMED_DOCUMENT: "The metadata service returned unexpected data. "
                                  "Please report this at https://github.com/OrnitheMC/ornithe-installer",
    ErrorKind.LOOKUP: "The requested Minecraft version / loader combination does not exist.",
    ErrorKind.FILESYSTEM: "Could not write the installation files.",
}


async def run(action: str, cfg: dict) -> None:
    loader_type = LoaderType.of(cfg["loader"])
    async with MetaClient(timeout=cfg["timeout"], progress=cfg["progress"]) as client:
        if action == "list":
            await list_versions(client, loader_type, cfg["snapshots"], cfg["loader_betas"],
                                cfg["meta_url"], cfg["manifest_url"])
            return

        if not cfg["game_version"]:
            raise ConfigError("'game_version' must be set to install")
        launcher = LauncherType.of(cfg["launcher"])

        info = await get_installation_info(client, GameSide.CLIENT, cfg["game_version"], loader_type,
                                           cfg["loader_version"], cfg["generation"],
                                           cfg["meta_url"], cfg["manifest_url"])

        if launcher is LauncherType.OFFICIAL:
            if not cfg["install_dir"]:
                raise ConfigError("'install_dir' must point at the .minecraft directory of the launcher")
            await install_official(client, info, loader_type, pathlib.Path(cfg["install_dir"]),
                                   cfg["generate_profile"], cfg["meta_url"])
        else:
            await install_multimc(client, info, loader_type, pathlib.Path(cfg["output_dir"]), cfg["meta_url"])


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    action = argv[0] if argv else "install"
    config_path = pathlib.Path(argv[1]) if len(argv) > 1 else None

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    if action not in ACTIONS:
        log.error(f"Unknown action '{action}', expected one of: {', '.join(ACTIONS)}")
        return 2

    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        log.error(str(e))
        return 1
    logging.getLogger().setLevel(str(cfg["log_level"]).upper())

    try:
        asyncio.run(run(action, cfg))
    except (ConfigError, ValueError) as e:
        log.error(str(e))
        return 1
    except InstallerError as e:
        log.error(f"Failed to {action}: {e}")
        log.error(FAILURE_HINTS[e.kind])
        return 2
    except KeyboardInterrupt:
        log.info("Cancelled by user.")
        return 130
    except Exception:
        log.exception("--- An unexpected error occurred ---")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
