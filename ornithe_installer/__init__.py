"""Ornithe installer: resolves Minecraft + loader versions into launcher profiles
and MultiMC instance bundles using the Ornithe metadata service."""

__version__ = "1.0.0"

INSTALLER_NAME = "ornithe-installer-python"

ORNITHE_META_URL = "https://meta.ornithemc.net"
ORNITHE_MAVEN_URL = "https://maven.ornithemc.net/releases/"
MINECRAFT_LIBRARIES_URL = "https://libraries.minecraft.net/"

MANIFEST_BASE_URL = "https://skyrising.github.io/mc-versions"
MANIFEST_PATH = "/version_manifest.json"
