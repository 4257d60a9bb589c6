import enum


class LoaderType(enum.Enum):
    FABRIC = ("fabric", "net.fabricmc.fabric-loader")
    QUILT = ("quilt", "org.quiltmc.quilt-loader")

    def __init__(self, loader_name: str, maven_uid: str) -> None:
        self.loader_name = loader_name
        self.maven_uid = maven_uid

    @property
    def fancy_name(self) -> str:
        return self.loader_name[:1].upper() + self.loader_name[1:]

    @property
    def meta_name(self) -> str:
        """Name used in metadata service paths, e.g. ``fabric-loader``."""
        return f"{self.loader_name}-loader"

    @classmethod
    def of(cls, name: str) -> "LoaderType":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown loader type: {name}") from None


class GameSide(enum.Enum):
    CLIENT = ("client", "/v3/versions/gen{generation}/{loader}/{game_version}/{loader_version}/profile/json")
    SERVER = ("server", "/v3/versions/gen{generation}/{loader}/{game_version}/{loader_version}/server/json")

    def __init__(self, side_id: str, launch_json_endpoint: str) -> None:
        self.side_id = side_id
        self.launch_json_endpoint = launch_json_endpoint


class LauncherType(enum.Enum):
    OFFICIAL = "Official Launcher"
    MULTIMC = "MultiMC/Prism Launcher"

    @classmethod
    def of(cls, name: str) -> "LauncherType":
        # Accepts the enum name as well as the display name ("MultiMC/Prism Launcher")
        candidate = name.strip()
        if " " in candidate:
            candidate = candidate.split(" ")[0]
        if "/" in candidate:
            candidate = candidate.split("/")[0]
        try:
            return cls[candidate.upper()]
        except KeyError:
            raise ValueError(f"Unknown launcher type: {name}") from None
