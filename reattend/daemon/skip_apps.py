"""Applications whose screens are never worth remembering."""

from .models import UNKNOWN_APP


SKIP_APPS = (
    # Dev tools; code on screen is noise for a memory system
    "terminal", "iterm", "warp", "hyper", "alacritty", "kitty",
    "visual studio code", "code", "xcode", "intellij", "android studio",
    "pycharm", "webstorm", "rustrover", "goland", "clion", "datagrip",
    "sublime text", "atom", "neovim", "vim",
    # macOS system utilities
    "finder", "system preferences", "system settings",
    "activity monitor", "console", "disk utility", "font book",
    "migration assistant", "bluetooth", "airdrop",
    # Windows system utilities
    "explorer", "task manager", "control panel", "registry editor",
    "device manager", "event viewer", "windows security",
    # Windows shells and Visual Studio
    "cmd.exe", "powershell", "windows terminal", "command prompt",
    "devenv",
    # Password managers and authenticators
    "1password", "bitwarden", "lastpass", "dashlane", "keychain access",
    "authy", "google authenticator", "credential manager",
    # Media
    "spotify", "music", "vlc", "quicktime player", "iina", "podcasts",
    "tv", "infuse", "plex", "groove music", "movies & tv",
    # Containers and VMs
    "docker desktop", "docker", "parallels desktop", "vmware",
    # App stores
    "app store", "software update", "self service", "microsoft store",
    # Ourselves
    "reattend",
)


def is_known_app(app_name: str) -> bool:
    """False for the empty and "Unknown" sentinels."""
    name = (app_name or "").strip()
    return bool(name) and name != UNKNOWN_APP


def is_skip_app(app_name: str) -> bool:
    """Case-insensitive substring match against SKIP_APPS."""
    if not is_known_app(app_name):
        return False
    lower = app_name.lower()
    return any(skip in lower for skip in SKIP_APPS)
