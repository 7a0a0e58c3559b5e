import re
from importlib import metadata
from pathlib import Path

SERVICE_NAME = "adwizard-campaign-service"
APP_TITLE = "Ad Wizard: Facebook Campaign Publishing"

_CHANGELOG = Path(__file__).resolve().parent.parent / "CHANGELOG.md"


def _read_version() -> str:
    """Latest CHANGELOG heading in a checkout, package metadata when installed."""
    if _CHANGELOG.exists():
        match = re.search(r"^##\s*\[(\d+\.\d+\.\d+)\]", _CHANGELOG.read_text(), re.MULTILINE)
        if match:
            return match.group(1)
    try:
        return metadata.version(SERVICE_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


VERSION = _read_version()
