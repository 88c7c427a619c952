import logging
from pathlib import Path
from typing import Optional

import mcwrapper.settings as default_settings

log = logging.getLogger(__name__)


class WrapperSettings:
    """
    Attribute-based access point for all wrapper configuration.

    Values come from `settings.py` (which already applied `.env` overrides via
    `python-dotenv`). The working directories are derived from `base_dir`, so a
    second instance rooted elsewhere (e.g. a scratch directory) never touches
    the default installation.
    """

    def __init__(self, base_dir: Optional[Path] = None, bundle_dir: Optional[Path] = None) -> None:
        """
        Initializes the settings object by loading defaults and deriving paths.

        :param base_dir: Root directory for the server, proxy and log directories.
        :param bundle_dir: Directory holding the bundled jars to install from.
        """
        self._load_defaults()

        if base_dir is not None:
            self.BASE_DIR = Path(base_dir).resolve()
        if bundle_dir is not None:
            self.BUNDLE_DIR = Path(bundle_dir).resolve()

        self.SERVER_DIR: Path = self.BASE_DIR / self.SERVER_DIR_NAME
        self.PROXY_DIR: Path = self.BASE_DIR / self.PROXY_DIR_NAME
        self.LOGS_DIR: Path = self.BASE_DIR / self.LOGS_DIR_NAME
        log.debug(f"Wrapper rooted at '{self.BASE_DIR}' (bundle: '{self.BUNDLE_DIR}').")

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings.py module as defaults."""
        for key in dir(default_settings):
            if key.isupper():
                value = getattr(default_settings, key)
                # Copy mutable containers so per-instance edits stay local
                if isinstance(value, dict):
                    value = dict(value)
                setattr(self, key, value)


# Create a singleton instance to be imported by other modules
effective_settings = WrapperSettings()
