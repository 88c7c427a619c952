import sys
import shutil
import logging
import requests
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from mcwrapper.local.errors import InstallError, MissingArtifactError
from mcwrapper.local.reporting import print_missing_artifacts_report

log = logging.getLogger(__name__)


class ArtifactInstaller:
    """
    Copies bundled artifacts into a working directory.

    An artifact that is already installed is never overwritten, so a jar the
    operator replaced by hand survives restarts. Artifacts missing from the
    bundle may be fetched once from a configured URL.
    """

    def __init__(self, target_dir: Path, bundle_dir: Path, download_urls: Optional[Dict[str, str]] = None,
                 download_timeout: int = 30):
        self.target_dir = Path(target_dir)
        self.bundle_dir = Path(bundle_dir)
        self.download_urls = download_urls or {}
        self.download_timeout = download_timeout
        self.temp_dir = self.target_dir / ".temp"

    def artifacts(self) -> List[Tuple[str, Path]]:
        """Returns (artifact name, path relative to both bundle and target dir)."""
        raise NotImplementedError

    def directories(self) -> List[Path]:
        """Directories that must exist before artifacts are copied."""
        return [self.target_dir]

    def ensure_installed(self) -> None:
        """
        BLOCKING: Ensures every artifact is present in the target directory.

        :raises MissingArtifactError: If an artifact is neither installed,
            bundled nor downloadable. The guidance report has been printed.
        :raises InstallError: On any other filesystem failure.
        """
        try:
            for directory in self.directories():
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallError(f"Failed to create '{self.target_dir}': {e}") from e

        missing = [name for name, rel_path in self.artifacts() if not self._install_artifact(name, rel_path)]
        if missing:
            print_missing_artifacts_report(missing, self.bundle_dir)
            raise MissingArtifactError(missing[0])

        self._post_install()
        log.info(f"Verified installation in '{self.target_dir}'.")

    def _post_install(self) -> None:
        """Hook for extra files that do not come from the bundle."""

    def _install_artifact(self, name: str, rel_path: Path) -> bool:
        """Installs one artifact. Returns False if it could not be obtained."""
        target = self.target_dir / rel_path
        if target.exists():
            log.debug(f"'{name}' already installed at '{target}'.")
            return True

        source = self.bundle_dir / rel_path
        if source.is_file():
            log.info(f"Extracting '{name}' from bundle...")
            self._copy_file(source, target)
            return True

        url = self.download_urls.get(name)
        if url:
            return self._download_file(url, target)

        log.error(f"'{name}' is not installed and not present in bundle '{self.bundle_dir}'.")
        return False

    def _copy_file(self, source: Path, dest_path: Path) -> None:
        """Copies via the temp dir so an interrupted copy never looks installed."""
        temp_path = self.temp_dir / dest_path.name
        try:
            self.temp_dir.mkdir(exist_ok=True)
            shutil.copy2(source, temp_path)
            shutil.move(str(temp_path), str(dest_path))
        except OSError as e:
            raise InstallError(f"Failed to copy '{source}' to '{dest_path}': {e}") from e
        finally:
            if self.temp_dir.is_dir():
                shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _download_file(self, url: str, dest_path: Path) -> bool:
        """Downloads a file in a single attempt with a simple progress bar."""
        log.info(f"Downloading from {url}...")
        temp_path = self.temp_dir / dest_path.name
        try:
            self.temp_dir.mkdir(exist_ok=True)
            headers = {"User-Agent": "MCWrapper/1.0"}
            with requests.get(url, stream=True, timeout=self.download_timeout, headers=headers) as r:
                r.raise_for_status()
                total_size = int(r.headers.get("content-length", 0))
                with open(temp_path, "wb") as f:
                    downloaded = 0
                    for chunk in r.iter_content(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
                        done = int(50 * downloaded / total_size) if total_size else 0
                        sys.stdout.write(f"\r[{'=' * done}{' ' * (50-done)}] {downloaded/1024/1024:.2f} MB")
                        sys.stdout.flush()
            sys.stdout.write("\n")
            shutil.move(str(temp_path), str(dest_path))
            log.info(f"Successfully downloaded to '{dest_path}'.")
            return True
        except requests.RequestException as e:
            log.error(f"Download failed: {e}")
            return False
        except OSError as e:
            raise InstallError(f"Failed to store download '{dest_path}': {e}") from e
        finally:
            if self.temp_dir.is_dir():
                shutil.rmtree(self.temp_dir, ignore_errors=True)


class ServerInstaller(ArtifactInstaller):
    """Installs the vanilla server jar and accepts the EULA."""

    def __init__(self, server_dir: Path, bundle_dir: Path, server_jar_name: str = "server.jar",
                 eula_file_name: str = "eula.txt", **kwargs):
        super().__init__(server_dir, bundle_dir, **kwargs)
        self.server_jar_name = server_jar_name
        self.eula_file_name = eula_file_name

    def artifacts(self) -> List[Tuple[str, Path]]:
        return [(self.server_jar_name, Path(self.server_jar_name))]

    def _post_install(self) -> None:
        # Running the wrapper implies agreeing to the EULA; without it the server exits immediately.
        eula_file = self.target_dir / self.eula_file_name
        if eula_file.exists():
            return
        log.info("Accepting EULA automatically...")
        try:
            eula_file.write_text("eula=true\n", encoding="utf-8")
        except OSError as e:
            raise InstallError(f"Failed to write '{eula_file}': {e}") from e


class ProxyInstaller(ArtifactInstaller):
    """Installs the Velocity proxy with its Geyser and Floodgate plugins."""

    def __init__(self, proxy_dir: Path, bundle_dir: Path, velocity_jar_name: str = "velocity.jar",
                 plugins_dir_name: str = "plugins", plugin_jar_names: Tuple[str, ...] = (), **kwargs):
        super().__init__(proxy_dir, bundle_dir, **kwargs)
        self.velocity_jar_name = velocity_jar_name
        self.plugins_dir_name = plugins_dir_name
        self.plugin_jar_names = tuple(plugin_jar_names)

    def directories(self) -> List[Path]:
        return [self.target_dir, self.target_dir / self.plugins_dir_name]

    def artifacts(self) -> List[Tuple[str, Path]]:
        entries = [(self.velocity_jar_name, Path(self.velocity_jar_name))]
        entries += [(name, Path(self.plugins_dir_name) / name) for name in self.plugin_jar_names]
        return entries
