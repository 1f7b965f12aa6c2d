"""File-backed storage for a single growth profile."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from dendrite.core.config import (
    CONFIG_FILENAME,
    DendriteConfig,
    load_config,
    save_config,
)
from dendrite.core.errors import ProfileNotInitializedError
from dendrite.core.serialization import load_profile
from dendrite.models.profile import GrowthProfile

logger = logging.getLogger(__name__)


class ProfileStore:
    """Keeps ``config.json`` and the profile JSON in one data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.config_file = self.data_dir / CONFIG_FILENAME
        self._config: Optional[DendriteConfig] = None

    @property
    def config(self) -> DendriteConfig:
        """Get the configuration, loading it on first use."""
        if self._config is None:
            self._config = load_config(self.data_dir)
        return self._config

    @property
    def profile_file(self) -> Path:
        return self.data_dir / self.config.profile_filename

    def exists(self) -> bool:
        """Check if the data directory holds an initialized profile."""
        return (
            self.data_dir.exists()
            and self.config_file.exists()
            and self.profile_file.exists()
        )

    def init(self, config: Optional[DendriteConfig] = None) -> GrowthProfile:
        """Create the data directory, config and an empty profile."""
        if self.exists():
            raise ValueError(f"Profile already initialized in {self.data_dir}")

        self.data_dir.mkdir(parents=True, exist_ok=True)
        save_config(self.data_dir, config)
        self._config = config or DendriteConfig()

        profile = GrowthProfile.new()
        self.save(profile)
        logger.info("Initialized profile %s in %s", profile.id, self.data_dir)
        return profile

    def load(self) -> GrowthProfile:
        if not self.exists():
            raise ProfileNotInitializedError(
                f"No profile in {self.data_dir}. Run 'dendrite init' first."
            )
        return load_profile(self.profile_file.read_text())

    def save(self, profile: GrowthProfile) -> None:
        """Write the profile, replacing the old file only once fully written."""
        payload = profile.to_json(indent=2)
        fd, temp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=".profile-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            os.replace(temp_path, self.profile_file)
        except OSError:
            Path(temp_path).unlink(missing_ok=True)
            raise
        logger.info("Saved profile %s to %s", profile.id, self.profile_file)
