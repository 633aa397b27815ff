"""Inputs and outputs of compiling a feature into a deployment package."""

import os
from dataclasses import dataclass
from typing import Optional

from sls.models.feature import DEFAULT_BINARY_NAME, DEFAULT_BINARY_ZIP_NAME


@dataclass
class BuildSettings:
    """Where to find a feature's source and where to put its artifacts."""

    code_dir: str
    build_dir: str
    bin_name: str = DEFAULT_BINARY_NAME
    zip_name: str = DEFAULT_BINARY_ZIP_NAME
    skip_zipping: bool = False


@dataclass
class BuildResult:
    settings: BuildSettings
    zip_name: str = DEFAULT_BINARY_ZIP_NAME
    zip_data: Optional[bytes] = None

    @property
    def binary_path(self) -> str:
        return os.path.join(self.settings.build_dir, self.settings.bin_name)

    @property
    def zip_path(self) -> str:
        return os.path.join(self.settings.build_dir, self.zip_name)
