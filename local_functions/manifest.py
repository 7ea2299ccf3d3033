"""
Project manifest loading.

The manifest is a YAML document (JSON is accepted too, being a subset):

    packages:
      - name: sample
        actions:
          - name: hello
            runtime: nodejs:18
            limits:
              timeout: 60000

Loading is all-or-nothing: any problem here is a ManifestError and the CLI
exits before the server starts.
"""
from pathlib import Path

import yaml
from pydantic import ValidationError

from local_functions.errors import ManifestError
from local_functions.models import ProjectManifest


def load_manifest(path: Path) -> ProjectManifest:
    """
    Read and validate the manifest at 'path'.

    Raises:
        ManifestError — file missing, not YAML, wrong shape, or no packages
    """
    if not path.is_file():
        raise ManifestError(f"project file {path} does not exist")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"could not parse {path}: {e}") from e

    if not isinstance(data, dict) or not data.get("packages"):
        raise ManifestError("no packages defined")

    try:
        return ProjectManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"invalid project file {path}: {e}") from e
