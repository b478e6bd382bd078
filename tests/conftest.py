"""Shared fixtures for depweave tests."""

import pathlib

import pytest

RECIPE_YAML = """\
name: app
version: 1.0.0
options:
  shared: true
dependencies:
  libpng: "^1.6"
  fmt: ">=9"
"""

CATALOG_YAML = """\
packages:
  zlib:
    - version: 1.2.13
      origin: system
    - version: 1.3.0
      revision: r1
    - version: 1.3.1
      revision: r1
  libpng:
    - version: 1.6.40
      revision: r2
      dependencies:
        zlib: ">=1.2"
    - version: 1.6.43
      revision: r1
      dependencies:
        zlib: ">=1.3"
  fmt:
    - version: 9.1.0
      revision: r1
    - version: 10.2.1
      revision: r1
"""

PROFILE_YAML = """\
name: linux-gcc
os: linux
arch: x86_64
build_type: release
compilers:
  c:
    name: gcc
    version: "13.2"
  cpp:
    name: gcc
    version: "13.2"
    abi: libstdc++11
"""


@pytest.fixture
def package_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """A package directory with a recipe, a catalog and a build profile.

    Resolving it with the default mode locks fmt 10.2.1, libpng 1.6.43 and
    zlib 1.3.1.
    """
    pkg = tmp_path / "app"
    pkg.mkdir()
    (pkg / "depweave.yaml").write_text(RECIPE_YAML)
    (pkg / "catalog.yaml").write_text(CATALOG_YAML)
    (pkg / "profile.yaml").write_text(PROFILE_YAML)
    return pkg
