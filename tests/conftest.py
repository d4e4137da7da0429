"""
Pytest configuration for dotlink tests.

Provides a throwaway source/destination pair and helpers to populate both
sides and snapshot the destination.
"""

import os

import pytest

from dotlink.util import set_debug_level


class DeployTestEnv:
    """Test environment with a source tree and a destination tree."""

    def __init__(self, tmpdir):
        self.tmpdir = str(tmpdir)
        self.source_dir = os.path.join(self.tmpdir, "dotfiles")
        self.dest_dir = os.path.join(self.tmpdir, "home")
        os.makedirs(self.source_dir)
        os.makedirs(self.dest_dir)

    def src(self, rel):
        return os.path.join(self.source_dir, *rel.split("/"))

    def dst(self, rel):
        return os.path.join(self.dest_dir, *rel.split("/"))

    def create_source(self, files):
        """
        Populate the source tree.

        files: dict mapping relative paths to content (or None for directories)
        """
        for path, content in files.items():
            self._write(self.src(path), content)

    def create_dest_file(self, path, content):
        self._write(self.dst(path), content)

    def create_dest_dir(self, path):
        os.makedirs(self.dst(path), exist_ok=True)

    def create_dest_link(self, path, target):
        full_path = self.dst(path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        os.symlink(target, full_path)

    def read(self, path):
        with open(path, "r") as f:
            return f.read()

    def get_filesystem_state(self, root=None):
        """
        Snapshot a tree (the destination by default).

        Returns a dict mapping relative paths to tuples:
        - ('dir',) for directories
        - ('file', content) for files
        - ('link', target) for symlinks
        """
        root = root or self.dest_dir
        state = {}
        for dir_path, dirs, files in os.walk(root, followlinks=False):
            rel_root = os.path.relpath(dir_path, root)
            for name in sorted(dirs) + sorted(files):
                full_path = os.path.join(dir_path, name)
                rel = name if rel_root == "." else os.path.join(rel_root, name)
                if os.path.islink(full_path):
                    state[rel] = ("link", os.readlink(full_path))
                elif os.path.isdir(full_path):
                    state[rel] = ("dir",)
                else:
                    state[rel] = ("file", self.read(full_path))
        return state

    @staticmethod
    def _write(full_path, content):
        if content is None:
            os.makedirs(full_path, exist_ok=True)
            return
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w") as f:
            f.write(content)


@pytest.fixture
def env(tmp_path):
    """Create a fresh deploy test environment."""
    return DeployTestEnv(tmp_path)


@pytest.fixture(autouse=True)
def quiet_debug():
    """Reset verbosity between tests."""
    set_debug_level(0)
    yield
    set_debug_level(0)


class RecordingRunner:
    """Stands in for subprocess.run in elevation tests."""

    def __init__(self, returncode=0, side_effect=None, error=None):
        self.returncode = returncode
        self.side_effect = side_effect
        self.error = error
        self.commands = []

    def __call__(self, command, check=False):
        self.commands.append(list(command))
        if self.error is not None:
            raise self.error
        if self.side_effect is not None:
            self.side_effect()

        class Result:
            pass

        result = Result()
        result.returncode = self.returncode
        return result
