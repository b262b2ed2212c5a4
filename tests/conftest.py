"""Shared test setup: keep log files out of the user's home directory."""

import os
import tempfile

os.environ.setdefault("CHARTBIND_DIR", tempfile.mkdtemp(prefix="chartbind-test-"))
