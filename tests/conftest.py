"""Environment shared across the test suite; set before ``config`` is imported."""

import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix='game-enricher-tests-')

os.environ.setdefault('API_KEY', 'test-key')
os.environ.setdefault('LOG_DIR', os.path.join(_TEST_ROOT, 'logs'))
os.environ.setdefault('DB_PATH', os.path.join(_TEST_ROOT, 'games.db'))
os.environ.setdefault('COVERS_DIR', os.path.join(_TEST_ROOT, 'covers'))
