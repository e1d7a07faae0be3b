"""
Test configuration to ensure the repository root is importable as a module path.

This makes `import fft_oracle` and `import gpu_vkfft_engine` work when running
`pytest` from the repo root without installing the package.
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def pool():
    from concurrent.futures import ThreadPoolExecutor

    with ThreadPoolExecutor(max_workers=2) as executor:
        yield executor
