"""Pytest configuration and fixtures."""

import os
import stat
import sys
from pathlib import Path
from typing import Callable

import pytest

# Allow running the suite from a checkout without installing the package
_src_path = Path(__file__).resolve().parent.parent / "src"
if _src_path.exists() and str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from chromium_runtime.infrastructure.config.settings import Settings


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without child processes")
    config.addinivalue_line("markers", "integration: tests that spawn real child processes")


FAKE_PDF_BROWSER = r"""#!/bin/sh
# Stand-in for the browser: honours the output flags and reports its environment
for arg in "$@"; do
  case "$arg" in
    --print-to-pdf=*) printf '%%PDF-1.4 fake document' > "${arg#--print-to-pdf=}" ;;
    --screenshot=*) printf '\211PNG fake' > "${arg#--screenshot=}" ;;
    --dump-dom) printf '<html><body>dom</body></html>' ;;
  esac
done
echo "HOME=$HOME"
echo "LD_LIBRARY_PATH=$LD_LIBRARY_PATH"
for last in "$@"; do :; done
echo "TASK=$last"
"""


@pytest.fixture
def make_browser(tmp_path: Path) -> Callable[..., Path]:
    """Write an executable shell script standing in for the browser binary."""
    counter = {"n": 0}

    def _make(body: str, name: str = "", executable: bool = True) -> Path:
        counter["n"] += 1
        script = tmp_path / "bin" / (name or f"chrome-{counter['n']}")
        script.parent.mkdir(parents=True, exist_ok=True)
        if not body.startswith("#!"):
            body = "#!/bin/sh\n" + body
        script.write_text(body)
        mode = stat.S_IRUSR | stat.S_IWUSR
        if executable:
            mode |= stat.S_IXUSR
        os.chmod(script, mode)
        return script

    return _make


@pytest.fixture
def fake_browser(make_browser) -> Path:
    """A browser stand-in that writes PDF/PNG output and echoes its context."""
    return make_browser(FAKE_PDF_BROWSER, name="chrome")


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def settings_factory(scratch_root: Path) -> Callable[..., Settings]:
    """Build Settings isolated from the ambient CHROMIUM_* environment."""

    def _settings(**overrides) -> Settings:
        values = {
            "artifact_path": "/nonexistent/chrome",
            "artifact_candidates": [],
            "library_paths": ["/opt/chromium/lib"],
            "scratch_directory": str(scratch_root),
            "timeout_millis": 10000,
            "grace_period_millis": 500,
            "use_default_flags": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _settings
