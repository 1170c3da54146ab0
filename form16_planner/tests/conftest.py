"""
Test configuration for the Form 16 planner tests.

sys.path is configured so BOTH import styles resolve:
  - 'from form16_planner.agents...' (production imports, using project root)
  - 'from tests.sample_documents...' (shared fixtures, using form16_planner/ as root)

This handles pytest being run from either the project root or form16_planner/.
"""
import sys
from pathlib import Path

_package_dir = Path(__file__).parent.parent       # .../form16_planner/
_project_root = _package_dir.parent               # project root

for _path in (_project_root, _package_dir):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))
