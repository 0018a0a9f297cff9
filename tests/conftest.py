import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep the developer's environment out of the settings loaded at import time.
for _name in (
    "JINJA_COLLECT_ROOT",
    "JINJA_COLLECT_SECURITY_MODE",
    "JINJA_COLLECT_STRICT_UNDEFINED",
    "JINJA_COLLECT_TEMPLATE_DIRS",
    "JINJA_COLLECT_LOG_LEVEL",
    "JINJA_COLLECT_EXTRA_GLOBALS",
):
    os.environ.pop(_name, None)
