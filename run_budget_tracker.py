#!/usr/bin/env python3
"""Direct launcher for the Budget Tracker.

This script launches Streamlit with the budget_tracker directory as the app root,
enabling automatic page discovery from the pages/ subdirectory.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
app_dir = project_root / "budget_tracker"

if __name__ == "__main__":
    os.chdir(app_dir)
    sys.path.insert(0, str(project_root))
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(project_root), env.get("PYTHONPATH")]))
    subprocess.run([sys.executable, "-m", "streamlit", "run", "Home.py"], env=env)
