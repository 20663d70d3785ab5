"""Top-level package for the Budget Tracker.

The primary modules are:

* ``tracker`` - the ``BudgetTracker`` facade used by every page
* ``ledger`` - goals and the savings wallet
* ``archive`` - monthly archives
* ``derivations`` - pure functions computing totals, breakdowns and projections
* ``storage`` - key/value persistence (SQLite, JSON files or memory)

To run the app from the command line you can execute:

```bash
streamlit run budget_tracker/Home.py
```

or use ``run_budget_tracker.py`` in the project root.
"""

from .errors import (  # noqa: F401
    BudgetTrackerError,
    InsufficientBalanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .tracker import BudgetTracker  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "BudgetTracker",
    "BudgetTrackerError",
    "InsufficientBalanceError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
