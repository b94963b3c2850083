"""Top-level package for the Budget Planner ledger.

The primary modules are:

* ``db`` - the owner-scoped SQLite store
* ``balances`` - realized account balances with per-category breakdowns
* ``expander`` - turns budget templates into a month's planned transactions
* ``reports`` - account, month and category summaries built on the above
* ``service`` - the validated, owner-scoped operations a transport layer calls

Typical use:

```python
from budget_planner import open_service

service = open_service('user-1')
try:
    for summary in service.account_summary():
        print(summary.to_dict())
finally:
    service.store.close()
```
"""

from .db import LedgerStore  # noqa: F401  # re-exported for convenience
from .errors import ConflictError, LedgerError, NotFoundError, StoreError, ValidationError  # noqa: F401
from .service import LedgerService, open_service  # noqa: F401

__all__ = [
    "LedgerStore",
    "LedgerService",
    "open_service",
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StoreError",
]
