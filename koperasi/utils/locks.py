import threading
from contextlib import contextmanager


class LoanLockRegistry:
    """One mutex per loan_id, created on first use.

    Loans are independent aggregates, so holding the lock of one loan never
    blocks writes to another.

    Locks are never evicted: a caller may still hold or wait on one, and the
    registry grows by one small lock per loan written during the process
    lifetime.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def lock_for(self, loan_id) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(loan_id)
            if lock is None:
                lock = self._locks[loan_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, loan_id):
        lock = self.lock_for(loan_id)
        with lock:
            yield


loan_locks = LoanLockRegistry()
