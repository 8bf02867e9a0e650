# lending/tasks/expiry_sweep.py
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from lending.errors import InvalidTransition, LostRace
from lending.repositories.borrow_repo import BorrowRepo
from lending.services.borrow_state_machine import SWEEPER_REJECT_NOTE, BorrowStateMachine
from lending.utils import clock


@dataclass
class SweepResult:
    scanned: int = 0
    rejected: int = 0
    skipped: int = 0
    failed: int = 0


def sweep_expired_pending(now: datetime = None, expiry_hours: int = None) -> SweepResult:
    """
    Rejects every PENDING borrow created at or before now - expiry_hours.
    - each record is its own transaction, so one failure never aborts the rest
    - the write is conditional on status=pending, so a reader cancelling or
      staff approving at the same moment simply wins and the record is skipped
    - running it twice rejects nothing new
    """
    now = now or clock.utcnow()
    if expiry_hours is None:
        expiry_hours = current_app.config["PENDING_EXPIRY_HOURS"]
    cutoff = now - timedelta(hours=expiry_hours)
    note = SWEEPER_REJECT_NOTE.format(hours=expiry_hours)

    result = SweepResult()
    ids = BorrowRepo.find_expired_pending_ids(cutoff)
    result.scanned = len(ids)

    for borrow_id in ids:
        try:
            borrow = BorrowRepo.get(borrow_id)
            if not borrow:
                result.skipped += 1
                continue
            BorrowStateMachine.reject(borrow, now, note=note)
            BorrowRepo.commit()
            result.rejected += 1
        except (LostRace, InvalidTransition) as e:
            # someone else moved it first
            BorrowRepo.rollback()
            result.skipped += 1
            current_app.logger.info(f"[sweeper] borrow={borrow_id} skipped: {e}")
        except Exception as e:
            BorrowRepo.rollback()
            result.failed += 1
            current_app.logger.exception(f"[sweeper] borrow={borrow_id} failed: {e}")

    current_app.logger.info(
        f"[sweeper] cutoff={cutoff.isoformat()} scanned={result.scanned} "
        f"rejected={result.rejected} skipped={result.skipped} failed={result.failed}"
    )
    return result


def run_expiry_sweep_job(app):
    with app.app_context():
        try:
            return sweep_expired_pending()
        except Exception as e:
            BorrowRepo.rollback()
            current_app.logger.exception(f"[sweeper] Sweep aborted: {e}")
            return None
