# lending/tasks/scheduler.py
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Starts the expiry sweep on an interval.
    - skipped when SCHEDULER_ENABLED is off (tests, one-off CLI runs)
    - the Werkzeug debug reloader runs two processes; only the real one schedules
    - several app processes may each run a scheduler; the sweep's conditional
      writes keep that correct
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] Disabled by config.")
        return None

    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # imported here to keep the task module out of app import time
    from lending.tasks.expiry_sweep import run_expiry_sweep_job

    minutes = app.config["SWEEP_INTERVAL_MINUTES"]
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        func=run_expiry_sweep_job,
        args=[app],
        trigger=IntervalTrigger(minutes=minutes),
        id="expiry_sweep_job",
        replace_existing=True,
        max_instances=1,        # do not overlap with itself
        coalesce=True,          # missed runs collapse into one
        misfire_grace_time=120
    )

    scheduler.start()
    app.logger.info(f"[scheduler] Expiry sweep started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler
    return scheduler


def stop_scheduler(app):
    sch = app.extensions.get("apscheduler")
    if sch and getattr(sch, "running", False):
        sch.shutdown(wait=False)
        app.logger.info("[scheduler] Scheduler shutdown.")
