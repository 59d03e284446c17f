import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler


logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def sweep_idle_workspaces(app) -> int:
    services = app.extensions["bookmarkly"]
    return services.workspaces.sweep_idle(app.config["WORKSPACE_IDLE_MINUTES"] * 60)


def run_housekeeping(app):
    with app.app_context():
        closed = sweep_idle_workspaces(app)
        purged = app.extensions["bookmarkly"].backend.auth.purge_expired()
        if closed or purged:
            logger.info(
                "Housekeeping closed %d workspaces and purged %d sessions",
                closed,
                purged,
            )


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["HOUSEKEEPING_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_housekeeping,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="housekeeping",
            replace_existing=True,
        )
        scheduler.start()
