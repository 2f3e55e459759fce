"""Background scheduler for automated tasks"""

import asyncio
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from .library_service import LibraryService
from .log_service import log_service
from .state_store import StateStore
from .tls_reloader import TLSReloader


class SchedulerService:
    """Manages scheduled background tasks"""

    def __init__(
        self,
        store: StateStore,
        library: Optional[LibraryService] = None,
        tls: Optional[TLSReloader] = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self.store = store
        self.library = library
        self.tls = tls
        self.is_running = False

    async def start(self):
        """Start the scheduler"""
        if self.is_running:
            return

        log_service.info("Starting background scheduler")
        self.configure_jobs()
        self.scheduler.start()
        self.is_running = True
        log_service.info("Background scheduler started successfully")

    async def stop(self):
        """Stop the scheduler and write out whatever is still cached"""
        if not self.is_running:
            return

        log_service.info("Stopping background scheduler")
        try:
            # Shutdown scheduler in executor to avoid blocking
            loop = asyncio.get_event_loop()
            await asyncio.wait_for(
                loop.run_in_executor(None, self.scheduler.shutdown, False), timeout=2.0
            )
        except asyncio.TimeoutError:
            log_service.error("Scheduler shutdown timed out, forcing stop")
        except Exception as e:
            log_service.error(f"Error stopping scheduler: {e}")
        finally:
            self.is_running = False

        await self._flush_user_data()
        await self._flush_access_tokens()
        log_service.info("Background scheduler stopped")

    def configure_jobs(self):
        """Register the interval jobs"""
        self.scheduler.add_job(
            self._flush_user_data,
            trigger=IntervalTrigger(seconds=settings.USERDATA_FLUSH_INTERVAL),
            id="flush_userdata",
            name="Write user data to database",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._flush_access_tokens,
            trigger=IntervalTrigger(seconds=settings.ACCESSTOKEN_FLUSH_INTERVAL),
            id="flush_accesstokens",
            name="Write access tokens to database",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if self.library is not None:
            self.scheduler.add_job(
                self._run_rescan,
                trigger=IntervalTrigger(seconds=settings.RESCAN_INTERVAL),
                id="rescan",
                name="Rescan collections",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        if self.tls is not None:
            self.scheduler.add_job(
                self._run_tls_reload,
                trigger=IntervalTrigger(seconds=settings.TLS_RELOAD_INTERVAL),
                id="tls_reload",
                name="Reload TLS certificate",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

    def trigger(self, job_id: str) -> bool:
        """Run a job as soon as possible"""
        job = self.scheduler.get_job(job_id)
        if job is None:
            return False
        job.modify(next_run_time=datetime.now(job.trigger.timezone))
        return True

    async def _flush_user_data(self):
        try:
            count = await self.store.flush_user_data()
            if count:
                log_service.get_logger("db").debug(f"Flushed {count} user data entries")
        except Exception as e:
            log_service.error(f"User data flush failed: {e}")

    async def _flush_access_tokens(self):
        try:
            await self.store.flush_access_tokens()
        except Exception as e:
            log_service.error(f"Access token flush failed: {e}")

    async def _run_rescan(self):
        try:
            await self.library.rescan()
        except Exception as e:
            log_service.error(f"Rescan failed: {e}")

    async def _run_tls_reload(self):
        await asyncio.to_thread(self.tls.reload)
