"""
Sync reconciler — pushes authoritative stock to external storefronts.

The local ledger is authoritative: a failed push never rolls anything
back. Pushes send the then-current stock (never a delta), so a push
superseded by a later write is harmless and the next one corrects it.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable

from django.db import connection

from stockledger.adapters.registry import PlatformRegistry, get_platform_registry
from stockledger.conf import stockledger_settings
from stockledger.exceptions import StockError, SyncPermanent, SyncTransient
from stockledger.models.enums import LogLevel, MatchKind, SyncJobType
from stockledger.models.product import Product
from stockledger.models.sync import SyncJob, SyncJobLog
from stockledger.protocols.platform import PlatformAdapter, ProductLookup, SyncResult

logger = logging.getLogger('stockledger')

__all__ = ['PlatformRegistry', 'SyncReconciler']


class SyncReconciler:
    """
    One push per (platform, product), each with its own retry budget.

    Args:
        registry: Platform adapters (default: built from settings)
        executor_factory: platform name -> Executor for enqueue(); default
            is a ThreadPoolExecutor of SYNC_WORKERS_PER_PLATFORM threads
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(self, registry: PlatformRegistry | None = None,
                 executor_factory: Callable[[str], Executor] | None = None,
                 sleep: Callable[[float], None] = time.sleep,
                 max_attempts: int | None = None,
                 backoff: float | None = None):
        self._registry = registry
        self._executor_factory = executor_factory
        self._close_connections = executor_factory is None
        self._sleep = sleep
        self._max_attempts = max_attempts
        self._backoff = backoff

        self._executors: dict[str, Executor] = {}
        self._executors_lock = threading.Lock()
        self._pending: set[tuple[str, int]] = set()
        self._pending_lock = threading.Lock()

    @property
    def registry(self) -> PlatformRegistry:
        if self._registry is None:
            self._registry = get_platform_registry()
        return self._registry

    @property
    def max_attempts(self) -> int:
        return max(1, self._max_attempts or stockledger_settings.SYNC_MAX_ATTEMPTS)

    @property
    def backoff(self) -> float:
        if self._backoff is not None:
            return self._backoff
        return stockledger_settings.SYNC_BACKOFF_SECONDS

    # ══════════════════════════════════════════════════════════════
    # SYNCHRONOUS PUSHES
    # ══════════════════════════════════════════════════════════════

    def push(self, platform: str, product, job: SyncJob | None = None) -> SyncResult:
        """
        Push a product's current stock to one platform.

        Without a job, a single-item SyncJob is created and finished.

        Raises:
            StockError('UNKNOWN_PLATFORM'): platform not registered
            StockError('PRODUCT_NOT_FOUND'): unknown product
        """
        adapter = self.registry.get(platform)
        product = self._fresh(product)

        own_job = job is None
        if own_job:
            job = SyncJob.objects.create(
                job_type=SyncJobType.SYNC_STOCK,
                platform=adapter.name,
                total_items=1,
            )
            job.start()

        result = self._push(adapter, product, job)

        if own_job:
            job.finish(error_message=result.error or '')
        return result

    def sync_product(self, product, platforms: list[str] | None = None) -> dict[str, SyncResult]:
        """
        Push to every platform (or the given ones), one SyncJob each.

        A failure on one platform does not affect the others.
        """
        names = platforms if platforms is not None else self.registry.names()
        return {name: self.push(name, product) for name in names}

    def sync_all(self, platforms: list[str] | None = None, products=None) -> dict[str, SyncJob]:
        """
        Full reconciliation cycle: one SyncJob per platform covering every product.

        Args:
            platforms: Platform names (default: all registered)
            products: Product queryset/iterable (default: active products)
        """
        names = platforms if platforms is not None else self.registry.names()
        items = list(products if products is not None else Product.objects.active().order_by('pk'))

        jobs = {}
        for name in names:
            adapter = self.registry.get(name)
            job = SyncJob.objects.create(
                job_type=SyncJobType.SYNC_STOCK,
                platform=adapter.name,
                total_items=len(items),
            )
            job.start()
            for product in items:
                self._push(adapter, self._fresh(product), job)
            job.finish(error_message=f"{job.failed_items} item(s) failed" if job.failed_items else '')
            jobs[name] = job

            logger.info(
                "sync.cycle.finished",
                extra={
                    "platform": name,
                    "total": job.total_items,
                    "failed": job.failed_items,
                    "status": job.status,
                },
            )
        return jobs

    # ══════════════════════════════════════════════════════════════
    # BACKGROUND PUSHES
    # ══════════════════════════════════════════════════════════════

    def enqueue(self, product_id) -> list[Future]:
        """
        Queue one push per registered platform.

        A push for the same (platform, product) that is queued but not yet
        started absorbs this one; it will read the newer stock anyway.
        """
        product_id = getattr(product_id, 'pk', product_id)
        futures = []
        for name in self.registry.names():
            key = (name, product_id)
            with self._pending_lock:
                if key in self._pending:
                    logger.debug("sync.push.coalesced", extra={"platform": name, "product_id": product_id})
                    continue
                self._pending.add(key)
            try:
                futures.append(self._executor(name).submit(self._run_queued, name, product_id))
            except Exception:
                with self._pending_lock:
                    self._pending.discard(key)
                raise
        return futures

    def on_stock_changed(self, product_id: int) -> None:
        """Ledger callback run after a stock change commits."""
        if not stockledger_settings.SYNC_ON_COMMIT or not len(self.registry):
            return
        self.enqueue(product_id)

    def _executor(self, platform: str) -> Executor:
        with self._executors_lock:
            executor = self._executors.get(platform)
            if executor is None:
                if self._executor_factory is not None:
                    executor = self._executor_factory(platform)
                else:
                    executor = ThreadPoolExecutor(
                        max_workers=stockledger_settings.SYNC_WORKERS_PER_PLATFORM,
                        thread_name_prefix=f"stockledger-sync-{platform}",
                    )
                self._executors[platform] = executor
            return executor

    def _run_queued(self, platform: str, product_id: int) -> SyncResult | None:
        with self._pending_lock:
            self._pending.discard((platform, product_id))
        try:
            return self.push(platform, product_id)
        except StockError as e:
            logger.warning(
                "sync.push.skipped",
                extra={"platform": platform, "product_id": product_id, "code": e.code},
            )
            return None
        except Exception:
            logger.exception("sync.push.crashed", extra={"platform": platform, "product_id": product_id})
            raise
        finally:
            if self._close_connections:
                connection.close()

    def shutdown(self, wait: bool = True) -> None:
        with self._executors_lock:
            executors, self._executors = list(self._executors.values()), {}
        for executor in executors:
            executor.shutdown(wait=wait)

    # ══════════════════════════════════════════════════════════════
    # RECOVERY
    # ══════════════════════════════════════════════════════════════

    def failed_targets(self, platform: str | None = None,
                       job_type: str = SyncJobType.SYNC_STOCK) -> list[tuple[str, int]]:
        """
        (platform, product_id) pairs whose latest push failed.

        A later successful push clears an earlier failure.
        """
        logs = SyncJobLog.objects.filter(
            job__job_type=job_type,
            product__isnull=False,
            level__in=[LogLevel.INFO, LogLevel.ERROR],
        )
        if platform:
            logs = logs.filter(job__platform=platform)

        failing: dict[tuple[str, int], bool] = {}
        for job_platform, product_id, level in logs.order_by('created_at', 'id').values_list(
            'job__platform', 'product_id', 'level'
        ):
            failing[(job_platform, product_id)] = level == LogLevel.ERROR

        return [key for key, failed in failing.items() if failed]

    def resync_failed(self, platform: str | None = None,
                      job_type: str = SyncJobType.SYNC_STOCK) -> list[SyncResult]:
        """Re-push every product whose latest push failed."""
        results = []
        for name, product_id in self.failed_targets(platform, job_type):
            if name not in self.registry:
                logger.warning("sync.resync.unknown_platform", extra={"platform": name})
                continue
            try:
                results.append(self.push(name, product_id))
            except StockError as e:
                logger.warning(
                    "sync.resync.skipped",
                    extra={"platform": name, "product_id": product_id, "code": e.code},
                )
        logger.info("sync.resync.finished", extra={"count": len(results)})
        return results

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    def _fresh(self, product) -> Product:
        product_id = getattr(product, 'pk', product)
        try:
            return Product.objects.get(pk=product_id)
        except Product.DoesNotExist:
            raise StockError('PRODUCT_NOT_FOUND', product_id=product_id) from None

    def _resolve_identifier(self, adapter: PlatformAdapter, product: Product) -> tuple[str, MatchKind]:
        """SKU first, product name as fallback."""
        if isinstance(adapter, ProductLookup):
            if product.sku and adapter.find_product(product.sku, by='sku'):
                return product.sku, MatchKind.EXACT_SKU
            if product.name and adapter.find_product(product.name, by='name'):
                return product.name, MatchKind.FUZZY_NAME
            raise SyncPermanent('NOT_FOUND', platform=adapter.name, sku=product.sku, name=product.name)

        if product.sku:
            return product.sku, MatchKind.EXACT_SKU
        if product.name:
            return product.name, MatchKind.FUZZY_NAME
        raise SyncPermanent('NOT_FOUND', platform=adapter.name, product_id=product.pk)

    def _push(self, adapter: PlatformAdapter, product: Product, job: SyncJob) -> SyncResult:
        quantity = product.current_stock
        identifier = None
        match_kind = None
        error = None
        attempts = 0

        for attempt in range(1, self.max_attempts + 1):
            attempts = attempt
            try:
                identifier, match_kind = self._resolve_identifier(adapter, product)
                adapter.set_stock(identifier, quantity)
                error = None
                break
            except SyncTransient as e:
                error = e
                if attempt < self.max_attempts:
                    delay = self.backoff * (2 ** (attempt - 1))
                    logger.warning(
                        "sync.push.retry",
                        extra={
                            "platform": adapter.name,
                            "sku": product.sku,
                            "attempt": attempt,
                            "max_attempts": self.max_attempts,
                            "delay": delay,
                            "code": e.code,
                        },
                    )
                    self._sleep(delay)
            except SyncPermanent as e:
                error = e
                break
            except Exception as e:
                # Adapter bug: contained to this platform
                logger.exception("sync.push.crashed", extra={"platform": adapter.name, "sku": product.sku})
                error = e
                break

        if error is None:
            if match_kind == MatchKind.FUZZY_NAME:
                logger.warning(
                    "sync.match.fuzzy",
                    extra={"platform": adapter.name, "sku": product.sku, "matched_name": identifier},
                )
                job.log(
                    LogLevel.WARN,
                    f"{product.sku or product.pk}: matched on {adapter.name} by name "
                    f"'{identifier}' ({MatchKind.FUZZY_NAME})",
                    product=product,
                )
            job.record_item(success=True)
            job.log(
                LogLevel.INFO,
                f"{product.sku or product.pk}: stock set to {quantity} on {adapter.name} "
                f"({match_kind}, attempt {attempts})",
                product=product,
            )
            logger.info(
                "sync.push.ok",
                extra={
                    "platform": adapter.name,
                    "sku": product.sku,
                    "qty": quantity,
                    "match": str(match_kind),
                    "attempts": attempts,
                },
            )
            return SyncResult(
                platform=adapter.name,
                success=True,
                match_kind=str(match_kind),
                identifier=identifier,
                quantity=quantity,
                attempts=attempts,
                job_id=job.pk,
            )

        message = str(error)
        job.record_item(success=False)
        job.log(
            LogLevel.ERROR,
            f"{product.sku or product.pk}: push to {adapter.name} failed after "
            f"{attempts} attempt(s): {message}",
            product=product,
        )
        logger.error(
            "sync.push.failed",
            extra={
                "platform": adapter.name,
                "sku": product.sku,
                "attempts": attempts,
                "error": message,
                "transient": getattr(error, 'transient', False),
            },
        )
        return SyncResult(
            platform=adapter.name,
            success=False,
            error=message,
            match_kind=str(match_kind) if match_kind else None,
            identifier=identifier,
            quantity=quantity,
            attempts=attempts,
            job_id=job.pk,
        )
