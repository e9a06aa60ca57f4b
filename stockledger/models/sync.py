"""
SyncJob / SyncJobLog models — outbound platform push tracking.
"""

from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stockledger.models.enums import LogLevel, SyncJobStatus, SyncJobType


class SyncJob(models.Model):
    """
    One run of a sync against one platform.

    LIFECYCLE: PENDING → PROCESSING → COMPLETED | FAILED

    A job that exhausts its retry budget stays FAILED and is picked up by
    ``resync_stock --failed``; it is never dropped.
    """

    job_type = models.CharField(
        max_length=30,
        choices=SyncJobType.choices,
        default=SyncJobType.SYNC_STOCK,
        verbose_name=_('Type'),
    )
    platform = models.CharField(max_length=50, db_index=True, verbose_name=_('Platform'))
    status = models.CharField(
        max_length=20,
        choices=SyncJobStatus.choices,
        default=SyncJobStatus.PENDING,
        db_index=True,
        verbose_name=_('Status'),
    )
    total_items = models.PositiveIntegerField(default=0)
    processed_items = models.PositiveIntegerField(default=0)
    failed_items = models.PositiveIntegerField(default=0)
    error_message = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Sync job')
        verbose_name_plural = _('Sync jobs')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['platform', 'status'], name='syncjob_platform_status_idx'),
        ]

    def start(self):
        self.status = SyncJobStatus.PROCESSING
        self.started_at = timezone.now()
        self.save(update_fields=['status', 'started_at'])

    def record_item(self, success: bool):
        """Count one processed item (atomic increment)."""
        fields = {'processed_items': F('processed_items') + 1}
        if not success:
            fields['failed_items'] = F('failed_items') + 1
        SyncJob.objects.filter(pk=self.pk).update(**fields)
        self.refresh_from_db(fields=['processed_items', 'failed_items'])

    def finish(self, error_message: str = ''):
        """COMPLETED when every item went through, FAILED otherwise."""
        self.status = SyncJobStatus.FAILED if self.failed_items else SyncJobStatus.COMPLETED
        self.error_message = error_message
        self.completed_at = timezone.now()
        self.save(update_fields=['status', 'error_message', 'completed_at'])

    def log(self, level: str, message: str, product=None) -> 'SyncJobLog':
        return SyncJobLog.objects.create(job=self, level=level, message=message, product=product)

    def __str__(self) -> str:
        return f"{self.job_type}@{self.platform} [{self.status}] {self.processed_items}/{self.total_items}"


class SyncJobLog(models.Model):
    """Level-tagged line attached to a sync job."""

    job = models.ForeignKey(
        SyncJob,
        on_delete=models.CASCADE,
        related_name='logs',
        verbose_name=_('Job'),
    )
    level = models.CharField(
        max_length=10,
        choices=LogLevel.choices,
        default=LogLevel.INFO,
        verbose_name=_('Level'),
    )
    message = models.TextField(verbose_name=_('Message'))
    product = models.ForeignKey(
        'stockledger.Product',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _('Sync log')
        verbose_name_plural = _('Sync logs')
        ordering = ['created_at', 'id']

    def __str__(self) -> str:
        return f"[{self.level}] {self.message}"
