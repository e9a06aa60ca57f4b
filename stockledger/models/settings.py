"""
ApiSetting model — key/value settings store.

Holds the hot-reloadable stock deduction settings and the
multi-warehouse switch. Only DeductionSettingsProvider and the
warehouse service write here.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class ApiSetting(models.Model):
    """Persisted setting (string value)."""

    setting_key = models.CharField(max_length=100, unique=True, verbose_name=_('Key'))
    setting_value = models.TextField(blank=True, default='', verbose_name=_('Value'))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Setting')
        verbose_name_plural = _('Settings')
        ordering = ['setting_key']

    @classmethod
    def get_value(cls, key: str, default: str | None = None) -> str | None:
        row = cls.objects.filter(setting_key=key).values_list('setting_value', flat=True).first()
        return row if row is not None else default

    @classmethod
    def set_value(cls, key: str, value: str) -> None:
        cls.objects.update_or_create(setting_key=key, defaults={'setting_value': value})

    def __str__(self) -> str:
        return f"{self.setting_key}={self.setting_value}"
