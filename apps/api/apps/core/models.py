"""
Core master data: company, center.

Centers own machines, patients and appointments; capacity is always
computed per center.
"""
from django.db import models


class Company(models.Model):
    """
    Operating company (hospital group / scheme operator).

    Master data: soft-deleted through is_active.
    """
    company_code = models.CharField(max_length=20, unique=True)
    company_name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'company'
        verbose_name = 'Company'
        verbose_name_plural = 'Companies'
        ordering = ['company_name']

    def __str__(self):
        return self.company_name


class Center(models.Model):
    """
    Dialysis center.

    A center's active dialysis machines bound how many slots may overlap
    at any moment on its calendar.
    """
    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name='centers'
    )
    center_code = models.CharField(max_length=20, unique=True)
    center_name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'center'
        verbose_name = 'Center'
        verbose_name_plural = 'Centers'
        ordering = ['center_name']
        indexes = [
            models.Index(fields=['company'], name='idx_center_company'),
            models.Index(fields=['is_active'], name='idx_center_active'),
        ]

    def __str__(self):
        return self.center_name

    @property
    def initials(self):
        """
        Up to three upper-case initials of the center name.

        "Nephro Dialysis Centre" -> "NDC"; empty names fall back to "CTR".
        """
        words = self.center_name.split()
        if not words:
            return 'CTR'
        return ''.join(word[0] for word in words).upper()[:3]
