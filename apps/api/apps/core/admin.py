from django.contrib import admin
from .models import Company, Center


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['company_code', 'company_name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['company_code', 'company_name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Center)
class CenterAdmin(admin.ModelAdmin):
    list_display = ['center_code', 'center_name', 'company', 'city', 'is_active', 'created_at']
    list_filter = ['is_active', 'company']
    search_fields = ['center_code', 'center_name', 'city']
    readonly_fields = ['created_at', 'updated_at']
