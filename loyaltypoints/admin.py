from django.contrib import admin

from .models import PointsTransaction


@admin.register(PointsTransaction)
class PointsTransactionAdmin(admin.ModelAdmin):
    list_display = ('student', 'type', 'points', 'tutor', 'reason', 'created_at')
    list_filter = ('type', 'created_at')
    search_fields = ('student__username', 'tutor__username', 'reason')
    readonly_fields = ('student', 'tutor', 'points', 'type', 'reason', 'created_at')
    date_hierarchy = 'created_at'

    # The ledger is append-only; rows come from the points services
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
