from django.contrib import admin

from .models import ItemRequest, StoreItem


@admin.register(StoreItem)
class StoreItemAdmin(admin.ModelAdmin):
    list_display = ('name', 'tutor', 'points_required', 'available_quantity', 'created_at')
    list_filter = ('tutor',)
    search_fields = ('name', 'description', 'tutor__username')
    raw_id_fields = ('tutor',)


@admin.register(ItemRequest)
class ItemRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'item', 'tutor', 'status', 'points_spent', 'created_at', 'processed_at')
    list_filter = ('status', 'created_at')
    search_fields = ('student__username', 'tutor__username', 'item__name')
    # Status changes go through the approval workflow so stock and points stay consistent
    readonly_fields = (
        'student', 'tutor', 'item', 'status', 'points_spent',
        'processed_by', 'processed_at', 'created_at', 'updated_at',
    )

    def has_add_permission(self, request):
        return False
