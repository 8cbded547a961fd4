from django.contrib import admin

from .models import Event, EventParticipant


class EventParticipantInline(admin.TabularInline):
    model = EventParticipant
    extra = 0
    raw_id_fields = ('user',)
    readonly_fields = ('registered_at',)


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'scope', 'status', 'type', 'start_datetime', 'capacity', 'points', 'created_by')
    list_filter = ('scope', 'status', 'type')
    search_fields = ('title', 'description', 'created_by__username')
    date_hierarchy = 'start_datetime'
    raw_id_fields = ('created_by',)
    inlines = [EventParticipantInline]


@admin.register(EventParticipant)
class EventParticipantAdmin(admin.ModelAdmin):
    list_display = ('event', 'user', 'status', 'registered_at')
    list_filter = ('status',)
    search_fields = ('event__title', 'user__username')
    raw_id_fields = ('event', 'user')
