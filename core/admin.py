from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import Classroom, RegistrationRequest, User
from .services import ensure_classroom


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = (
        'username',
        'get_full_name',
        'email',
        'role',
        'tutor',
        'points',
        'is_active',
    )
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('username', 'email', 'first_name', 'last_name')
    ordering = ('-date_joined',)
    # Balances move only through the points ledger
    readonly_fields = ('date_joined', 'last_login', 'points')
    raw_id_fields = ('tutor',)

    fieldsets = (
        (None, {'fields': ('username', 'password')}),
        ('Personal Info', {'fields': ('first_name', 'last_name', 'email')}),
        ('Role', {'fields': ('role', 'tutor', 'points')}),
        ('Permissions', {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            )
        }),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'first_name',
                'last_name',
                'password1',
                'password2',
                'role',
                'tutor',
            ),
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        # Existing users change role through core.services.change_role
        if obj is not None:
            return self.readonly_fields + ('role',)
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        if obj.role == User.Role.TUTOR:
            ensure_classroom(obj)

    def get_full_name(self, obj):
        return obj.get_full_name()
    get_full_name.short_description = 'Full Name'


@admin.register(Classroom)
class ClassroomAdmin(admin.ModelAdmin):
    list_display = ('name', 'tutor', 'student_count', 'created_at')
    search_fields = ('name', 'tutor__username')

    def student_count(self, obj):
        return obj.tutor.students.count()
    student_count.short_description = 'Students'


@admin.register(RegistrationRequest)
class RegistrationRequestAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'requested_role', 'status', 'created_at', 'processed_at')
    list_filter = ('status', 'requested_role')
    search_fields = ('username', 'email', 'first_name', 'last_name')
    readonly_fields = ('password', 'created_at', 'processed_at')
