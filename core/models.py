from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

# Largest value an integer column holds on every supported database
POINTS_LIMIT = 2147483647


class CustomUserManager(BaseUserManager):
    def create_user(self, username, email, password=None, **extra_fields):
        if not username:
            raise ValueError('Username is required')
        if not email:
            raise ValueError('Email is required')

        user = self.model(
            username=username.strip(),
            email=self.normalize_email(email).lower().strip(),
            **extra_fields
        )
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', User.Role.ADMIN)

        return self.create_user(username, email, password, **extra_fields)

    def students(self):
        return self.filter(role=User.Role.STUDENT)

    def tutors(self):
        return self.filter(role=User.Role.TUTOR)


class User(AbstractBaseUser, PermissionsMixin):
    class Role(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        TUTOR = 'TUTOR', 'Tutor'
        STUDENT = 'STUDENT', 'Student'

    username = models.CharField(max_length=150, unique=True)
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)

    role = models.CharField(max_length=10, choices=Role.choices, default=Role.STUDENT)
    tutor = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='students',
        limit_choices_to={'role': Role.TUTOR},
    )
    # Cached projection of the points ledger, kept in lockstep by loyaltypoints.services
    points = models.IntegerField(default=0)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = CustomUserManager()

    USERNAME_FIELD = 'username'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['email']

    class Meta:
        ordering = ['-date_joined']
        constraints = [
            models.CheckConstraint(condition=models.Q(points__gte=0), name='user_points_non_negative'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.username})"

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    @property
    def is_tutor(self):
        return self.role == self.Role.TUTOR

    @property
    def is_student(self):
        return self.role == self.Role.STUDENT

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.username

    def get_short_name(self):
        return self.first_name or self.username

    def clean(self):
        super().clean()
        self.email = (self.email or '').lower().strip()

        if self.role != self.Role.STUDENT and self.tutor_id:
            raise ValidationError({'tutor': 'Only students can be assigned to a tutor.'})

        if self.tutor_id and self.tutor.role != self.Role.TUTOR:
            raise ValidationError({'tutor': 'Assigned tutor must have the tutor role.'})

        if self.points is not None and self.points < 0:
            raise ValidationError({'points': 'Points balance cannot be negative.'})


class Classroom(models.Model):
    tutor = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='classroom',
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class RegistrationRequest(models.Model):
    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        APPROVED = 'APPROVED', 'Approved'
        REJECTED = 'REJECTED', 'Rejected'

    REQUESTABLE_ROLES = (User.Role.TUTOR, User.Role.STUDENT)

    username = models.CharField(max_length=150)
    email = models.EmailField()
    # Hashed with make_password before it is stored
    password = models.CharField(max_length=128)
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    requested_role = models.CharField(max_length=10, choices=User.Role.choices, default=User.Role.STUDENT)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    rejection_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.username} -> {self.requested_role} ({self.get_status_display()})"

    def clean(self):
        super().clean()
        if self.requested_role not in self.REQUESTABLE_ROLES:
            raise ValidationError({'requested_role': 'Only tutor or student accounts can be requested.'})
