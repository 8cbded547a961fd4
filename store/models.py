from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class StoreItem(models.Model):
    tutor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='store_items',
        limit_choices_to={'role': 'TUTOR'},
    )
    name = models.CharField(max_length=255)
    description = models.TextField()
    image_url = models.URLField(max_length=500, blank=True)
    points_required = models.PositiveIntegerField()
    available_quantity = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tutor', 'name'], name='unique_item_name_per_tutor'),
            models.CheckConstraint(condition=models.Q(points_required__gt=0), name='item_points_required_positive'),
        ]

    def __str__(self):
        return f"{self.name} ({self.points_required} pts)"

    @property
    def in_stock(self):
        return self.available_quantity > 0

    def clean(self):
        if self.points_required is not None and self.points_required <= 0:
            raise ValidationError({'points_required': 'Points required must be greater than 0'})


class ItemRequest(models.Model):
    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        APPROVED = 'APPROVED', 'Approved'
        REJECTED = 'REJECTED', 'Rejected'

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='item_requests',
    )
    # Copied from the student at submission so reassignment does not move open requests
    tutor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='received_item_requests',
    )
    item = models.ForeignKey(StoreItem, on_delete=models.CASCADE, related_name='requests')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    # Price at submission time
    points_spent = models.PositiveIntegerField()
    note = models.TextField(blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_item_requests',
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tutor', 'status'], name='request_tutor_status_idx'),
        ]

    def __str__(self):
        return f"{self.student} -> {self.item.name} ({self.get_status_display()})"

    @property
    def is_settled(self):
        return self.status != self.Status.PENDING
