# loyaltypoints/models.py
from django.conf import settings
from django.db import models


class PointsTransactionQuerySet(models.QuerySet):
    def awards(self):
        return self.filter(type=PointsTransaction.Type.AWARD)

    def redemptions(self):
        return self.filter(type=PointsTransaction.Type.REDEEM)

    def total(self):
        return self.aggregate(total=models.Sum('points'))['total'] or 0

    def update(self, **kwargs):
        raise TypeError("Points transactions are append-only.")

    def delete(self):
        raise TypeError("Points transactions are append-only.")


class PointsTransaction(models.Model):
    """An append-only log of every points movement. Balances are derived from it."""

    class Type(models.TextChoices):
        AWARD = 'AWARD', 'Award'
        REDEEM = 'REDEEM', 'Redeem'

    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='points_received',
    )
    # The tutor or admin who caused the movement
    tutor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='points_given',
    )
    # Always positive; the direction comes from `type`
    points = models.PositiveIntegerField()
    type = models.CharField(max_length=10, choices=Type.choices)
    reason = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PointsTransactionQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(points__gt=0), name='points_transaction_positive'),
        ]
        indexes = [
            models.Index(fields=['student', 'type'], name='ledger_student_type_idx'),
        ]

    def __str__(self):
        return f"{self.student}: {self.signed_points} points for {self.reason}"

    @property
    def signed_points(self):
        return self.points if self.type == self.Type.AWARD else -self.points

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise TypeError("Points transactions are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Points transactions are append-only.")
