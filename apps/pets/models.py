"""Pet models for Petcare."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Pet(models.Model):
    """Mascota registrada en una cuenta."""

    class Species(models.TextChoices):
        DOG = "dog", _("Perro")
        CAT = "cat", _("Gato")
        BIRD = "bird", _("Ave")
        OTHER = "other", _("Otro")

    account = models.ForeignKey(
        "users.Account",
        on_delete=models.CASCADE,
        related_name="pets",
    )
    name = models.CharField(max_length=100)
    species = models.CharField(max_length=20, choices=Species.choices, default=Species.DOG)
    breed = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Mascota")
        verbose_name_plural = _("Mascotas")
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_species_display()})"
