"""drupal2wp data models."""

from drupal2wp.models.db import Base

__all__ = ["Base"]
