# -*- coding: utf-8 -*-
"""
backend/app/modules/notifications/__init__.py

Notificaciones in-app (colaborador de billing: aviso post-liquidación).
"""

from .models import Notification
from .service import NotificationService, vote_purchase_reference

__all__ = ["Notification", "NotificationService", "vote_purchase_reference"]
