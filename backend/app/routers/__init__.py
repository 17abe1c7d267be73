# API Routers
from app.routers import reservations, public, resources, history

__all__ = ['reservations', 'public', 'resources', 'history']
