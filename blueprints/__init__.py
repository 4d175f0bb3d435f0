"""
Blueprints for the Face Attendance service
"""
from .auth import auth_bp
from .employees import employees_bp
from .api import api_bp
from .reports import reports_bp

__all__ = ['auth_bp', 'employees_bp', 'api_bp', 'reports_bp']
