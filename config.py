"""
Configuration settings for the Face Attendance service
"""
import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()

# Database configuration
DATABASE = os.environ.get('DATABASE_PATH', os.path.join(BASE_DIR, 'attendance.db'))

# Flask configuration
SECRET_KEY = os.environ.get('SECRET_KEY', 'change-this-to-a-random-secret-key-in-production')
DEBUG = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'
HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
PORT = int(os.environ.get('FLASK_PORT', 5000))

# Logging configuration
LOG_DIR = os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'logs'))
LOG_FILE = os.path.join(LOG_DIR, 'app.log')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# Face matching configuration
# Maximum Euclidean distance accepted as a positive identification. 0.6 is the
# calibrated value for 128-d dlib / face-api.js descriptors.
FACE_MATCH_THRESHOLD = float(os.environ.get('FACE_MATCH_THRESHOLD', '0.6'))
# Two candidates closer than this to the best distance are treated as a tie
FACE_MATCH_EPSILON = float(os.environ.get('FACE_MATCH_EPSILON', '1e-6'))
# Expected template length at enrollment; 0 disables the check
FACE_EMBEDDING_DIMENSION = int(os.environ.get('FACE_EMBEDDING_DIMENSION', '128'))
# Seconds the enrolled-template set is cached between reloads
FACE_CACHE_TTL = int(os.environ.get('FACE_CACHE_TTL', '300'))

# Attendance configuration
# Check-ins strictly after this local time of day are marked late
LATE_CUTOFF = os.environ.get('LATE_CUTOFF', '09:00')
# IANA zone name used for the attendance date key; empty means system local time
APP_TIMEZONE = os.environ.get('APP_TIMEZONE', '')

# Default admin account created by init_db
DEFAULT_ADMIN_USERNAME = os.environ.get('DEFAULT_ADMIN_USERNAME', 'admin')
DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD', 'admin123')

# Request size limit (base64 photos)
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB
