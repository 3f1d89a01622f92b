"""Application configuration"""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    DEFAULT_LANG = "en"
    SUPPORTED_LANGS = ("en", "ar")
    # Firebase Admin credentials (service account fields or a key file)
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID', '')
    FIREBASE_CLIENT_EMAIL = os.getenv('FIREBASE_CLIENT_EMAIL', '')
    FIREBASE_PRIVATE_KEY = os.getenv('FIREBASE_PRIVATE_KEY', '')
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET', '')
    GOOGLE_APPLICATION_CREDENTIALS = os.getenv('GOOGLE_APPLICATION_CREDENTIALS', '')
    # Session cookie lifetime (2 weeks)
    SESSION_COOKIE_NAME = 'session'
    SESSION_EXPIRATION_DAYS = int(os.getenv('SESSION_EXPIRATION_DAYS', '14'))
    # Default page size for user listings
    USERS_PAGE_LIMIT = int(os.getenv('USERS_PAGE_LIMIT', '100'))
    IS_PRODUCTION = os.getenv('FLASK_ENV') == 'production'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


config = Config()
