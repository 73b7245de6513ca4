import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"


class Settings:
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        if environ is None:
            load_dotenv()
            environ = os.environ

        # required environment variables, it will raise KeyError if not found
        self.secret_key = environ['SECRET_KEY']
        self.database_url = environ['DATABASE_URL']

        # optional environment variables, if not set defaults will be used
        self.base_url = environ.get('BASE_URL', 'http://localhost:5173')
        self.app_host = environ.get('APP_HOST', '0.0.0.0')
        self.app_port = int(environ.get('APP_PORT', '3001'))

        self.token_expire_hours = int(environ.get('TOKEN_EXPIRE_HOURS', '24'))

        self.upload_dir = environ.get('UPLOAD_DIR', 'uploads')
        self.max_upload_size_mb = int(environ.get('MAX_UPLOAD_SIZE_MB', '10'))
        self.max_upload_files = int(environ.get('MAX_UPLOAD_FILES', '5'))

        self.cors_origins: List[str] = [
            origin.strip()
            for origin in environ.get('CORS_ORIGINS', DEFAULT_CORS_ORIGINS).split(',')
            if origin.strip()
        ]

        self.log_level = environ.get('LOG_LEVEL', 'INFO')

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024
