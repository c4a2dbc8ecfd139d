# Core package for configuration and security

from .config import settings
from .logging import setup_logging, get_logger
from .exceptions import setup_exception_handlers, APIException, AIServiceException
from .middleware import setup_middleware, get_client_ip
from .file_utils import normalize_storage_path
