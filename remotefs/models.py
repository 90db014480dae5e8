"""
Data models and constants for remotefs
"""

from enum import Enum
from typing import Dict, Optional, Any
from dataclasses import dataclass, field
from pathlib import Path


class ResponseCode(Enum):
    """Standard response codes"""
    SUCCESS = 0
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500


@dataclass
class ApiResponse:
    """Standard API response format"""
    code: int = ResponseCode.SUCCESS.value
    msg: str = "success"
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "msg": self.msg,
            "data": self.data
        }


@dataclass
class Entry:
    """One row of a directory listing.

    Directories carry a trailing ``/`` in ``name`` and no ``size``.
    """
    name: str
    is_file: bool
    size: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "isFile": self.is_file,
        }
        if self.is_file:
            data["size"] = self.size
        return data


@dataclass(frozen=True)
class TlsConfig:
    """TLS configuration"""
    enabled: bool = False
    certfile: str = ""
    keyfile: str = ""


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 8080
    tls: TlsConfig = field(default_factory=TlsConfig)


@dataclass(frozen=True)
class StorageConfig:
    """Storage root configuration"""
    root: Path = field(default_factory=lambda: Path("storage").resolve())
    create: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    json: bool = False
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass(frozen=True)
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Magnitude suffixes for human readable sizes, indexed by power of 1024
SIZE_SUFFIXES = ("bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")

# Read size used when streaming downloads and uploads
CHUNK_SIZE = 64 * 1024

DEFAULT_MIME_TYPE = 'application/octet-stream'
