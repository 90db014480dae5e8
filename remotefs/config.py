"""
Configuration loading for remotefs
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .models import Config, ServerConfig, StorageConfig, TlsConfig, LoggingConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "remotefs.yaml"

# Environment overrides
CONFIG_ENV = "REMOTEFS_CONFIG"
ROOT_ENV = "REMOTEFS_ROOT"


class ConfigManager:
    """Loads the YAML configuration file into an immutable Config"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path).resolve()
        self.config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file"""
        data: Dict[str, Any] = {}

        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
        else:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load configuration: {e}")
                data = {}
            else:
                logger.info(f"Configuration loaded from {self.config_path}")

        self.config = self._parse_config(data)
        return self.config

    def _parse_config(self, data: Dict[str, Any]) -> Config:
        """Parse configuration data into Config object"""

        # Server configuration
        server_data = data.get('server') or {}
        tls_data = server_data.get('tls') or {}
        server = ServerConfig(
            addr=server_data.get('addr', '0.0.0.0'),
            port=int(server_data.get('port', 8080)),
            tls=TlsConfig(
                enabled=tls_data.get('enabled', False),
                certfile=tls_data.get('certfile', ''),
                keyfile=tls_data.get('keyfile', '')
            )
        )

        # Storage root, environment wins over the file
        storage_data = data.get('storage') or {}
        root = os.getenv(ROOT_ENV) or storage_data.get('root', 'storage')
        storage = StorageConfig(
            root=Path(root).expanduser().resolve(),
            create=storage_data.get('create', True)
        )

        # Logging
        logging_data = data.get('logging') or {}
        logging_config = LoggingConfig(
            json=logging_data.get('json', False),
            file=logging_data.get('file', ''),
            level=logging_data.get('level', 'INFO'),
            max_size_mb=logging_data.get('max_size_mb', 100),
            backup_count=logging_data.get('backup_count', 5)
        )

        return Config(
            server=server,
            storage=storage,
            logging=logging_config
        )


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file, falling back to $REMOTEFS_CONFIG"""
    if not config_path:
        config_path = os.getenv(CONFIG_ENV, DEFAULT_CONFIG_PATH)
    return ConfigManager(config_path).load_config()
