"""
Production Configuration for the WebSocket Relay

Every setting can be overridden through the environment
"""

import os
from types import MappingProxyType
from typing import Dict, Any

SERVER_NAME = "WebSocket Relay Server"
SERVER_VERSION = "1.0.0"
WEBSOCKET_ENDPOINT_HINT = "/proxy?url=ws://your-target-websocket-url"

CORS_HEADERS = MappingProxyType({
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
})


class ProductionConfig:
    """Production configuration settings"""

    # Server Settings
    RELAY_HOST = os.getenv('RELAY_HOST', '0.0.0.0')
    RELAY_PORT = int(os.getenv('RELAY_PORT', '8765'))

    # Relay Settings
    TARGET_PARAM = os.getenv('RELAY_TARGET_PARAM', 'url')
    CONNECT_TIMEOUT = float(os.getenv('RELAY_CONNECT_TIMEOUT_SECONDS', '10'))
    CLOSE_TIMEOUT = float(os.getenv('RELAY_CLOSE_TIMEOUT_SECONDS', '10'))
    MAX_MESSAGE_SIZE = int(os.getenv('RELAY_MAX_MESSAGE_SIZE', str(4 * 1024 * 1024)))  # 4MB
    HEARTBEAT_INTERVAL = float(os.getenv('RELAY_HEARTBEAT_INTERVAL_SECONDS', '30'))

    # Memory Management
    ENABLE_MEMORY_MONITORING = os.getenv('ENABLE_MEMORY_MONITORING', 'false').lower() == 'true'
    MAX_MEMORY_MB = int(os.getenv('MAX_MEMORY_MB', '1024'))
    WARNING_MEMORY_MB = int(os.getenv('WARNING_MEMORY_MB', '512'))
    CLEANUP_MEMORY_MB = int(os.getenv('CLEANUP_MEMORY_MB', '768'))
    MEMORY_CHECK_INTERVAL = float(os.getenv('MEMORY_CHECK_INTERVAL', '30'))

    # Logging
    LOG_LEVEL = os.getenv('RELAY_LOG_LEVEL', 'INFO')

    @classmethod
    def get_server_config(cls) -> Dict[str, Any]:
        """Get server configuration"""
        return {
            'host': cls.RELAY_HOST,
            'port': cls.RELAY_PORT,
            'heartbeat_interval': cls.HEARTBEAT_INTERVAL,
            'max_message_size': cls.MAX_MESSAGE_SIZE
        }

    @classmethod
    def get_relay_config(cls) -> Dict[str, Any]:
        """Get outbound connection configuration"""
        return {
            'target_param': cls.TARGET_PARAM,
            'connect_timeout': cls.CONNECT_TIMEOUT,
            'close_timeout': cls.CLOSE_TIMEOUT,
            'max_message_size': cls.MAX_MESSAGE_SIZE
        }

    @classmethod
    def get_monitoring_config(cls) -> Dict[str, Any]:
        """Get monitoring configuration"""
        return {
            'enable_memory_monitoring': cls.ENABLE_MEMORY_MONITORING,
            'max_memory_mb': cls.MAX_MEMORY_MB,
            'warning_memory_mb': cls.WARNING_MEMORY_MB,
            'cleanup_memory_mb': cls.CLEANUP_MEMORY_MB,
            'check_interval': cls.MEMORY_CHECK_INTERVAL,
            'log_level': cls.LOG_LEVEL
        }

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration settings"""
        try:
            if not (1 <= cls.RELAY_PORT <= 65535):
                raise ValueError(f"Port {cls.RELAY_PORT} must be between 1-65535")

            if cls.CONNECT_TIMEOUT <= 0:
                raise ValueError(f"Connect timeout {cls.CONNECT_TIMEOUT} must be positive")

            if cls.MAX_MESSAGE_SIZE <= 0:
                raise ValueError(f"Max message size {cls.MAX_MESSAGE_SIZE} must be positive")

            if not (cls.WARNING_MEMORY_MB <= cls.CLEANUP_MEMORY_MB <= cls.MAX_MEMORY_MB):
                raise ValueError("Memory thresholds must satisfy warning <= cleanup <= max")

            if not cls.TARGET_PARAM:
                raise ValueError("Target parameter name must not be empty")

            return True

        except ValueError as e:
            # Imported here, logging setup reads this module's settings
            from .utils.logging import get_logger
            get_logger(__name__).error(f"Configuration validation failed: {e}")
            return False


class DevelopmentConfig(ProductionConfig):
    """Development configuration with relaxed settings"""

    RELAY_HOST = '127.0.0.1'
    LOG_LEVEL = 'DEBUG'
    ENABLE_MEMORY_MONITORING = True


# Export the appropriate config based on environment
config = DevelopmentConfig if os.getenv('RELAY_ENV') == 'development' else ProductionConfig
