from genesys_ops.api import GenesysAPI
from genesys_ops.auth import SessionProvider
from genesys_ops.config import Settings
from genesys_ops.data_manager import DataManager
from genesys_ops.monitor import monitor, setup_logging

__all__ = [
    "DataManager",
    "GenesysAPI",
    "SessionProvider",
    "Settings",
    "monitor",
    "setup_logging",
]
