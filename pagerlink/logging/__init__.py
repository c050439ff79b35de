"""Communication logging package.

Records commands, responses, port events and transfer progress between
pagerlink and the transmitter for debugging and troubleshooting.
"""

from pagerlink.logging.log_models import LogEntry
from pagerlink.logging.file_handler import FileHandler
from pagerlink.logging.communication_logger import CommunicationLogger

__all__ = ['LogEntry', 'FileHandler', 'CommunicationLogger']
