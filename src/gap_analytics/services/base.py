"""
Base service class.

Services are stateful collaborators around the pure analytics core; they
share a logger convention.
"""

import logging
from abc import ABC
from typing import Optional


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides common functionality:
    - Logging setup
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger
