"""
NUT (Network UPS Tools) client wrapper.

This module provides an asynchronous client for interacting with a NUT server,
using the synchronous pynut2 library. It uses asyncio.to_thread to run
blocking I/O operations in a separate thread.
"""

import asyncio
import logging
from typing import Any, Dict

from pynut2.nut2 import PyNUTClient

from ..config import Settings

logger = logging.getLogger(__name__)


class NUTError(Exception):
    """Base exception for NUT client errors."""
    pass


class NUTConnectionError(NUTError):
    """Exception for NUT connection errors."""
    pass


class NUTClient:
    """
    An asynchronous client for NUT servers.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3493,
        username: str | None = None,
        password: str | None = None,
        timeout: int = 5,
    ):
        """
        Initialize the NUT client.

        Args:
            host: The NUT server hostname or IP address.
            port: The NUT server port.
            username: The username for authentication.
            password: The password for authentication.
            timeout: Socket timeout in seconds for every request.

        Raises:
            NUTConnectionError: If the server cannot be reached or rejects
                the credentials.
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        try:
            self._client = PyNUTClient(
                host=self.host,
                port=self.port,
                login=self.username,
                password=self.password,
                timeout=timeout,
            )
        except Exception as e:
            raise NUTConnectionError(f"Failed to connect to NUT server {self.host}:{self.port}") from e
        logger.info("Initialized NUT client host=%s port=%s user=%s", self.host, self.port, bool(self.username))

    @classmethod
    def from_settings(cls, settings: Settings) -> "NUTClient":
        return cls(
            host=settings.NUT_HOST,
            port=settings.NUT_PORT,
            username=settings.NUT_USERNAME,
            password=settings.NUT_PASSWORD,
            timeout=settings.NUT_TIMEOUT,
        )

    async def list_ups(self) -> Dict[str, str]:
        """
        List the available UPS devices on the NUT server.

        Returns:
            A dictionary of UPS devices, where the key is the UPS name and
            the value is the UPS description.

        Raises:
            NUTConnectionError: If there is an error communicating with the server.
        """
        try:
            logger.debug("Listing UPS devices from %s:%s", self.host, self.port)
            data = await asyncio.to_thread(self._client.list_ups)
            logger.info("NUT list_ups ok: %d devices", len(data) if data else 0)
            return data or {}
        except Exception as e:
            raise NUTConnectionError(f"Failed to list UPS devices from {self.host}:{self.port}") from e

    async def get_vars(self, ups_name: str) -> Dict[str, Any]:
        """
        Get all variables for a specific UPS.

        Args:
            ups_name: The name of the UPS device.

        Returns:
            A dictionary of variables for the specified UPS.

        Raises:
            NUTConnectionError: If there is an error communicating with the server.
        """
        try:
            logger.debug("Fetching vars for UPS '%s'", ups_name)
            vars_ = await asyncio.to_thread(self._client.list_vars, ups_name)
            logger.info("NUT get_vars ok for '%s' (%d vars)", ups_name, len(vars_) if vars_ else 0)
            return vars_ or {}
        except Exception as e:
            raise NUTConnectionError(f"Failed to get variables for UPS '{ups_name}'") from e
