"""HTTP client for fetching bank configurations from a remote source"""

from typing import List, Optional

import httpx

from finance_ingest.config import settings
from finance_ingest.domain.bank_configs import parse_bank_configuration
from finance_ingest.domain.exceptions import BankConfigSourceError, InvalidBankConfigurationError
from finance_ingest.domain.models import BankConfiguration


class BankConfigClient:
    """Client for a JSON endpoint serving bank configurations"""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or settings.bank_config_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def fetch_configurations(self) -> List[BankConfiguration]:
        """
        Fetch and validate the remote configuration list.

        The payload is either a JSON list of configurations or an object with a
        "bank_configurations" list.

        Raises:
            BankConfigSourceError: When no URL is configured, on timeout, HTTP errors,
                or invalid configuration data
        """
        if not self.url:
            raise BankConfigSourceError("No bank configuration source configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(self.url)
                response.raise_for_status()
                data = response.json()

                if isinstance(data, dict):
                    data = data["bank_configurations"]
                if not isinstance(data, list):
                    raise TypeError(f"expected a list, got {type(data).__name__}")

                return [parse_bank_configuration(raw) for raw in data]

            except httpx.TimeoutException as e:
                raise BankConfigSourceError(f"Bank configuration source timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BankConfigSourceError(f"Bank configuration source error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise BankConfigSourceError(f"Bank configuration source unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, AttributeError, InvalidBankConfigurationError) as e:
                raise BankConfigSourceError(f"Invalid bank configuration data: {e}") from e
